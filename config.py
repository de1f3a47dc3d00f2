import os

from dotenv import load_dotenv

# Centralized configuration values shared across components.

ROOT = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(ROOT, ".env"))

CHALLENGE_DB_URL = os.getenv("CHALLENGE_DB_URL", "sqlite:///./challenge.db")
CHALLENGE_TIMEZONE = os.getenv("CHALLENGE_TIMEZONE", "UTC")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
