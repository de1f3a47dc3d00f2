import logging
import os
import sys

from config import LOG_LEVEL
from scoring.dates import parse_day, today
from scoring.db import Base, SessionLocal, dedupe_activity_logs, init_db
from scoring.store import ensure_default_challenges, leaderboard

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
)
logger = logging.getLogger(__name__)


def seed(db) -> list:
    """Create the default challenges and return them."""
    challenges = ensure_default_challenges(db)
    logger.info("Default challenges ready: %s", ", ".join(c.code for c in challenges))
    return challenges


def format_leaderboard(entries) -> list[str]:
    lines = []
    for e in entries:
        badge = " *" if e.goal_met else ""
        lines.append(f"{e.rank:>3}. {e.display_name:<30} {e.score:>4}{badge}")
    return lines


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    reference = parse_day(argv[0]) if argv else parse_day(os.getenv("SEED_REFERENCE_DATE") or today())

    init_db(Base)
    dedupe_activity_logs()
    db = SessionLocal()
    try:
        for challenge in seed(db):
            entries = leaderboard(db, challenge.id, reference_date=reference)
            print(f"{challenge.name} ({reference.isoformat()})")
            for line in format_leaderboard(entries) or ["  no participants yet"]:
                print(line)
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
