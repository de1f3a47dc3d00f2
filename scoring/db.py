import logging

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from config import CHALLENGE_DB_URL

DB_URL = CHALLENGE_DB_URL
engine = create_engine(DB_URL, connect_args={"check_same_thread": False} if DB_URL.startswith("sqlite") else {})
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()

def init_db(BaseModel, bind=None):
    BaseModel.metadata.create_all(bind=bind or engine)


def dedupe_activity_logs(bind=None) -> int:
    """Delete duplicate natural-key rows, keeping the newest (legacy tables without the unique key)."""
    target = bind or engine
    try:
        if "activity_logs" not in inspect(target).get_table_names():
            return 0
        with target.begin() as conn:
            res = conn.execute(text(
                "DELETE FROM activity_logs WHERE id NOT IN ("
                " SELECT MAX(id) FROM activity_logs GROUP BY participant_id, date, activity_key)"
            ))
            removed = res.rowcount or 0
    except Exception as e:
        # Best-effort; the ORM-level upsert still keeps new writes unique
        logging.getLogger(__name__).warning("dedupe_activity_logs failed: %s", e)
        return 0
    if removed:
        logging.getLogger(__name__).info("Removed %s duplicate activity log row(s)", removed)
    return removed
