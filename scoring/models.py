from sqlalchemy import (
    Column,
    Integer,
    Float,
    String,
    Boolean,
    ForeignKey,
    DateTime,
    JSON,
    UniqueConstraint,
    Date,
    Text,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .db import Base

class Participant(Base):
    __tablename__ = "participants"
    email = Column(String, primary_key=True)           # participant id across the engine
    first_name = Column(String, nullable=False, default="")
    last_name = Column(String, nullable=False, default="")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    logs = relationship("ActivityLog", back_populates="participant", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.email


class Challenge(Base):
    __tablename__ = "challenges"
    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, index=True, nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    milestone_granularity = Column(String, nullable=False, default="WEEK")   # DAY|WEEK|MONTH
    scoring = Column(JSON, nullable=True)     # explicit strategy; derived from activities when empty
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    activities = relationship(
        "ChallengeActivity",
        back_populates="challenge",
        cascade="all, delete-orphan",
        order_by="ChallengeActivity.position",
    )


class ChallengeActivity(Base):
    __tablename__ = "challenge_activities"
    id = Column(Integer, primary_key=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), index=True, nullable=False)
    key = Column(String, nullable=False)                 # matched against ActivityLog.activity_key
    name = Column(String, nullable=False)
    unit = Column(String, default="")
    required_amount = Column(Float, nullable=True)
    category = Column(String, nullable=True)
    cap = Column(Integer, nullable=True)
    threshold = Column(Integer, nullable=True)
    aggregation = Column(String, default="DAYS")         # DAYS|SUM|COUNT|MAX|LAST
    rules = Column(JSON, nullable=True)                  # [{threshold_min, threshold_max, points, priority}]
    position = Column(Integer, default=0)

    challenge = relationship("Challenge", back_populates="activities")
    __table_args__ = (UniqueConstraint("challenge_id", "key", name="uq_challenge_activity_key"),)


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    id = Column(Integer, primary_key=True)
    participant_id = Column(String, ForeignKey("participants.email"), index=True, nullable=False)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), index=True, nullable=True)
    activity_key = Column(String, nullable=False)
    date = Column(Date, nullable=False, index=True)
    completed = Column(Boolean, default=True, nullable=False)
    value = Column(Float, nullable=True)
    note = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    participant = relationship("Participant", back_populates="logs")
    __table_args__ = (
        UniqueConstraint("participant_id", "date", "activity_key", name="uq_participant_date_activity"),
    )


class PeriodScore(Base):
    __tablename__ = "period_scores"
    id = Column(Integer, primary_key=True)
    participant_id = Column(String, ForeignKey("participants.email"), index=True, nullable=False)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), index=True, nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    period_score = Column(Integer, nullable=False, default=0)
    successful = Column(Boolean, default=False)
    last_recalculated = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    __table_args__ = (
        UniqueConstraint("participant_id", "challenge_id", "period_start", name="uq_period_score"),
    )
