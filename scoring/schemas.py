"""Pydantic models for challenge definitions and activity logs."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .dates import parse_day


class ChallengeDefinitionError(ValueError):
    """Raised when a challenge definition lacks dates or a milestone granularity."""


class Granularity(str, Enum):
    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"

    @property
    def unit(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: Any) -> "Granularity":
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().upper()
        # Accept the frequency spelling (DAILY/WEEKLY/MONTHLY) used by older records.
        raw = {"DAILY": "DAY", "WEEKLY": "WEEK", "MONTHLY": "MONTH"}.get(raw, raw)
        try:
            return cls(raw)
        except ValueError:
            raise ValueError(f"Unknown milestone granularity {value!r}") from None


class AggregationMethod(str, Enum):
    DAYS = "DAYS"
    SUM = "SUM"
    COUNT = "COUNT"
    MAX = "MAX"
    LAST = "LAST"


def _as_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _day_or_none(value: Any) -> Any:
    if value is None or value == "":
        return None
    try:
        return parse_day(value)
    except TypeError as exc:
        raise ValueError(str(exc)) from exc


class _Schema(BaseModel):
    # Accept both snake_case and the camelCase names produced by the web client.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScoringRule(_Schema):
    threshold_min: float = 0.0
    threshold_max: Optional[float] = None
    points: int = Field(..., ge=0)
    priority: int = 0

    def matches(self, value: float) -> bool:
        if value < self.threshold_min:
            return False
        return self.threshold_max is None or value <= self.threshold_max


class ActivityDefinition(_Schema):
    id: str
    name: str = ""
    unit: str = ""
    required_amount: Optional[float] = None
    category: Optional[str] = None
    cap: Optional[int] = Field(default=None, ge=0)
    threshold: Optional[int] = Field(default=None, ge=0)
    aggregation: AggregationMethod = AggregationMethod.DAYS
    rules: List[ScoringRule] = Field(default_factory=list)

    _coerce_id = field_validator("id", mode="before")(_as_str)

    @model_validator(mode="after")
    def _defaults(self):
        if not self.category:
            self.category = self.id
        if not self.name:
            self.name = self.id
        return self


class FixedCategoryCaps(_Schema):
    """Score = sum of distinct-day counts, each limited by its category cap."""

    kind: Literal["fixed_caps"] = "fixed_caps"
    caps: Dict[str, NonNegativeInt] = Field(default_factory=dict)
    thresholds: Dict[str, NonNegativeInt] = Field(default_factory=dict)


class MetricRule(_Schema):
    category: str
    aggregation: AggregationMethod = AggregationMethod.SUM
    rules: List[ScoringRule] = Field(default_factory=list)
    target: Optional[float] = None


class MetricThresholdBrackets(_Schema):
    """Score = points of the matching bracket for each aggregated metric."""

    kind: Literal["metric_brackets"] = "metric_brackets"
    metrics: List[MetricRule] = Field(default_factory=list)


ScoringStrategy = Annotated[
    Union[FixedCategoryCaps, MetricThresholdBrackets],
    Field(discriminator="kind"),
]


class ChallengeDefinition(_Schema):
    id: Optional[str] = None
    code: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    start_date: date
    end_date: date
    milestone_granularity: Granularity = Field(
        validation_alias=AliasChoices(
            "milestone_granularity",
            "milestoneGranularity",
            "scoring_frequency",
            "scoringFrequency",
            "period",
        )
    )
    activities: List[ActivityDefinition] = Field(default_factory=list)
    scoring: Optional[ScoringStrategy] = None

    _coerce_id = field_validator("id", mode="before")(_as_str)
    _coerce_days = field_validator("start_date", "end_date", mode="before")(_day_or_none)

    @field_validator("milestone_granularity", mode="before")
    @classmethod
    def _granularity(cls, value: Any) -> Any:
        if value is None:
            return value
        return Granularity.parse(value)

    @model_validator(mode="after")
    def _derive_scoring(self):
        if self.scoring is None:
            self.scoring = strategy_from_activities(self.activities)
        return self

    @property
    def required_activity_ids(self) -> List[str]:
        return [a.id for a in self.activities]

    @property
    def category_map(self) -> Dict[str, str]:
        return {a.id: a.category or a.id for a in self.activities}


def strategy_from_activities(activities: List[ActivityDefinition]):
    """Build the scoring strategy implied by per-activity configuration."""

    if any(a.rules for a in activities):
        metrics: List[MetricRule] = []
        seen = set()
        for a in activities:
            if a.category in seen:
                continue
            seen.add(a.category)
            metrics.append(
                MetricRule(
                    category=a.category,
                    aggregation=a.aggregation,
                    rules=list(a.rules),
                    target=a.threshold,
                )
            )
        return MetricThresholdBrackets(metrics=metrics)

    caps: Dict[str, int] = {}
    thresholds: Dict[str, int] = {}
    for a in activities:
        if a.cap is not None:
            caps.setdefault(a.category, a.cap)
        if a.threshold is not None:
            thresholds.setdefault(a.category, a.threshold)
    return FixedCategoryCaps(caps=caps, thresholds=thresholds)


def load_challenge(data: Any) -> ChallengeDefinition:
    """Validate a mapping (or ORM-like object) into a ChallengeDefinition."""

    if isinstance(data, ChallengeDefinition):
        return data
    try:
        if isinstance(data, dict):
            return ChallengeDefinition.model_validate(data)
        return ChallengeDefinition.model_validate(data, from_attributes=True)
    except ValidationError as exc:
        raise ChallengeDefinitionError(f"Malformed challenge definition: {exc}") from exc


class ActivityLogEntry(BaseModel):
    """A single (participant, day, activity) fact as supplied by the log source."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = None
    participant_id: str = Field(
        validation_alias=AliasChoices("participant_id", "participantId", "user_email", "userEmail")
    )
    challenge_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("challenge_id", "challengeId")
    )
    activity_id: str = Field(
        validation_alias=AliasChoices("activity_id", "activityId", "activity_key", "type")
    )
    day: date = Field(validation_alias=AliasChoices("day", "date"))
    completed: bool = True
    value: Optional[float] = None
    note: Optional[str] = None
    timestamp: Optional[datetime] = None

    _coerce_ids = field_validator("id", "participant_id", "challenge_id", "activity_id", mode="before")(_as_str)
    _coerce_day = field_validator("day", mode="before")(_day_or_none)

    @field_validator("value", mode="before")
    @classmethod
    def _numeric_value(cls, value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("timestamp")
    @classmethod
    def _naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
