"""Pydantic models and enums for Wiki Heat."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: datetime) -> datetime:
    """Read naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class HeatLevel(str, Enum):
    """Display bands for a heat score."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class Revision(BaseModel):
    """A single article revision as supplied by the revision source."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: datetime
    user: Optional[str] = None
    is_revert: bool = Field(default=False, alias="isRevert")
    is_anon: bool = Field(default=False, alias="isAnon")
    size: int = 0
    size_delta: int = Field(default=0, alias="sizeDelta")
    comment: str = ""
    is_minor: bool = Field(default=False, alias="isMinor")
    rev_id: Optional[int] = Field(default=None, alias="revId")
    user_id: Optional[int] = Field(default=None, alias="userId")

    @field_validator("timestamp")
    @classmethod
    def normalise_timestamp(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator("comment", mode="before")
    @classmethod
    def none_comment(cls, v: object) -> object:
        return "" if v is None else v


class WindowDays(BaseModel):
    """Trailing window lengths, in days."""

    model_config = ConfigDict(frozen=True)

    short: int = 7
    long: int = 30


class Thresholds(BaseModel):
    """Saturation points for the square-root normalisation curves."""

    model_config = ConfigDict(frozen=True)

    edit_velocity: float = 5.0  # edits/day
    unique_editors: float = 30.0
    talk_activity: float = 50.0


class SignalSet(BaseModel):
    """Raw counts and ratios over the short and long windows."""

    model_config = ConfigDict(frozen=True)

    edit_count_7d: int = 0
    edit_count_30d: int = 0
    unique_editors_7d: int = 0
    unique_editors_30d: int = 0
    revert_count_7d: int = 0
    revert_count_30d: int = 0
    revert_ratio_7d: float = 0.0
    revert_ratio_30d: float = 0.0
    anon_count_30d: int = 0
    anon_ratio_30d: float = 0.0
    protection_score: float = 0.0
    talk_activity: int = 0
    edit_velocity_7d: float = 0.0
    total_revisions: int = 0


class WeightConfig(BaseModel):
    """Per-signal weights for the composite score.

    Weights are not renormalised; a sum other than 1.0 is the caller's call.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    edit_velocity: float = Field(default=0.0, ge=0.0, alias="editVelocity")
    revert_ratio: float = Field(default=0.0, ge=0.0, alias="revertRatio")
    unique_editors: float = Field(default=0.0, ge=0.0, alias="uniqueEditors")
    talk_activity: float = Field(default=0.0, ge=0.0, alias="talkActivity")
    protection: float = Field(default=0.0, ge=0.0)
    anon_ratio: float = Field(default=0.0, ge=0.0, alias="anonRatio")


SIGNAL_KEYS = (
    "edit_velocity",
    "revert_ratio",
    "unique_editors",
    "talk_activity",
    "protection",
    "anon_ratio",
)

DEFAULT_WEIGHTS = WeightConfig(
    edit_velocity=0.20,
    revert_ratio=0.25,  # reverts are the strongest single signal
    unique_editors=0.20,
    talk_activity=0.15,
    protection=0.10,
    anon_ratio=0.10,
)


class NormalizedSignal(BaseModel):
    """A raw signal value next to its [0, 1] normalised form."""

    model_config = ConfigDict(frozen=True)

    raw: float
    normalized: float


class HeatScore(BaseModel):
    """A composite score together with the signals it was derived from."""

    model_config = ConfigDict(frozen=True)

    score: float
    level: HeatLevel
    signals: SignalSet


class TimelinePoint(BaseModel):
    """Heat at one weekly cutoff."""

    model_config = ConfigDict(frozen=True)

    date: str
    heat: float
    signals: SignalSet


class EditorSummary(BaseModel):
    """Aggregated activity of one editor identity."""

    model_config = ConfigDict(frozen=True)

    name: str
    edit_count: int
    revert_count: int
    first_edit: datetime
    last_edit: datetime
    is_anon: bool
    is_bot: bool


class IPEdit(BaseModel):
    """An anonymous edit made from a bare IP address."""

    model_config = ConfigDict(frozen=True)

    ip: str
    timestamp: datetime
    is_revert: bool


class EditorAnalysis(BaseModel):
    """Editor breakdown for a revision history."""

    model_config = ConfigDict(frozen=True)

    total_editors: int = 0
    anonymous_editors: int = 0
    bot_editors: int = 0
    registered_editors: int = 0
    top_editors: List[EditorSummary] = Field(default_factory=list)
    ip_editors: List[IPEdit] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Collaborator payloads
# ---------------------------------------------------------------------------


class PageInfo(BaseModel):
    """Article metadata from the Wikipedia query API."""

    page_id: int
    title: str
    protection_level: str = "none"
    created_at: Optional[datetime] = None


class RevisionBatch(BaseModel):
    """One page of revision history plus the continuation token."""

    revisions: List[Revision] = Field(default_factory=list)
    continue_token: Optional[str] = None


class PageviewPoint(BaseModel):
    """Daily pageview count; ``date`` is YYYYMMDD."""

    date: str
    views: int = 0


class PageviewStats(BaseModel):
    """Summary of a pageview series.

    ``trend`` is the relative change of the second half's mean over the
    first half's; 0 when the first half is empty or has no views.
    """

    model_config = ConfigDict(frozen=True)

    total: int = 0
    average: int = 0
    max: int = 0
    min: int = 0
    trend: float = 0.0


class PageReport(BaseModel):
    """Full analysis of a single article."""

    page: PageInfo
    heat: HeatScore
    normalized: Dict[str, NormalizedSignal] = Field(default_factory=dict)
    timeline: List[TimelinePoint] = Field(default_factory=list)
    editors: EditorAnalysis = Field(default_factory=EditorAnalysis)
    pageviews: List[PageviewPoint] = Field(default_factory=list)
    pageview_stats: PageviewStats = Field(default_factory=PageviewStats)
    talk_revision_count: int = 0
    revision_count: int = 0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PageRecord(BaseModel):
    """A tracked page as persisted in the local store."""

    page_id: int
    title: str
    protection_level: str = "none"
    current_heat: float = 0.0
    heat_level: HeatLevel = HeatLevel.LOW
    signals: SignalSet = Field(default_factory=SignalSet)
    timeline: List[TimelinePoint] = Field(default_factory=list)
    added_at: Optional[datetime] = None
    last_fetched: Optional[datetime] = None
