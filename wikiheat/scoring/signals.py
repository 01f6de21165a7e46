"""Signal extraction: revision history to windowed counts and ratios."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from wikiheat.models import Revision, SignalSet, WindowDays

logger = logging.getLogger(__name__)

DEFAULT_WINDOWS = WindowDays()

UNKNOWN_EDITOR = "Unknown"

PROTECTION_SCORES = {
    "none": 0.0,
    "autoconfirmed": 0.4,
    "extendedconfirmed": 0.6,
    "templateeditor": 0.7,
    "sysop": 1.0,  # full protection
}


def editor_identity(rev: Revision) -> str:
    """Editor key shared by every per-editor count; a blank user is one editor."""
    return rev.user or UNKNOWN_EDITOR


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_reference(reference_date: Optional[datetime]) -> datetime:
    """Default to now; read naive datetimes as UTC."""
    if reference_date is None:
        return utcnow()
    if reference_date.tzinfo is None:
        return reference_date.replace(tzinfo=timezone.utc)
    return reference_date.astimezone(timezone.utc)


def get_protection_score(level: Optional[str]) -> float:
    """Table lookup, case-insensitive; anything unrecognised scores 0."""
    if not level:
        return 0.0
    return PROTECTION_SCORES.get(level.strip().lower(), 0.0)


def _ratio(count: int, total: int) -> float:
    return count / total if total > 0 else 0.0


def build_signal_set(
    *,
    edit_count_7d: int,
    edit_count_30d: int,
    unique_editors_7d: int,
    unique_editors_30d: int,
    revert_count_7d: int,
    revert_count_30d: int,
    anon_count_30d: int,
    protection_level: Optional[str],
    talk_revision_count: int,
    total_revisions: int,
    window_days: WindowDays,
) -> SignalSet:
    """Derive ratios and velocity from window counts."""
    short = window_days.short
    return SignalSet(
        edit_count_7d=edit_count_7d,
        edit_count_30d=edit_count_30d,
        unique_editors_7d=unique_editors_7d,
        unique_editors_30d=unique_editors_30d,
        revert_count_7d=revert_count_7d,
        revert_count_30d=revert_count_30d,
        revert_ratio_7d=_ratio(revert_count_7d, edit_count_7d),
        revert_ratio_30d=_ratio(revert_count_30d, edit_count_30d),
        anon_count_30d=anon_count_30d,
        anon_ratio_30d=_ratio(anon_count_30d, edit_count_30d),
        protection_score=get_protection_score(protection_level),
        talk_activity=talk_revision_count,
        edit_velocity_7d=edit_count_7d / short if short > 0 else 0.0,
        total_revisions=total_revisions,
    )


def filter_revisions_by_date_range(
    revisions: Iterable[Revision],
    start_date: datetime,
    end_date: datetime,
) -> List[Revision]:
    """Revisions with start_date <= timestamp <= end_date."""
    start = resolve_reference(start_date)
    end = resolve_reference(end_date)
    return [r for r in revisions if start <= r.timestamp <= end]


def extract_signals(
    revisions: Sequence[Revision],
    protection_level: Optional[str] = "none",
    talk_revision_count: int = 0,
    reference_date: Optional[datetime] = None,
    window_days: WindowDays = DEFAULT_WINDOWS,
) -> SignalSet:
    """Compute the SignalSet for *revisions* as of *reference_date*.

    Both windows are inclusive at each end and anchored on the reference
    date; revisions after it are ignored regardless of input order.
    """
    if not revisions:
        return build_signal_set(
            edit_count_7d=0,
            edit_count_30d=0,
            unique_editors_7d=0,
            unique_editors_30d=0,
            revert_count_7d=0,
            revert_count_30d=0,
            anon_count_30d=0,
            protection_level=protection_level,
            talk_revision_count=talk_revision_count,
            total_revisions=0,
            window_days=window_days,
        )

    ref = resolve_reference(reference_date)
    short = filter_revisions_by_date_range(
        revisions, ref - timedelta(days=window_days.short), ref
    )
    long = filter_revisions_by_date_range(
        revisions, ref - timedelta(days=window_days.long), ref
    )

    return build_signal_set(
        edit_count_7d=len(short),
        edit_count_30d=len(long),
        unique_editors_7d=len({editor_identity(r) for r in short}),
        unique_editors_30d=len({editor_identity(r) for r in long}),
        revert_count_7d=sum(1 for r in short if r.is_revert),
        revert_count_30d=sum(1 for r in long if r.is_revert),
        anon_count_30d=sum(1 for r in long if r.is_anon),
        protection_level=protection_level,
        talk_revision_count=talk_revision_count,
        total_revisions=len(revisions),
        window_days=window_days,
    )


def parse_revisions(records: Iterable[Mapping[str, Any]]) -> List[Revision]:
    """Validate raw revision dicts, skipping any that fail validation.

    A record without a usable timestamp cannot be placed in a window, so it
    is dropped with a warning rather than failing the whole history.
    """
    parsed: List[Revision] = []
    for index, record in enumerate(records):
        try:
            parsed.append(Revision.model_validate(record))
        except ValidationError as exc:
            logger.warning(
                "revision_skipped",
                extra={"index": index, "error": str(exc)},
            )
    return parsed
