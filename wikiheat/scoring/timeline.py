"""Weekly heat timeline over a single revision history."""

from __future__ import annotations

import bisect
import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from wikiheat.models import Revision, SignalSet, Thresholds, TimelinePoint, WindowDays
from wikiheat.scoring.composer import Weights, calculate_heat_score
from wikiheat.scoring.signals import (
    DEFAULT_WINDOWS,
    build_signal_set,
    editor_identity,
    resolve_reference,
)

logger = logging.getLogger(__name__)


class _SlidingWindow:
    """Counts over ``[cutoff - days, cutoff]`` for monotonically rising cutoffs.

    Revisions must be sorted oldest first. Both edges only move forward, so
    a full timeline costs one pass over the history per window.
    """

    def __init__(self, revisions: Sequence[Revision], days: int) -> None:
        self._revisions = revisions
        self._span = timedelta(days=days)
        self._lo = 0
        self._hi = 0
        self._editors: Counter = Counter()
        self.reverts = 0
        self.anons = 0

    @property
    def edits(self) -> int:
        return self._hi - self._lo

    @property
    def unique_editors(self) -> int:
        return len(self._editors)

    def advance(self, hi: int, cutoff: datetime) -> None:
        """Admit revisions up to index *hi*, drop those older than the window."""
        while self._hi < hi:
            rev = self._revisions[self._hi]
            self._editors[editor_identity(rev)] += 1
            self.reverts += rev.is_revert
            self.anons += rev.is_anon
            self._hi += 1

        start = cutoff - self._span
        while self._lo < self._hi and self._revisions[self._lo].timestamp < start:
            rev = self._revisions[self._lo]
            name = editor_identity(rev)
            self._editors[name] -= 1
            if not self._editors[name]:
                del self._editors[name]
            self.reverts -= rev.is_revert
            self.anons -= rev.is_anon
            self._lo += 1


def calculate_heat_timeline(
    revisions: Sequence[Revision],
    protection_level: Optional[str] = "none",
    talk_revision_count: int = 0,
    weeks: int = 12,
    end_date: Optional[datetime] = None,
    weights: Optional[Weights] = None,
    window_days: WindowDays = DEFAULT_WINDOWS,
    thresholds: Optional[Thresholds] = None,
) -> List[TimelinePoint]:
    """One point per weekly cutoff, oldest first.

    Each point scores the history up to its cutoff exactly as
    ``extract_signals(prefix, reference_date=cutoff)`` would. Protection
    level and talk count are the current values applied to every week;
    they are not reconstructed historically.
    """
    if weeks <= 0:
        return []

    end = resolve_reference(end_date)
    ordered = sorted(revisions, key=lambda r: r.timestamp)
    stamps = [r.timestamp for r in ordered]

    short = _SlidingWindow(ordered, window_days.short)
    long = _SlidingWindow(ordered, window_days.long)

    timeline: List[TimelinePoint] = []
    for i in range(weeks - 1, -1, -1):
        week_end = end - timedelta(days=7 * i)
        prefix_len = bisect.bisect_right(stamps, week_end)
        short.advance(prefix_len, week_end)
        long.advance(prefix_len, week_end)

        signals: SignalSet = build_signal_set(
            edit_count_7d=short.edits,
            edit_count_30d=long.edits,
            unique_editors_7d=short.unique_editors,
            unique_editors_30d=long.unique_editors,
            revert_count_7d=short.reverts,
            revert_count_30d=long.reverts,
            anon_count_30d=long.anons,
            protection_level=protection_level,
            talk_revision_count=talk_revision_count,
            total_revisions=prefix_len,
            window_days=window_days,
        )
        timeline.append(
            TimelinePoint(
                date=week_end.date().isoformat(),
                heat=calculate_heat_score(signals, weights, thresholds),
                signals=signals,
            )
        )

    logger.debug(
        "timeline_built",
        extra={"weeks": weeks, "revisions": len(ordered)},
    )
    return timeline


RANGE_PRESETS = {"30d": 30, "90d": 90, "1y": 365, "5y": 1825}
DEFAULT_RANGE_DAYS = 90
MIN_TIMELINE_WEEKS = 12
MAX_TIMELINE_WEEKS = 260
RANGE_BUFFER_WEEKS = 4


def weeks_for_range(
    preset: Optional[str] = "90d",
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> int:
    """Number of timeline weeks needed to cover a date-range preset.

    ``custom`` uses ``end - start`` (days rounded up) when both are given.
    Unknown presets and incomplete custom ranges fall back to 90 days. The
    result carries a four-week buffer and is clamped to [12, 260].
    """
    days = RANGE_PRESETS.get(preset or "", DEFAULT_RANGE_DAYS)
    if preset == "custom" and start is not None and end is not None:
        span = resolve_reference(end) - resolve_reference(start)
        days = math.ceil(span.total_seconds() / 86400)

    weeks = math.ceil(days / 7) + RANGE_BUFFER_WEEKS
    return max(MIN_TIMELINE_WEEKS, min(weeks, MAX_TIMELINE_WEEKS))
