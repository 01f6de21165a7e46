"""Pageview series summary: totals, extremes and half-over-half trend."""

from __future__ import annotations

import math
from typing import Sequence

from wikiheat.models import PageviewPoint, PageviewStats


def _mean(values: Sequence[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def pageview_stats(points: Sequence[PageviewPoint]) -> PageviewStats:
    """Summarise a daily pageview series.

    The series is split at ``len // 2``; an odd-length series puts the
    extra day in the second half. Average rounds half up.
    """
    if not points:
        return PageviewStats()

    views = [p.views for p in points]
    total = sum(views)
    mid = len(views) // 2
    first_avg = _mean(views[:mid])
    second_avg = _mean(views[mid:])
    trend = (second_avg - first_avg) / first_avg if first_avg > 0 else 0.0

    return PageviewStats(
        total=total,
        average=math.floor(total / len(views) + 0.5),
        max=max(views),
        min=min(views),
        trend=trend,
    )
