"""wikiheat.scoring: pure signal extraction, normalisation and composition."""

from __future__ import annotations

from wikiheat.scoring.composer import (
    calculate_heat_score,
    calculate_heat_score_with_weights,
    get_heat_color,
    get_heat_level,
    get_normalized_signals,
    score_signals,
)
from wikiheat.scoring.editors import analyze_editors
from wikiheat.scoring.normalize import normalize
from wikiheat.scoring.signals import (
    extract_signals,
    filter_revisions_by_date_range,
    parse_revisions,
)
from wikiheat.scoring.pageviews import pageview_stats
from wikiheat.scoring.timeline import calculate_heat_timeline, weeks_for_range

__all__ = [
    "analyze_editors",
    "calculate_heat_score",
    "calculate_heat_score_with_weights",
    "calculate_heat_timeline",
    "extract_signals",
    "filter_revisions_by_date_range",
    "get_heat_color",
    "get_heat_level",
    "get_normalized_signals",
    "normalize",
    "pageview_stats",
    "parse_revisions",
    "score_signals",
    "weeks_for_range",
]
