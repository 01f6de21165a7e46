"""Per-signal normalisation curves onto [0, 1]."""

from __future__ import annotations

import math
from typing import Dict, Optional

from wikiheat.models import NormalizedSignal, SignalSet, Thresholds

DEFAULT_THRESHOLDS = Thresholds()

REVERT_EXPONENT = 0.7
ANON_EXPONENT = 0.8


def normalize(value: float, threshold: float) -> float:
    """sqrt(value / threshold), saturating at exactly 1.0.

    The square root keeps low values visible: a page at a quarter of the
    threshold already scores 0.5.
    """
    if threshold <= 0:
        return 0.0
    ratio = value / threshold
    if ratio <= 0:
        return 0.0
    if ratio >= 1:
        return 1.0
    return math.sqrt(ratio)


def _power(value: float, exponent: float) -> float:
    """value ** exponent over [0, 1]; out-of-range input is clamped first."""
    bounded = max(0.0, min(1.0, value))
    return bounded ** exponent


def normalize_velocity(signals: SignalSet, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> float:
    return normalize(signals.edit_velocity_7d, thresholds.edit_velocity)


def revert_ratio(signals: SignalSet) -> float:
    """The more alarming of the two windows."""
    return max(signals.revert_ratio_7d or 0.0, signals.revert_ratio_30d or 0.0)


def normalize_revert(signals: SignalSet) -> float:
    return _power(revert_ratio(signals), REVERT_EXPONENT)


def normalize_editors(signals: SignalSet, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> float:
    return normalize(signals.unique_editors_30d, thresholds.unique_editors)


def normalize_talk(signals: SignalSet, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> float:
    return normalize(signals.talk_activity, thresholds.talk_activity)


def normalize_protection(signals: SignalSet) -> float:
    return max(0.0, min(1.0, signals.protection_score))


def normalize_anon(signals: SignalSet) -> float:
    return _power(signals.anon_ratio_30d or 0.0, ANON_EXPONENT)


def normalize_all(
    signals: SignalSet,
    thresholds: Optional[Thresholds] = None,
) -> Dict[str, NormalizedSignal]:
    """Raw/normalised pairs for every weighted signal key."""
    t = thresholds or DEFAULT_THRESHOLDS
    return {
        "edit_velocity": NormalizedSignal(
            raw=signals.edit_velocity_7d,
            normalized=normalize_velocity(signals, t),
        ),
        "revert_ratio": NormalizedSignal(
            raw=revert_ratio(signals),
            normalized=normalize_revert(signals),
        ),
        "unique_editors": NormalizedSignal(
            raw=signals.unique_editors_30d,
            normalized=normalize_editors(signals, t),
        ),
        "talk_activity": NormalizedSignal(
            raw=signals.talk_activity,
            normalized=normalize_talk(signals, t),
        ),
        "protection": NormalizedSignal(
            raw=signals.protection_score,
            normalized=normalize_protection(signals),
        ),
        "anon_ratio": NormalizedSignal(
            raw=signals.anon_ratio_30d or 0.0,
            normalized=normalize_anon(signals),
        ),
    }
