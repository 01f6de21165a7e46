"""Weighted composition of normalised signals into a single heat score."""

from __future__ import annotations

import math
from typing import Dict, Mapping, Optional, Union

from wikiheat.models import (
    DEFAULT_WEIGHTS,
    SIGNAL_KEYS,
    HeatLevel,
    HeatScore,
    NormalizedSignal,
    SignalSet,
    Thresholds,
    WeightConfig,
)
from wikiheat.scoring.normalize import normalize_all

BOOST_EXPONENT = 0.85

# (lower bound, level, colour), checked top-down
_HEAT_BANDS = (
    (0.6, HeatLevel.CRITICAL, "#ef4444"),
    (0.4, HeatLevel.HIGH, "#f59e0b"),
    (0.2, HeatLevel.MODERATE, "#eab308"),
)
_COOL = (HeatLevel.LOW, "#22c55e")

Weights = Union[WeightConfig, Mapping[str, object]]

_CAMEL_KEYS = {
    "edit_velocity": "editVelocity",
    "revert_ratio": "revertRatio",
    "unique_editors": "uniqueEditors",
    "talk_activity": "talkActivity",
    "protection": "protection",
    "anon_ratio": "anonRatio",
}


def _coerce_weight(value: object) -> float:
    """Numeric, finite, non-negative, else 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        weight = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(weight) or weight < 0:
        return 0.0
    return weight


def resolve_weights(weights: Optional[Weights]) -> Dict[str, float]:
    """Flatten a WeightConfig or a partial mapping into the six weight keys.

    Mapping keys may be snake_case or camelCase; absent or malformed
    entries contribute nothing.
    """
    if weights is None:
        weights = DEFAULT_WEIGHTS
    if isinstance(weights, WeightConfig):
        return {key: getattr(weights, key) for key in SIGNAL_KEYS}
    resolved: Dict[str, float] = {}
    for key in SIGNAL_KEYS:
        value = weights.get(key, weights.get(_CAMEL_KEYS[key], 0.0))
        resolved[key] = _coerce_weight(value)
    return resolved


def get_normalized_signals(
    signals: SignalSet,
    thresholds: Optional[Thresholds] = None,
) -> Dict[str, NormalizedSignal]:
    """Pre-boost raw and normalised value for each signal, for display."""
    return normalize_all(signals, thresholds)


def calculate_heat_score(
    signals: SignalSet,
    weights: Optional[Weights] = None,
    thresholds: Optional[Thresholds] = None,
) -> float:
    """Composite heat in [0, 1].

    raw     = sum(weight_i * normalised_i)
    boosted = raw ** 0.85
    """
    resolved = resolve_weights(weights)
    normalized = normalize_all(signals, thresholds)

    raw_heat = sum(resolved[key] * normalized[key].normalized for key in SIGNAL_KEYS)
    if raw_heat <= 0:
        return 0.0
    boosted = raw_heat ** BOOST_EXPONENT
    return min(max(boosted, 0.0), 1.0)


def calculate_heat_score_with_weights(signals: SignalSet, weights: Weights) -> float:
    """Explicit-weights variant used by the settings views."""
    return calculate_heat_score(signals, weights)


def get_heat_level(score: float) -> HeatLevel:
    for lower, level, _ in _HEAT_BANDS:
        if score >= lower:
            return level
    return _COOL[0]


def get_heat_color(score: float) -> str:
    for lower, _, colour in _HEAT_BANDS:
        if score >= lower:
            return colour
    return _COOL[1]


def score_signals(
    signals: SignalSet,
    weights: Optional[Weights] = None,
    thresholds: Optional[Thresholds] = None,
) -> HeatScore:
    """Score *signals* and keep them alongside the result."""
    score = calculate_heat_score(signals, weights, thresholds)
    return HeatScore(score=score, level=get_heat_level(score), signals=signals)
