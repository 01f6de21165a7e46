"""Pydantic v2 settings for Wiki Heat — all tunables via env vars prefixed WIKIHEAT_."""

from __future__ import annotations

import functools
import logging
from datetime import datetime
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wikiheat.models import DEFAULT_WEIGHTS, Thresholds, WeightConfig, WindowDays
from wikiheat.scoring.timeline import RANGE_PRESETS, weeks_for_range


class Settings(BaseSettings):
    """All configuration lives here; no hardcoded values elsewhere."""

    model_config = SettingsConfigDict(
        env_prefix="WIKIHEAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── Storage ──────────────────────────────────────────────────────────────
    db_path: str = "~/.wikiheat/pages.db"

    # ── Wikipedia API ────────────────────────────────────────────────────────
    api_url: str = "https://en.wikipedia.org/w/api.php"
    pageviews_url: str = (
        "https://wikimedia.org/api/rest_v1/metrics/pageviews/per-article"
    )
    project: str = "en.wikipedia"
    user_agent: str = "wikiheat/0.1 (https://github.com/wikiheat/wikiheat)"
    request_timeout: int = 10
    max_retries: int = 3
    retry_min_wait: float = 2.0
    retry_max_wait: float = 30.0
    max_revisions: int = 2000
    revisions_page_size: int = 500
    max_pages: int = 10
    page_delay: float = 0.1

    # ── Scoring weights ───────────────────────────────────────────────────────
    weight_edit_velocity: float = DEFAULT_WEIGHTS.edit_velocity
    weight_revert_ratio: float = DEFAULT_WEIGHTS.revert_ratio
    weight_unique_editors: float = DEFAULT_WEIGHTS.unique_editors
    weight_talk_activity: float = DEFAULT_WEIGHTS.talk_activity
    weight_protection: float = DEFAULT_WEIGHTS.protection
    weight_anon_ratio: float = DEFAULT_WEIGHTS.anon_ratio

    # ── Normalisation / windows ──────────────────────────────────────────────
    velocity_threshold: float = 5.0
    editors_threshold: float = 30.0
    talk_threshold: float = 50.0
    short_window_days: int = 7
    long_window_days: int = 30
    timeline_weeks: Optional[int] = None  # overrides date_range when set
    date_range: str = "90d"
    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None
    lookback_days: int = 365

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = False

    # ── Field validators ──────────────────────────────────────────────────────

    @field_validator(
        "weight_edit_velocity",
        "weight_revert_ratio",
        "weight_unique_editors",
        "weight_talk_activity",
        "weight_protection",
        "weight_anon_ratio",
    )
    @classmethod
    def non_negative_weight(cls, v: float) -> float:
        if v < 0:
            raise ValueError("weights must be non-negative")
        return v

    @field_validator("date_range")
    @classmethod
    def validate_date_range(cls, v: str) -> str:
        valid = {*RANGE_PRESETS, "custom"}
        if v not in valid:
            raise ValueError(f"date_range must be one of {sorted(valid)}")
        return v

    @field_validator("timeline_weeks")
    @classmethod
    def positive_weeks(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("timeline_weeks must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    # ── Model validators ──────────────────────────────────────────────────────

    @model_validator(mode="after")
    def validate_windows(self) -> "Settings":
        """0 < short window <= long window."""
        if self.short_window_days <= 0:
            raise ValueError(
                f"short_window_days must be positive, got {self.short_window_days}"
            )
        if self.long_window_days < self.short_window_days:
            raise ValueError(
                f"long_window_days ({self.long_window_days}) must be >= "
                f"short_window_days ({self.short_window_days})"
            )
        return self

    # ── Scoring values ────────────────────────────────────────────────────────

    def weight_config(self) -> WeightConfig:
        return WeightConfig(
            edit_velocity=self.weight_edit_velocity,
            revert_ratio=self.weight_revert_ratio,
            unique_editors=self.weight_unique_editors,
            talk_activity=self.weight_talk_activity,
            protection=self.weight_protection,
            anon_ratio=self.weight_anon_ratio,
        )

    def thresholds(self) -> Thresholds:
        return Thresholds(
            edit_velocity=self.velocity_threshold,
            unique_editors=self.editors_threshold,
            talk_activity=self.talk_threshold,
        )

    def window_days(self) -> WindowDays:
        return WindowDays(short=self.short_window_days, long=self.long_window_days)

    def resolved_timeline_weeks(self) -> int:
        """Explicit ``timeline_weeks``, else the weeks covering ``date_range``."""
        if self.timeline_weeks is not None:
            return self.timeline_weeks
        return weeks_for_range(self.date_range, self.range_start, self.range_end)


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings singleton."""
    return Settings()


def get_log_level(settings: Settings) -> int:
    return getattr(logging, settings.log_level, logging.INFO)
