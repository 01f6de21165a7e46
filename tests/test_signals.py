"""Tests for signal extraction and revision parsing."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from wikiheat.models import SignalSet, WindowDays
from wikiheat.scoring.editors import analyze_editors
from wikiheat.scoring.signals import (
    extract_signals,
    filter_revisions_by_date_range,
    get_protection_score,
    parse_revisions,
)

RATIO_FIELDS = ("revert_ratio_7d", "revert_ratio_30d", "anon_ratio_30d")


# ---------------------------------------------------------------------------
# Protection table
# ---------------------------------------------------------------------------


class TestProtectionScore:
    @pytest.mark.parametrize(
        "level,expected",
        [
            ("none", 0.0),
            ("autoconfirmed", 0.4),
            ("extendedconfirmed", 0.6),
            ("templateeditor", 0.7),
            ("sysop", 1.0),
        ],
    )
    def test_known_levels(self, level, expected):
        assert get_protection_score(level) == expected

    def test_case_insensitive(self):
        assert get_protection_score("SysOp") == 1.0
        assert get_protection_score("AUTOCONFIRMED") == 0.4

    def test_unknown_and_missing_score_zero(self):
        assert get_protection_score("superprotected") == 0.0
        assert get_protection_score("") == 0.0
        assert get_protection_score(None) == 0.0


# ---------------------------------------------------------------------------
# Empty input
# ---------------------------------------------------------------------------


class TestEmptyHistory:
    def test_all_zero(self, now):
        signals = extract_signals([], reference_date=now)
        assert signals.edit_count_7d == 0
        assert signals.edit_count_30d == 0
        assert signals.unique_editors_30d == 0
        assert signals.revert_count_30d == 0
        assert signals.total_revisions == 0
        for field in RATIO_FIELDS:
            assert getattr(signals, field) == 0.0
        assert signals.edit_velocity_7d == 0.0

    def test_context_still_applied(self, now):
        signals = extract_signals(
            [], protection_level="sysop", talk_revision_count=17, reference_date=now
        )
        assert signals.protection_score == 1.0
        assert signals.talk_activity == 17

    def test_defaults_match_model_defaults(self):
        assert extract_signals([]) == SignalSet()


# ---------------------------------------------------------------------------
# Windowing
# ---------------------------------------------------------------------------


class TestWindows:
    def test_counts_per_window(self, now, make_rev):
        revisions = [
            make_rev(days_ago=1, user="Alice"),
            make_rev(days_ago=2, user="Bob", is_revert=True),
            make_rev(days_ago=10, user="Carol", is_anon=True),
            make_rev(days_ago=20, user="Alice", is_revert=True),
            make_rev(days_ago=45, user="Dave"),
        ]
        signals = extract_signals(revisions, reference_date=now)

        assert signals.edit_count_7d == 2
        assert signals.edit_count_30d == 4
        assert signals.unique_editors_7d == 2
        assert signals.unique_editors_30d == 3
        assert signals.revert_count_7d == 1
        assert signals.revert_count_30d == 2
        assert signals.revert_ratio_7d == pytest.approx(0.5)
        assert signals.revert_ratio_30d == pytest.approx(0.5)
        assert signals.anon_count_30d == 1
        assert signals.anon_ratio_30d == pytest.approx(0.25)
        assert signals.total_revisions == 5

    def test_window_boundaries_inclusive(self, now, make_rev):
        revisions = [
            make_rev(days_ago=7),
            make_rev(days_ago=30),
            make_rev(days_ago=0),
        ]
        signals = extract_signals(revisions, reference_date=now)
        assert signals.edit_count_7d == 2
        assert signals.edit_count_30d == 3

    def test_just_outside_window_excluded(self, now, make_rev):
        revisions = [make_rev(days_ago=7 + 1 / 86400), make_rev(days_ago=30 + 1 / 86400)]
        signals = extract_signals(revisions, reference_date=now)
        assert signals.edit_count_7d == 0
        assert signals.edit_count_30d == 1

    def test_revisions_after_reference_excluded(self, now, make_rev):
        revisions = [make_rev(days_ago=-1), make_rev(days_ago=1)]
        signals = extract_signals(revisions, reference_date=now)
        assert signals.edit_count_7d == 1
        assert signals.edit_count_30d == 1
        # totals cover the unfiltered input
        assert signals.total_revisions == 2

    def test_input_order_irrelevant(self, now, busy_history):
        forward = extract_signals(busy_history, reference_date=now)
        backward = extract_signals(list(reversed(busy_history)), reference_date=now)
        assert forward == backward

    def test_velocity_is_per_day_rate(self, now, make_rev):
        revisions = [make_rev(days_ago=i * 0.5) for i in range(14)]
        signals = extract_signals(revisions, reference_date=now)
        assert signals.edit_count_7d == 14
        assert signals.edit_velocity_7d == pytest.approx(2.0)

    def test_custom_window_lengths(self, now, make_rev):
        revisions = [make_rev(days_ago=2), make_rev(days_ago=5)]
        signals = extract_signals(
            revisions, reference_date=now, window_days=WindowDays(short=3, long=4)
        )
        assert signals.edit_count_7d == 1
        assert signals.edit_count_30d == 1
        assert signals.edit_velocity_7d == pytest.approx(1 / 3)

    def test_naive_reference_read_as_utc(self, make_rev):
        naive = datetime(2024, 1, 15, 12, 0, 0)
        signals = extract_signals([make_rev(days_ago=1)], reference_date=naive)
        assert signals.edit_count_7d == 1

    def test_ratios_bounded(self, now, busy_history):
        signals = extract_signals(busy_history, reference_date=now)
        for field in RATIO_FIELDS:
            assert 0.0 <= getattr(signals, field) <= 1.0

    def test_all_reverts_ratio_is_one(self, now, make_rev):
        revisions = [make_rev(days_ago=1, is_revert=True) for _ in range(3)]
        signals = extract_signals(revisions, reference_date=now)
        assert signals.revert_ratio_7d == 1.0
        assert signals.revert_ratio_30d == 1.0

    def test_only_old_revisions_give_zero_ratios(self, now, make_rev):
        revisions = [make_rev(days_ago=90, is_revert=True, is_anon=True)]
        signals = extract_signals(revisions, reference_date=now)
        for field in RATIO_FIELDS:
            assert getattr(signals, field) == 0.0
        assert signals.total_revisions == 1

    def test_blank_users_count_as_one_editor(self, now, make_rev):
        revisions = [make_rev(days_ago=1, user=None), make_rev(days_ago=2, user="")]
        signals = extract_signals(revisions, reference_date=now)
        assert signals.unique_editors_7d == 1
        assert signals.unique_editors_30d == 1
        assert signals.unique_editors_7d == analyze_editors(revisions).total_editors


class TestFilterByDateRange:
    def test_inclusive_range(self, now, make_rev):
        revisions = [make_rev(days_ago=d) for d in (0, 5, 10, 15)]
        kept = filter_revisions_by_date_range(
            revisions, now - timedelta(days=10), now - timedelta(days=5)
        )
        assert len(kept) == 2


# ---------------------------------------------------------------------------
# Parsing raw records
# ---------------------------------------------------------------------------


class TestParseRevisions:
    def test_camel_case_records(self):
        records = [
            {
                "timestamp": "2024-01-10T08:00:00Z",
                "user": "Alice",
                "isRevert": True,
                "isAnon": False,
                "size": 1200,
                "sizeDelta": -40,
                "comment": "Reverted edits by 1.2.3.4",
                "isMinor": True,
            }
        ]
        [rev] = parse_revisions(records)
        assert rev.is_revert is True
        assert rev.size_delta == -40
        assert rev.is_minor is True
        assert rev.timestamp == datetime(2024, 1, 10, 8, 0, tzinfo=timezone.utc)

    def test_malformed_records_are_skipped(self, caplog):
        records = [
            {"timestamp": "2024-01-10T08:00:00Z", "user": "Alice"},
            {"user": "NoTimestamp"},
            {"timestamp": "not a date", "user": "Broken"},
            "not even a dict",
            {"timestamp": "2024-01-11T08:00:00Z", "user": "Bob"},
        ]
        with caplog.at_level(logging.WARNING, logger="wikiheat.scoring.signals"):
            parsed = parse_revisions(records)

        assert [r.user for r in parsed] == ["Alice", "Bob"]
        skipped = [r for r in caplog.records if r.getMessage() == "revision_skipped"]
        assert len(skipped) == 3

    def test_naive_timestamps_read_as_utc(self):
        [rev] = parse_revisions([{"timestamp": "2024-01-10T08:00:00"}])
        assert rev.timestamp.tzinfo is not None
        assert rev.timestamp.utcoffset() == timedelta(0)

    def test_null_comment_becomes_empty(self):
        [rev] = parse_revisions([{"timestamp": "2024-01-10T08:00:00Z", "comment": None}])
        assert rev.comment == ""
