"""Tests for the PageAnalyzer orchestrator — the Wikipedia client is mocked."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import httpx
import pytest

from wikiheat.models import (
    DEFAULT_WEIGHTS,
    HeatLevel,
    PageInfo,
    PageviewPoint,
    PageviewStats,
    WeightConfig,
)
from wikiheat.pipeline import PageAnalyzer
from wikiheat.scoring.composer import calculate_heat_score
from wikiheat.sources.wikipedia import PageNotFoundError


@pytest.fixture()
def wiki(busy_history):
    client = MagicMock()
    client.get_page_info.return_value = PageInfo(
        page_id=99, title="Contested Topic", protection_level="extendedconfirmed"
    )
    client.get_all_revisions.return_value = busy_history
    client.get_talk_revision_count.return_value = 64
    client.get_pageviews.return_value = [PageviewPoint(date="20240115", views=1234)]
    return client


class TestAnalyze:
    def test_report_contents(self, mock_settings, wiki, now):
        report = PageAnalyzer(mock_settings, client=wiki).analyze("contested topic", end_date=now)

        assert report.page.title == "Contested Topic"
        assert report.revision_count == 40
        assert report.talk_revision_count == 64
        assert report.heat.signals.protection_score == 0.6
        assert report.heat.signals.talk_activity == 64
        assert 0.0 <= report.heat.score <= 1.0
        assert report.heat.level in (HeatLevel.HIGH, HeatLevel.CRITICAL)
        assert len(report.timeline) == mock_settings.resolved_timeline_weeks() == 17
        assert report.timeline[-1].signals == report.heat.signals
        assert report.editors.total_editors > 0
        assert report.pageviews[0].views == 1234
        assert report.pageview_stats.total == 1234
        assert report.pageview_stats.trend == 0.0
        assert set(report.normalized) == {
            "edit_velocity", "revert_ratio", "unique_editors",
            "talk_activity", "protection", "anon_ratio",
        }
        assert report.generated_at == now

    def test_fetches_with_canonical_title(self, mock_settings, wiki, now):
        PageAnalyzer(mock_settings, client=wiki).analyze("contested topic", end_date=now)
        wiki.get_all_revisions.assert_called_once_with("Contested Topic")
        wiki.get_talk_revision_count.assert_called_once_with("Contested Topic")

    def test_weeks_override(self, mock_settings, wiki, now):
        report = PageAnalyzer(mock_settings, client=wiki).analyze("x", end_date=now, weeks=3)
        assert len(report.timeline) == 3

    def test_range_setting_sizes_timeline(self, mock_settings, wiki, now):
        settings = mock_settings.model_copy(update={"date_range": "1y"})
        report = PageAnalyzer(settings, client=wiki).analyze("x", end_date=now)
        assert len(report.timeline) == 57

    def test_pageview_stats_summarise_series(self, mock_settings, wiki, now):
        wiki.get_pageviews.return_value = [
            PageviewPoint(date=f"2024011{i}", views=v) for i, v in enumerate([100, 100, 300, 300])
        ]
        stats = PageAnalyzer(mock_settings, client=wiki).analyze("x", end_date=now).pageview_stats
        assert (stats.total, stats.average, stats.max, stats.min) == (800, 200, 300, 100)
        assert stats.trend == pytest.approx(2.0)

    def test_missing_page_propagates(self, mock_settings, wiki, now):
        wiki.get_page_info.side_effect = PageNotFoundError("gone")
        with pytest.raises(PageNotFoundError):
            PageAnalyzer(mock_settings, client=wiki).analyze("gone", end_date=now)

    def test_revision_failure_propagates(self, mock_settings, wiki, now):
        wiki.get_all_revisions.side_effect = httpx.ConnectError("down")
        with pytest.raises(httpx.ConnectError):
            PageAnalyzer(mock_settings, client=wiki).analyze("x", end_date=now)

    def test_pageview_failure_degrades(self, mock_settings, wiki, now):
        wiki.get_pageviews.side_effect = httpx.ConnectError("down")
        report = PageAnalyzer(mock_settings, client=wiki).analyze("x", end_date=now)
        assert report.pageviews == []
        assert report.pageview_stats == PageviewStats()

    def test_new_page_without_history(self, mock_settings, wiki, now):
        wiki.get_all_revisions.return_value = []
        wiki.get_talk_revision_count.return_value = 0
        report = PageAnalyzer(mock_settings, client=wiki).analyze("x", end_date=now)
        assert report.heat.signals.total_revisions == 0
        assert report.heat.score == pytest.approx((DEFAULT_WEIGHTS.protection * 0.6) ** 0.85)
        assert report.editors.total_editors == 0


class TestWeightsPrecedence:
    def test_settings_weights_used_by_default(self, mock_settings, wiki, now):
        settings = mock_settings.model_copy(
            update={"weight_edit_velocity": 0.0, "weight_revert_ratio": 0.0,
                    "weight_unique_editors": 0.0, "weight_talk_activity": 0.0,
                    "weight_anon_ratio": 0.0, "weight_protection": 1.0}
        )
        report = PageAnalyzer(settings, client=wiki).analyze("x", end_date=now)
        assert report.heat.score == pytest.approx(0.6 ** 0.85)

    def test_saved_weights_beat_settings(self, mock_settings, wiki, tmp_db, now):
        saved = WeightConfig(talk_activity=1.0)
        tmp_db.set_weights(saved)
        report = PageAnalyzer(mock_settings, client=wiki, store=tmp_db).analyze("x", end_date=now)
        assert report.heat.score == pytest.approx(calculate_heat_score(report.heat.signals, saved))

    def test_explicit_weights_beat_saved(self, mock_settings, wiki, tmp_db, now):
        tmp_db.set_weights(WeightConfig(talk_activity=1.0))
        explicit = {"protection": 1.0}
        report = PageAnalyzer(mock_settings, client=wiki, store=tmp_db).analyze(
            "x", end_date=now, weights=explicit
        )
        assert report.heat.score == pytest.approx(0.6 ** 0.85)


class TestPersistence:
    def test_saves_record(self, mock_settings, wiki, tmp_db, now):
        report = PageAnalyzer(mock_settings, client=wiki, store=tmp_db).analyze("x", end_date=now)
        record = tmp_db.get_page(99)
        assert record is not None
        assert record.title == "Contested Topic"
        assert record.current_heat == pytest.approx(report.heat.score)
        assert record.heat_level == report.heat.level
        assert len(record.timeline) == len(report.timeline)

    def test_no_save(self, mock_settings, wiki, tmp_db, now):
        PageAnalyzer(mock_settings, client=wiki, store=tmp_db).analyze("x", end_date=now, save=False)
        assert tmp_db.page_count() == 0

    def test_reanalysis_updates_in_place(self, mock_settings, wiki, tmp_db, now):
        analyzer = PageAnalyzer(mock_settings, client=wiki, store=tmp_db)
        analyzer.analyze("x", end_date=now - timedelta(days=60))
        analyzer.analyze("x", end_date=now)
        assert tmp_db.page_count() == 1

    def test_close_releases_client(self, mock_settings, wiki):
        PageAnalyzer(mock_settings, client=wiki).close()
        wiki.close.assert_called_once()
