"""Page analysis orchestrator: fetch → extract → score → timeline → editors → store."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

import httpx

from wikiheat.config import Settings
from wikiheat.models import PageRecord, PageReport, PageviewPoint, WeightConfig
from wikiheat.scoring.composer import Weights, get_normalized_signals, score_signals
from wikiheat.scoring.editors import analyze_editors
from wikiheat.scoring.pageviews import pageview_stats
from wikiheat.scoring.signals import extract_signals, resolve_reference
from wikiheat.scoring.timeline import calculate_heat_timeline
from wikiheat.sources.wikipedia import WikipediaAPIError, WikipediaClient
from wikiheat.storage.database import Database

logger = logging.getLogger(__name__)


class PageAnalyzer:
    """Coordinates the revision source, the scoring core and the page store.

    Weight precedence: explicit ``weights`` argument, then weights saved in
    the store, then the weights from settings.
    """

    def __init__(
        self,
        config: Settings,
        client: Optional[WikipediaClient] = None,
        store: Optional[Database] = None,
    ) -> None:
        self.config = config
        self.client = client or WikipediaClient(config)
        self.store = store

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(
        self,
        title: str,
        *,
        end_date: Optional[datetime] = None,
        weeks: Optional[int] = None,
        weights: Optional[Weights] = None,
        save: bool = True,
    ) -> PageReport:
        """Fetch everything for *title* and build a PageReport.

        Raises PageNotFoundError for a missing article; revision fetch
        errors propagate. Talk counts and pageviews degrade to empty.
        """
        reference = resolve_reference(end_date)
        effective = self._effective_weights(weights)
        thresholds = self.config.thresholds()
        windows = self.config.window_days()

        # 1. Metadata
        page = self.client.get_page_info(title)
        logger.info(
            "page_info_fetched",
            extra={"title": page.title, "protection": page.protection_level},
        )

        # 2. History
        revisions = self.client.get_all_revisions(page.title)
        talk_count = self.client.get_talk_revision_count(page.title)
        pageviews = self._pageviews(page.title, reference)

        # 3. Score
        signals = extract_signals(
            revisions,
            protection_level=page.protection_level,
            talk_revision_count=talk_count,
            reference_date=reference,
            window_days=windows,
        )
        heat = score_signals(signals, effective, thresholds)
        timeline = calculate_heat_timeline(
            revisions,
            protection_level=page.protection_level,
            talk_revision_count=talk_count,
            weeks=weeks if weeks is not None else self.config.resolved_timeline_weeks(),
            end_date=reference,
            weights=effective,
            window_days=windows,
            thresholds=thresholds,
        )
        editors = analyze_editors(revisions)
        logger.info(
            "page_scored",
            extra={"title": page.title, "heat": round(heat.score, 4), "heat_level": heat.level.value},
        )

        report = PageReport(
            page=page,
            heat=heat,
            normalized=get_normalized_signals(signals, thresholds),
            timeline=timeline,
            editors=editors,
            pageviews=pageviews,
            pageview_stats=pageview_stats(pageviews),
            talk_revision_count=talk_count,
            revision_count=len(revisions),
            generated_at=reference,
        )

        # 4. Persist
        if save and self.store is not None:
            self.store.upsert_page(self.to_record(report))

        return report

    def close(self) -> None:
        """Release the HTTP client; the store belongs to the caller."""
        self.client.close()

    @staticmethod
    def to_record(report: PageReport) -> PageRecord:
        return PageRecord(
            page_id=report.page.page_id,
            title=report.page.title,
            protection_level=report.page.protection_level,
            current_heat=report.heat.score,
            heat_level=report.heat.level,
            signals=report.heat.signals,
            timeline=report.timeline,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _effective_weights(self, weights: Optional[Weights]) -> Weights:
        if weights is not None:
            return weights
        if self.store is not None:
            saved: Optional[WeightConfig] = self.store.get_weights()
            if saved is not None:
                return saved
        return self.config.weight_config()

    def _pageviews(self, title: str, reference: datetime) -> List[PageviewPoint]:
        try:
            return self.client.get_pageviews(
                title, days=self.config.lookback_days, end_date=reference
            )
        except (httpx.HTTPError, WikipediaAPIError, ValueError) as exc:
            logger.warning(
                "pageviews_failed",
                extra={"title": title, "error": str(exc)},
            )
            return []
