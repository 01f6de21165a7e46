"""Wikipedia / Wikimedia REST client: page info, revisions, talk volume, pageviews."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx

from wikiheat.config import Settings
from wikiheat.models import PageInfo, PageviewPoint, Revision, RevisionBatch
from wikiheat.scoring.signals import parse_revisions, resolve_reference
from wikiheat.sources.http import WikiHTTPClient

logger = logging.getLogger(__name__)

REVERT_KEYWORDS = ("revert", "rv ", "rvv", "undid", "undo", "rollback")

_REVISION_PROPS = "ids|timestamp|user|userid|size|comment|flags"
_TALK_LIMIT = 500


class WikipediaAPIError(RuntimeError):
    """The API answered with an error payload or an unexpected shape."""


class PageNotFoundError(LookupError):
    """The requested article does not exist."""


def is_revert_comment(comment: Optional[str]) -> bool:
    """Case-insensitive substring match against the revert keywords."""
    text = (comment or "").lower()
    return any(keyword in text for keyword in REVERT_KEYWORDS)


def _is_anon(raw: Dict[str, Any]) -> bool:
    # formatversion=2 sends anon=true; older payloads send anon=""
    if raw.get("anon") is True or raw.get("anon") == "":
        return True
    return not raw.get("userid")


class WikipediaClient:
    """Thin client over the MediaWiki action API and the pageviews REST API."""

    def __init__(self, config: Settings, client: WikiHTTPClient | None = None) -> None:
        self.config = config
        self.client = client or WikiHTTPClient(
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            min_wait=config.retry_min_wait,
            max_wait=config.retry_max_wait,
            user_agent=config.user_agent,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "WikipediaClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Page metadata
    # ------------------------------------------------------------------

    def get_page_info(self, title: str) -> PageInfo:
        """Page id, canonical title, edit protection level and creation time."""
        data = self._query(
            {
                "titles": title,
                "prop": "info|revisions",
                "inprop": "protection",
                "rvprop": "timestamp",
                "rvlimit": "1",
                "rvdir": "newer",
            }
        )
        page = self._first_page(data)
        if page is None or page.get("missing"):
            raise PageNotFoundError(f"No Wikipedia page titled {title!r}")

        protection_level = "none"
        for entry in page.get("protection") or []:
            if entry.get("type") == "edit":
                protection_level = entry.get("level") or "none"
                break

        revisions = page.get("revisions") or []
        return PageInfo(
            page_id=page["pageid"],
            title=page.get("title", title),
            protection_level=protection_level,
            created_at=revisions[0].get("timestamp") if revisions else None,
        )

    # ------------------------------------------------------------------
    # Revisions
    # ------------------------------------------------------------------

    def get_revisions(
        self,
        title: str,
        limit: int = 500,
        continue_token: Optional[str] = None,
    ) -> RevisionBatch:
        """One page of history, newest first."""
        params = {
            "titles": title,
            "prop": "revisions",
            "rvprop": _REVISION_PROPS,
            "rvlimit": str(limit),
            "rvdir": "older",
        }
        if continue_token:
            params["rvcontinue"] = continue_token

        data = self._query(params)
        page = self._first_page(data)
        raw_revisions: List[Dict[str, Any]] = (page or {}).get("revisions") or []

        records: List[Dict[str, Any]] = []
        for index, raw in enumerate(raw_revisions):
            size = int(raw.get("size") or 0)
            # Batches are newest first, so the previous state is the next entry.
            if index < len(raw_revisions) - 1:
                prev_size = int(raw_revisions[index + 1].get("size") or 0)
            else:
                prev_size = size
            comment = raw.get("comment") or ""
            records.append(
                {
                    "rev_id": raw.get("revid"),
                    "timestamp": raw.get("timestamp"),
                    "user": raw.get("user"),
                    "user_id": raw.get("userid"),
                    "size": size,
                    "size_delta": size - prev_size,
                    "comment": comment,
                    "is_minor": bool(raw.get("minor")),
                    "is_revert": is_revert_comment(comment),
                    "is_anon": _is_anon(raw),
                }
            )

        revisions = parse_revisions(records)
        next_token = (data.get("continue") or {}).get("rvcontinue")
        return RevisionBatch(revisions=revisions, continue_token=next_token)

    def get_all_revisions(
        self,
        title: str,
        max_revisions: Optional[int] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> List[Revision]:
        """Follow continuation tokens until exhausted or a safety limit is hit."""
        limit = max_revisions if max_revisions is not None else self.config.max_revisions
        collected: List[Revision] = []
        token: Optional[str] = None
        requests = 0

        while True:
            batch = self.get_revisions(title, self.config.revisions_page_size, token)
            collected.extend(batch.revisions)
            token = batch.continue_token
            requests += 1

            if on_progress is not None:
                on_progress(len(collected))

            if not token or len(collected) >= limit or requests >= self.config.max_pages:
                break
            if self.config.page_delay > 0:
                time.sleep(self.config.page_delay)

        logger.info(
            "revisions_fetched",
            extra={"title": title, "count": len(collected), "requests": requests},
        )
        return collected

    def get_talk_revision_count(self, title: str) -> int:
        """Revisions on ``Talk:<title>``, capped at 500; 0 if unavailable."""
        try:
            data = self._query(
                {
                    "titles": f"Talk:{title}",
                    "prop": "revisions",
                    "rvprop": "ids",
                    "rvlimit": str(_TALK_LIMIT),
                }
            )
        except (httpx.HTTPError, WikipediaAPIError) as exc:
            logger.warning(
                "talk_count_failed",
                extra={"title": title, "error": str(exc)},
            )
            return 0

        page = self._first_page(data)
        if page is None or page.get("missing"):
            return 0
        return len(page.get("revisions") or [])

    # ------------------------------------------------------------------
    # Pageviews
    # ------------------------------------------------------------------

    def get_pageviews(
        self,
        title: str,
        days: Optional[int] = None,
        end_date: Optional[datetime] = None,
    ) -> List[PageviewPoint]:
        """Daily all-agent views for the trailing *days*; empty on 404."""
        span = days if days is not None else self.config.lookback_days
        end = resolve_reference(end_date)
        start = end - timedelta(days=span)
        encoded = quote(title.replace(" ", "_"), safe="")
        url = (
            f"{self.config.pageviews_url}/{self.config.project}/all-access/all-agents/"
            f"{encoded}/daily/{start:%Y%m%d}/{end:%Y%m%d}"
        )
        try:
            response = self.client.get(url)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return []
            raise
        items = response.json().get("items") or []
        return [
            PageviewPoint(date=str(item.get("timestamp", ""))[:8], views=int(item.get("views") or 0))
            for item in items
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _query(self, params: Dict[str, str]) -> Dict[str, Any]:
        full = {
            "action": "query",
            "format": "json",
            "formatversion": "2",
            **params,
        }
        response = self.client.get(self.config.api_url, params=full)
        data = response.json()
        if "error" in data:
            error = data["error"]
            raise WikipediaAPIError(
                f"{error.get('code', 'unknown')}: {error.get('info', '')}".strip()
            )
        return data

    @staticmethod
    def _first_page(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        pages = (data.get("query") or {}).get("pages") or []
        return pages[0] if pages else None
