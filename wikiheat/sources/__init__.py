"""wikiheat.sources: revision, talk-page and pageview collaborators."""

from __future__ import annotations

from wikiheat.sources.http import HostNotAllowedError, WikiHTTPClient
from wikiheat.sources.wikipedia import (
    PageNotFoundError,
    WikipediaAPIError,
    WikipediaClient,
    is_revert_comment,
)

__all__ = [
    "HostNotAllowedError",
    "PageNotFoundError",
    "WikiHTTPClient",
    "WikipediaAPIError",
    "WikipediaClient",
    "is_revert_comment",
]
