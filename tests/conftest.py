"""Shared pytest fixtures for the Wiki Heat test suite."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from wikiheat.models import Revision

# Ensure no real env vars bleed in during tests
os.environ.setdefault("WIKIHEAT_LOG_LEVEL", "DEBUG")

# ─── Anti-Flake Guardrails ───

FROZEN_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_revision(
    days_ago: float = 0.0,
    user: str | None = "Alice",
    is_revert: bool = False,
    is_anon: bool = False,
    comment: str = "",
    size: int = 1000,
    size_delta: int = 0,
    reference: datetime = FROZEN_TIME,
) -> Revision:
    """Helper to create a Revision *days_ago* days before *reference*."""
    return Revision(
        timestamp=reference - timedelta(days=days_ago),
        user=user,
        is_revert=is_revert,
        is_anon=is_anon,
        comment=comment,
        size=size,
        size_delta=size_delta,
    )


@pytest.fixture(autouse=True)
def isolated_store(tmp_path, monkeypatch):
    """Point the default page store at a temp path so no test reads ~/.wikiheat."""
    monkeypatch.setenv("WIKIHEAT_DB_PATH", str(tmp_path / "default.db"))


@pytest.fixture()
def now() -> datetime:
    return FROZEN_TIME


@pytest.fixture()
def make_rev():
    """Factory fixture wrapping make_revision."""
    return make_revision


@pytest.fixture()
def busy_history() -> List[Revision]:
    """A contested month: many editors, reverts and IP edits."""
    revisions: List[Revision] = []
    for i in range(40):
        revisions.append(
            make_revision(
                days_ago=i * 0.7,
                user=f"Editor{i % 12}" if i % 5 else f"10.0.0.{i}",
                is_revert=i % 3 == 0,
                is_anon=i % 5 == 0,
            )
        )
    return revisions


@pytest.fixture()
def tmp_db(tmp_path):
    """Return a Database instance backed by a temporary file."""
    from wikiheat.storage.database import Database

    db = Database(str(tmp_path / "test_pages.db"))
    yield db
    db.close()


@pytest.fixture()
def mock_settings(tmp_path):
    """Return a Settings instance with safe test defaults."""
    from wikiheat.config import Settings

    return Settings(
        db_path=str(tmp_path / "test.db"),
        log_level="DEBUG",
        page_delay=0.0,
        max_retries=1,
    )
