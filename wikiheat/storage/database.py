"""SQLite WAL-mode store for tracked pages and saved scoring weights."""

from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from wikiheat.models import HeatLevel, PageRecord, SignalSet, TimelinePoint, WeightConfig

_WEIGHTS_KEY = "weights"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class Database:
    """Thin SQLite wrapper with WAL mode and parameterised queries.

    The DB file is created with permissions 0600 (owner r/w only).
    """

    def __init__(self, path: str = "~/.wikiheat/pages.db") -> None:
        self.path = str(Path(path).expanduser().resolve())
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = self._open()
        self._migrate()

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    def _open(self) -> sqlite3.Connection:
        """Open connection; create file with 0600 perms if new."""
        is_new = not Path(self.path).exists()
        conn = sqlite3.connect(self.path, check_same_thread=False)
        if is_new:
            os.chmod(self.path, 0o600)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def close(self) -> None:
        """Close the underlying connection."""
        if self._conn:
            self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Schema migration
    # ------------------------------------------------------------------

    def _migrate(self) -> None:
        """Create tables if they do not yet exist."""
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS pages (
                page_id          INTEGER PRIMARY KEY,
                title            TEXT    NOT NULL,
                protection_level TEXT    NOT NULL DEFAULT 'none',
                current_heat     REAL    NOT NULL DEFAULT 0.0,
                heat_level       TEXT    NOT NULL DEFAULT 'low',
                signals          TEXT    NOT NULL DEFAULT '{}',
                timeline         TEXT    NOT NULL DEFAULT '[]',
                added_at         TEXT    NOT NULL,
                last_fetched     TEXT
            );

            CREATE TABLE IF NOT EXISTS settings (
                key    TEXT PRIMARY KEY,
                value  TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_pages_heat
                ON pages(current_heat DESC);
            CREATE INDEX IF NOT EXISTS idx_pages_title
                ON pages(title);
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Page CRUD
    # ------------------------------------------------------------------

    def upsert_page(self, record: PageRecord, now: Optional[datetime] = None) -> PageRecord:
        """Insert a new page or refresh an existing one.

        ``added_at`` is kept from the first insert; ``last_fetched`` is
        always set to *now*.
        """
        stamp = now or _now()
        existing = self.get_page(record.page_id)
        added_at = (existing.added_at if existing else None) or record.added_at or stamp

        self._conn.execute(
            """
            INSERT INTO pages (
                page_id, title, protection_level, current_heat, heat_level,
                signals, timeline, added_at, last_fetched
            ) VALUES (?,?,?,?,?,?,?,?,?)
            ON CONFLICT(page_id) DO UPDATE SET
                title = excluded.title,
                protection_level = excluded.protection_level,
                current_heat = excluded.current_heat,
                heat_level = excluded.heat_level,
                signals = excluded.signals,
                timeline = excluded.timeline,
                last_fetched = excluded.last_fetched
            """,
            (
                record.page_id,
                record.title,
                record.protection_level,
                record.current_heat,
                record.heat_level.value,
                record.signals.model_dump_json(),
                json.dumps([p.model_dump(mode="json") for p in record.timeline]),
                added_at.isoformat(),
                stamp.isoformat(),
            ),
        )
        self._conn.commit()
        return record.model_copy(update={"added_at": added_at, "last_fetched": stamp})

    def get_page(self, page_id: int) -> Optional[PageRecord]:
        row = self._conn.execute(
            "SELECT * FROM pages WHERE page_id = ?", (page_id,)
        ).fetchone()
        return self._row_to_record(row) if row else None

    def find_page(self, title: str) -> Optional[PageRecord]:
        """Case-insensitive lookup by title; spaces and underscores are equivalent."""
        wanted = title.replace("_", " ").strip().lower()
        for record in self.list_pages():
            if record.title.replace("_", " ").lower() == wanted:
                return record
        return None

    def remove_page(self, page_id: int) -> bool:
        """Delete the page row; return True if one existed."""
        cur = self._conn.execute("DELETE FROM pages WHERE page_id = ?", (page_id,))
        self._conn.commit()
        return cur.rowcount > 0

    def list_pages(self) -> List[PageRecord]:
        """All tracked pages, hottest first."""
        rows = self._conn.execute(
            "SELECT * FROM pages ORDER BY current_heat DESC, added_at ASC"
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def page_count(self) -> int:
        return int(self._conn.execute("SELECT COUNT(*) FROM pages").fetchone()[0])

    def average_heat(self) -> float:
        """Mean current heat; 0.0 when nothing is tracked."""
        value = self._conn.execute("SELECT AVG(current_heat) FROM pages").fetchone()[0]
        return float(value) if value is not None else 0.0

    # ------------------------------------------------------------------
    # Saved weights
    # ------------------------------------------------------------------

    def get_weights(self) -> Optional[WeightConfig]:
        """Saved weights, or None to fall back to the defaults."""
        row = self._conn.execute(
            "SELECT value FROM settings WHERE key = ?", (_WEIGHTS_KEY,)
        ).fetchone()
        if not row:
            return None
        try:
            return WeightConfig.model_validate_json(row["value"])
        except ValidationError:
            return None

    def set_weights(self, weights: WeightConfig) -> None:
        self._conn.execute(
            """
            INSERT INTO settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (_WEIGHTS_KEY, weights.model_dump_json()),
        )
        self._conn.commit()

    def reset_weights(self) -> None:
        self._conn.execute("DELETE FROM settings WHERE key = ?", (_WEIGHTS_KEY,))
        self._conn.commit()

    def clear_all(self) -> None:
        """Forget every tracked page and saved setting."""
        self._conn.execute("DELETE FROM pages")
        self._conn.execute("DELETE FROM settings")
        self._conn.commit()

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Return a dict with store statistics."""
        last_fetch = self._conn.execute("SELECT MAX(last_fetched) FROM pages").fetchone()[0]
        return {
            "page_count": self.page_count(),
            "average_heat": round(self.average_heat(), 4),
            "custom_weights": self.get_weights() is not None,
            "last_fetched": last_fetch,
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> PageRecord:
        """Convert a DB row to a PageRecord."""
        d = dict(row)

        try:
            signals = SignalSet.model_validate_json(d.get("signals") or "{}")
        except ValidationError:
            signals = SignalSet()

        try:
            timeline = [
                TimelinePoint.model_validate(p) for p in json.loads(d.get("timeline") or "[]")
            ]
        except (json.JSONDecodeError, ValidationError):
            timeline = []

        try:
            level = HeatLevel(d.get("heat_level") or "low")
        except ValueError:
            level = HeatLevel.LOW

        return PageRecord(
            page_id=int(d["page_id"]),
            title=d.get("title", ""),
            protection_level=d.get("protection_level") or "none",
            current_heat=float(d.get("current_heat") or 0.0),
            heat_level=level,
            signals=signals,
            timeline=timeline,
            added_at=_parse_dt(d.get("added_at")),
            last_fetched=_parse_dt(d.get("last_fetched")),
        )
