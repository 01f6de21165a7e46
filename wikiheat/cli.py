"""Typer CLI for Wiki Heat — all operator-facing commands."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from wikiheat.models import PageviewStats, Revision, SignalSet, TimelinePoint, WeightConfig

app = typer.Typer(
    name="wikiheat",
    help="Wiki Heat — controversy heat scores from Wikipedia edit history.",
    add_completion=False,
)
console = Console()

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%SZ"]

_LEVEL_STYLES = {
    "low": "green",
    "moderate": "yellow",
    "high": "dark_orange",
    "critical": "bold red",
}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_settings(
    db_path: Optional[str] = None,
    log_level: Optional[str] = None,
) -> "Settings":  # type: ignore[name-defined]
    from wikiheat.config import Settings

    overrides: dict = {}
    if db_path:
        overrides["db_path"] = db_path
    if log_level:
        overrides["log_level"] = log_level.upper()
    return Settings(**overrides)  # type: ignore[arg-type]


# Attributes every LogRecord has; anything else arrived through ``extra=``.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {
    "message",
    "asctime",
    "taskName",
}


class EventFormatter(logging.Formatter):
    """Formats event-name log lines with their ``extra`` context.

    JSON mode emits one object per line; plain mode appends ``key=value``
    pairs after the event name.
    """

    def __init__(self, json_fmt: bool = False) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")
        self.json_fmt = json_fmt

    @staticmethod
    def extras(record: logging.LogRecord) -> Dict[str, object]:
        return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}

    def format(self, record: logging.LogRecord) -> str:
        context = self.extras(record)
        if not self.json_fmt:
            line = super().format(record)
            pairs = " ".join(f"{k}={v}" for k, v in context.items())
            return f"{line} {pairs}" if pairs else line

        payload: Dict[str, object] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            **context,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _setup_logging(level: str = "INFO", json_fmt: bool = False) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(EventFormatter(json_fmt))
    logging.basicConfig(level=numeric, handlers=[handler])


def _open_db(path: str) -> "Database":  # type: ignore[name-defined]
    from wikiheat.storage.database import Database

    return Database(path)


def _load_revisions(path: Path) -> List[Revision]:
    """Read a JSON list of revision records (or ``{"revisions": [...]}``)."""
    from wikiheat.scoring.signals import parse_revisions

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[bold red]Cannot read revisions from {path}: {exc}[/]")
        raise typer.Exit(1)

    if isinstance(data, dict):
        data = data.get("revisions", [])
    if not isinstance(data, list):
        console.print("[bold red]Expected a JSON list of revisions.[/]")
        raise typer.Exit(1)
    return parse_revisions(data)


def _effective_weights(cfg: "Settings") -> WeightConfig:  # type: ignore[name-defined]
    """Weights saved with ``wikiheat weights``, else the configured ones."""
    if not Path(cfg.db_path).expanduser().exists():
        return cfg.weight_config()
    with _open_db(cfg.db_path) as db:
        saved = db.get_weights()
    return saved or cfg.weight_config()


def _timeline_weeks(
    cfg: "Settings",  # type: ignore[name-defined]
    weeks: Optional[int],
    date_range: Optional[str],
) -> int:
    """``--weeks`` wins, then ``--range``, then the configured range."""
    from wikiheat.scoring.timeline import RANGE_PRESETS, weeks_for_range

    if weeks is not None:
        return weeks
    if date_range is not None:
        if date_range not in RANGE_PRESETS:
            choices = ", ".join(RANGE_PRESETS)
            console.print(f"[bold red]Unknown range {date_range!r}; use one of {choices}.[/]")
            raise typer.Exit(1)
        return weeks_for_range(date_range)
    return cfg.resolved_timeline_weeks()


def _level_text(score: float) -> str:
    from wikiheat.scoring.composer import get_heat_level

    level = get_heat_level(score).value
    style = _LEVEL_STYLES.get(level, "")
    return f"[{style}]{level}[/]"


# ---------------------------------------------------------------------------
# Offline commands
# ---------------------------------------------------------------------------


@app.command()
def score(
    file: Path = typer.Argument(..., help="JSON file of revision records."),
    protection: str = typer.Option("none", "--protection", help="Edit protection level."),
    talk_count: int = typer.Option(0, "--talk-count", min=0, help="Talk-page revision count."),
    at: Optional[datetime] = typer.Option(None, "--at", formats=_DATE_FORMATS, help="Reference date (UTC)."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Store holding saved weights."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
) -> None:
    """Score a saved revision history."""
    cfg = _get_settings(db_path=db_path, log_level=log_level)
    _setup_logging(cfg.log_level, cfg.log_json)

    from wikiheat.scoring.composer import get_normalized_signals, score_signals
    from wikiheat.scoring.signals import extract_signals

    revisions = _load_revisions(file)
    signals = extract_signals(
        revisions,
        protection_level=protection,
        talk_revision_count=talk_count,
        reference_date=at,
        window_days=cfg.window_days(),
    )
    heat = score_signals(signals, _effective_weights(cfg), cfg.thresholds())

    console.print(f"[bold]Heat:[/] {heat.score:.3f}  {_level_text(heat.score)}")
    _print_signal_table(signals)
    _print_breakdown(get_normalized_signals(signals, cfg.thresholds()))


@app.command()
def timeline(
    file: Path = typer.Argument(..., help="JSON file of revision records."),
    protection: str = typer.Option("none", "--protection", help="Edit protection level."),
    talk_count: int = typer.Option(0, "--talk-count", min=0, help="Talk-page revision count."),
    weeks: Optional[int] = typer.Option(None, "--weeks", min=1, help="Number of weekly points."),
    date_range: Optional[str] = typer.Option(None, "--range", help="Range preset: 30d, 90d, 1y, 5y."),
    end_date: Optional[datetime] = typer.Option(None, "--end-date", formats=_DATE_FORMATS, help="Newest cutoff (UTC)."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Store holding saved weights."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
) -> None:
    """Weekly heat history for a saved revision history."""
    cfg = _get_settings(db_path=db_path, log_level=log_level)
    _setup_logging(cfg.log_level, cfg.log_json)

    from wikiheat.scoring.timeline import calculate_heat_timeline

    weeks = _timeline_weeks(cfg, weeks, date_range)

    revisions = _load_revisions(file)
    points = calculate_heat_timeline(
        revisions,
        protection_level=protection,
        talk_revision_count=talk_count,
        weeks=weeks,
        end_date=end_date,
        weights=_effective_weights(cfg),
        window_days=cfg.window_days(),
        thresholds=cfg.thresholds(),
    )
    _print_timeline(points)


@app.command()
def editors(
    file: Path = typer.Argument(..., help="JSON file of revision records."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
) -> None:
    """Editor breakdown for a saved revision history."""
    _setup_logging(log_level)

    from wikiheat.scoring.editors import analyze_editors

    analysis = analyze_editors(_load_revisions(file))
    console.print(
        f"[bold]Editors:[/] {analysis.total_editors} total  "
        f"{analysis.registered_editors} registered  "
        f"{analysis.anonymous_editors} anonymous  "
        f"{analysis.bot_editors} bots  "
        f"{len(analysis.ip_editors)} IP edits"
    )
    _print_editor_table(analysis.top_editors)


# ---------------------------------------------------------------------------
# Live commands
# ---------------------------------------------------------------------------


@app.command()
def analyze(
    title: str = typer.Argument(..., help="Wikipedia article title."),
    weeks: Optional[int] = typer.Option(None, "--weeks", min=1, help="Number of weekly points."),
    date_range: Optional[str] = typer.Option(None, "--range", help="Range preset: 30d, 90d, 1y, 5y."),
    no_save: bool = typer.Option(False, "--no-save", is_flag=True, help="Do not track the page."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override page store path."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """Fetch an article's history from Wikipedia and score it."""
    cfg = _get_settings(db_path=db_path, log_level=log_level)
    _setup_logging(cfg.log_level, cfg.log_json)

    from wikiheat.pipeline import PageAnalyzer
    from wikiheat.sources.wikipedia import PageNotFoundError

    weeks = _timeline_weeks(cfg, weeks, date_range)
    db = _open_db(cfg.db_path)
    analyzer = PageAnalyzer(config=cfg, store=db)
    try:
        report = analyzer.analyze(title, weeks=weeks, save=not no_save)
    except PageNotFoundError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise typer.Exit(1)
    except Exception as exc:
        console.print(f"[bold red]Fatal: {exc}[/]")
        raise typer.Exit(2)
    finally:
        analyzer.close()
        db.close()

    heat = report.heat
    console.print(
        f"[bold]{report.page.title}[/]  heat {heat.score:.3f}  {_level_text(heat.score)}  "
        f"(protection={report.page.protection_level}, revisions={report.revision_count}, "
        f"talk={report.talk_revision_count})"
    )
    if report.pageviews:
        _print_pageview_stats(report.pageview_stats, len(report.pageviews))
    _print_breakdown(report.normalized)
    _print_timeline(report.timeline)
    _print_editor_table(report.editors.top_editors[:10])


@app.command()
def pages(
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override page store path."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """List tracked pages, hottest first."""
    cfg = _get_settings(db_path=db_path, log_level=log_level)
    _setup_logging(cfg.log_level, cfg.log_json)

    with _open_db(cfg.db_path) as db:
        records = db.list_pages()
        average = db.average_heat()

    if not records:
        console.print("[dim]No tracked pages.[/]")
        return

    table = Table(title=f"Tracked pages (average heat {average:.2f})")
    table.add_column("#", style="bold", width=3)
    table.add_column("Title")
    table.add_column("Heat", width=6)
    table.add_column("Level", width=10)
    table.add_column("Protection", width=18)
    table.add_column("Last fetched")
    for i, record in enumerate(records, start=1):
        fetched = record.last_fetched.strftime("%Y-%m-%d %H:%M") if record.last_fetched else "—"
        table.add_row(
            str(i),
            record.title,
            f"{record.current_heat:.2f}",
            _level_text(record.current_heat),
            record.protection_level,
            fetched,
        )
    console.print(table)


@app.command()
def remove(
    title: str = typer.Argument(..., help="Title of a tracked page."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override page store path."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """Stop tracking a page."""
    cfg = _get_settings(db_path=db_path, log_level=log_level)
    _setup_logging(cfg.log_level, cfg.log_json)

    with _open_db(cfg.db_path) as db:
        record = db.find_page(title)
        if record is None:
            console.print(f"[yellow]Not tracked: {title}[/]")
            raise typer.Exit(1)
        db.remove_page(record.page_id)
    console.print(f"[green]Removed {record.title}[/]")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", is_flag=True, help="Skip confirmation."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override page store path."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """Forget all tracked pages and saved weights."""
    cfg = _get_settings(db_path=db_path, log_level=log_level)
    _setup_logging(cfg.log_level, cfg.log_json)

    if not yes and not typer.confirm("Delete all tracked pages and saved weights?"):
        raise typer.Exit(1)
    with _open_db(cfg.db_path) as db:
        db.clear_all()
    console.print("[green]Store cleared.[/]")


@app.command()
def weights(
    edit_velocity: Optional[float] = typer.Option(None, "--edit-velocity", min=0.0),
    revert_ratio: Optional[float] = typer.Option(None, "--revert-ratio", min=0.0),
    unique_editors: Optional[float] = typer.Option(None, "--unique-editors", min=0.0),
    talk_activity: Optional[float] = typer.Option(None, "--talk-activity", min=0.0),
    protection: Optional[float] = typer.Option(None, "--protection", min=0.0),
    anon_ratio: Optional[float] = typer.Option(None, "--anon-ratio", min=0.0),
    reset: bool = typer.Option(False, "--reset", is_flag=True, help="Return to default weights."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override page store path."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """Show or change the saved scoring weights."""
    cfg = _get_settings(db_path=db_path, log_level=log_level)
    _setup_logging(cfg.log_level, cfg.log_json)

    updates = {
        key: value
        for key, value in {
            "edit_velocity": edit_velocity,
            "revert_ratio": revert_ratio,
            "unique_editors": unique_editors,
            "talk_activity": talk_activity,
            "protection": protection,
            "anon_ratio": anon_ratio,
        }.items()
        if value is not None
    }

    with _open_db(cfg.db_path) as db:
        if reset:
            db.reset_weights()
        elif updates:
            base = db.get_weights() or cfg.weight_config()
            db.set_weights(WeightConfig(**{**base.model_dump(), **updates}))
        saved = db.get_weights()

    effective = saved or cfg.weight_config()
    table = Table(title="Scoring weights" + (" (saved)" if saved else " (defaults)"))
    table.add_column("Signal", style="bold")
    table.add_column("Weight")
    for key, value in effective.model_dump().items():
        table.add_row(key, f"{value:.2f}")
    console.print(table)
    total = sum(effective.model_dump().values())
    if abs(total - 1.0) > 1e-3:
        console.print(f"[yellow]Weights sum to {total:.2f}; scores are not renormalised.[/]")


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _print_signal_table(signals: SignalSet) -> None:
    table = Table(title="Signals")
    table.add_column("Signal", style="bold")
    table.add_column("Value")
    for key, value in signals.model_dump().items():
        text = f"{value:.3f}" if isinstance(value, float) else str(value)
        table.add_row(key, text)
    console.print(table)


def _print_breakdown(normalized: Dict) -> None:
    table = Table(title="Normalised signals")
    table.add_column("Signal", style="bold")
    table.add_column("Raw")
    table.add_column("Normalised")
    for key, pair in normalized.items():
        table.add_row(key, f"{pair.raw:.3f}", f"{pair.normalized:.3f}")
    console.print(table)


def _print_pageview_stats(stats: PageviewStats, days: int) -> None:
    console.print(
        f"  pageviews over {days} days: total {stats.total:,}  avg {stats.average:,}/day  "
        f"max {stats.max:,}  min {stats.min:,}  trend {stats.trend:+.1%}"
    )


def _print_timeline(points: List[TimelinePoint]) -> None:
    if not points:
        console.print("[dim]No timeline points.[/]")
        return
    table = Table(title="Heat timeline")
    table.add_column("Week ending", width=12)
    table.add_column("Heat", width=6)
    table.add_column("Level", width=10)
    table.add_column("Edits 7d", width=8)
    table.add_column("Reverts 7d", width=10)
    table.add_column("Editors 30d", width=11)
    for point in points:
        table.add_row(
            point.date,
            f"{point.heat:.2f}",
            _level_text(point.heat),
            str(point.signals.edit_count_7d),
            str(point.signals.revert_count_7d),
            str(point.signals.unique_editors_30d),
        )
    console.print(table)


def _print_editor_table(top: list) -> None:
    if not top:
        console.print("[dim]No editors.[/]")
        return
    table = Table(title="Top editors")
    table.add_column("Editor")
    table.add_column("Edits", width=6)
    table.add_column("Reverts", width=7)
    table.add_column("Kind", width=10)
    table.add_column("Last edit")
    for editor in top:
        kind = "bot" if editor.is_bot else ("anonymous" if editor.is_anon else "registered")
        table.add_row(
            editor.name,
            str(editor.edit_count),
            str(editor.revert_count),
            kind,
            editor.last_edit.strftime("%Y-%m-%d"),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """CLI entry point registered in pyproject.toml."""
    app()


if __name__ == "__main__":
    main()
