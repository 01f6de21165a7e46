"""Per-editor breakdown of a revision history.

Display data only; nothing here feeds back into the heat score.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Dict, Iterable, List

from wikiheat.models import EditorAnalysis, EditorSummary, IPEdit, Revision
from wikiheat.scoring.signals import editor_identity

TOP_EDITORS = 20

_IPV4 = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")
# Loose on purpose: hex digits and colons, at least one colon.
_IPV6 = re.compile(r"^[0-9a-fA-F:]+$")


def is_ip_address(identity: str) -> bool:
    return bool(_IPV4.match(identity)) or (
        ":" in identity and bool(_IPV6.match(identity))
    )


def is_bot_name(identity: str) -> bool:
    return "bot" in identity.lower()


class _EditorTally:
    """Mutable accumulator for one editor while scanning revisions."""

    __slots__ = ("name", "edits", "reverts", "first", "last", "is_anon")

    def __init__(self, name: str, rev: Revision) -> None:
        self.name = name
        self.edits = 0
        self.reverts = 0
        self.first: datetime = rev.timestamp
        self.last: datetime = rev.timestamp
        self.is_anon = rev.is_anon

    def add(self, rev: Revision) -> None:
        self.edits += 1
        if rev.is_revert:
            self.reverts += 1
        if rev.timestamp < self.first:
            self.first = rev.timestamp
        if rev.timestamp > self.last:
            self.last = rev.timestamp

    def summary(self) -> EditorSummary:
        return EditorSummary(
            name=self.name,
            edit_count=self.edits,
            revert_count=self.reverts,
            first_edit=self.first,
            last_edit=self.last,
            is_anon=self.is_anon,
            is_bot=is_bot_name(self.name),
        )


def analyze_editors(revisions: Iterable[Revision]) -> EditorAnalysis:
    """Group revisions by editor identity in a single pass."""
    tallies: Dict[str, _EditorTally] = {}
    ip_edits: List[IPEdit] = []

    for rev in revisions:
        name = editor_identity(rev)
        tally = tallies.get(name)
        if tally is None:
            tally = tallies[name] = _EditorTally(name, rev)
        tally.add(rev)

        if rev.is_anon and is_ip_address(name):
            ip_edits.append(
                IPEdit(ip=name, timestamp=rev.timestamp, is_revert=rev.is_revert)
            )

    editors = [t.summary() for t in tallies.values()]
    # sorted() is stable, so ties keep first-seen order
    ranked = sorted(editors, key=lambda e: e.edit_count, reverse=True)

    return EditorAnalysis(
        total_editors=len(editors),
        anonymous_editors=sum(1 for e in editors if e.is_anon),
        bot_editors=sum(1 for e in editors if e.is_bot),
        registered_editors=sum(1 for e in editors if not e.is_anon and not e.is_bot),
        top_editors=ranked[:TOP_EDITORS],
        ip_editors=ip_edits,
    )
