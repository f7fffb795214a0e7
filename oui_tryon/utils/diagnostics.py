"""Bounded in-memory log of workflow milestones, exportable for support."""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger("oui_tryon.diagnostics")

DEFAULT_LIMIT = 300


@dataclass(frozen=True)
class DiagnosticEntry:
    """One timestamped line."""
    text: str
    timestamp: datetime = field(default_factory=datetime.now)

    def format(self) -> str:
        return f"{self.timestamp.strftime('%H:%M:%S.%f')[:-3]} {self.text}"


class DiagnosticLog:
    """Append-only log that keeps the most recent ``limit`` entries.

    Entries are stored in completion order. When the limit is reached the
    oldest entry is evicted. Every entry is mirrored to the
    ``oui_tryon.diagnostics`` logger at DEBUG level.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self._entries: deque[DiagnosticEntry] = deque(maxlen=limit)
        self._total = 0

    @property
    def limit(self) -> int:
        return self._entries.maxlen or DEFAULT_LIMIT

    @property
    def total_appended(self) -> int:
        """Entries appended since creation, including evicted ones."""
        return self._total

    def append(self, text: str) -> DiagnosticEntry:
        entry = DiagnosticEntry(text=text)
        self._entries.append(entry)
        self._total += 1
        logger.debug(text)
        return entry

    def snapshot(self) -> tuple[DiagnosticEntry, ...]:
        """Read-only copy of the retained entries, oldest first."""
        return tuple(self._entries)

    def lines(self, since: int = 0) -> list[str]:
        """Formatted lines for entries appended after ``since`` (a total_appended mark)."""
        skip = max(0, since - (self._total - len(self._entries)))
        return [entry.format() for entry in list(self._entries)[skip:]]

    def __len__(self) -> int:
        return len(self._entries)
