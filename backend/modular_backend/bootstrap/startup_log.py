"""Startup log collected while modules are discovered and initialised.

Every entry is kept in memory so it can be served by the diagnostics
endpoints, and mirrored to the standard `logging` module.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel

_LOGGER = logging.getLogger("modular_backend.startup")


class StartupLogEntry(BaseModel):
    timestamp: datetime
    level: str
    tag: str
    message: str


class StartupDiagnosticsSummary(BaseModel):
    """Summary statistics for startup diagnostics."""
    total_entries: int = 0
    error_count: int = 0
    warning_count: int = 0
    total_duration_ms: float = 0.0
    entries_by_tag: Dict[str, int] = {}
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class StartupLog:
    entries: List[StartupLogEntry] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    def log(self, level: int, message: str, tag: str = "startup") -> None:
        self.entries.append(
            StartupLogEntry(
                timestamp=datetime.now(timezone.utc),
                level=logging.getLevelName(level),
                tag=tag,
                message=message,
            )
        )
        _LOGGER.log(level, "[%s] %s", tag, message)

    def info(self, message: str, tag: str = "startup") -> None:
        self.log(logging.INFO, message, tag)

    def debug(self, message: str, tag: str = "startup") -> None:
        self.log(logging.DEBUG, message, tag)

    def warning(self, message: str, tag: str = "startup") -> None:
        self.log(logging.WARNING, message, tag)

    def error(self, message: str, tag: str = "startup") -> None:
        self.log(logging.ERROR, message, tag)

    def complete(self) -> None:
        self.completed_at = datetime.now(timezone.utc)

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    def summary(self) -> StartupDiagnosticsSummary:
        """Aggregate counts and the total duration of the startup."""
        end = self.completed_at or datetime.now(timezone.utc)
        duration: timedelta = end - self.started_at
        levels = Counter(e.level for e in self.entries)
        return StartupDiagnosticsSummary(
            total_entries=len(self.entries),
            error_count=levels.get("ERROR", 0) + levels.get("CRITICAL", 0),
            warning_count=levels.get("WARNING", 0),
            total_duration_ms=round(duration.total_seconds() * 1000.0, 2),
            entries_by_tag=dict(Counter(e.tag for e in self.entries)),
            started_at=self.started_at,
            completed_at=self.completed_at,
        )
