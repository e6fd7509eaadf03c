"""Evaluation report dataclasses."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from reclaim.models.rule import Rule


class Status(enum.StrEnum):
    """Terminal (or initial) state of one evaluated rule."""

    PENDING = "pending"
    OK = "ok"
    PARTIAL = "partial"
    BLOCKED = "blocked"
    MISSING = "missing"
    MISSING_PATH = "missing_path"
    UNSUPPORTED = "unsupported"
    SKIPPED = "skipped"
    ERROR = "error"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class ItemReport:
    """Outcome of evaluating a single rule."""

    id: str
    title: str
    category: str
    risk: str
    total_bytes: int = 0
    file_count: int = 0
    status: Status = Status.PENDING
    message: str | None = None
    drive: str | None = None

    @classmethod
    def for_rule(cls, rule: Rule) -> ItemReport:
        """Start a pending report echoing the rule's identity."""
        return cls(id=rule.id, title=rule.title, category=rule.category, risk=rule.risk)

    @property
    def blocked(self) -> bool:
        return self.status is Status.BLOCKED

    @property
    def counts_toward_summary(self) -> bool:
        """Only completed (fully or partially) items contribute to totals."""
        return self.status in (Status.OK, Status.PARTIAL)

    def add(self, size_bytes: int, files: int) -> None:
        """Accumulate counters; both only ever grow."""
        self.total_bytes += max(size_bytes, 0)
        self.file_count += max(files, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "risk": self.risk,
            "total_bytes": self.total_bytes,
            "file_count": self.file_count,
            "status": self.status.value,
            "blocked": self.blocked,
            "message": self.message,
            "drive": self.drive,
        }


@dataclass(slots=True)
class SummaryBucket:
    """Aggregated bytes/files for one category or drive."""

    key: str
    bytes: int = 0
    files: int = 0
    percent: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "bytes": self.bytes, "files": self.files, "percent": self.percent}


@dataclass(slots=True)
class Summary:
    """Totals plus category and drive breakdowns."""

    total_bytes: int = 0
    total_files: int = 0
    by_category: list[SummaryBucket] = field(default_factory=list)
    by_drive: list[SummaryBucket] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_bytes": self.total_bytes,
            "total_files": self.total_files,
            "by_category": [b.to_dict() for b in self.by_category],
            "by_drive": [b.to_dict() for b in self.by_drive],
        }


@dataclass(slots=True)
class Report:
    """Result of a clean request."""

    items: list[ItemReport] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "summary": self.summary.to_dict(),
        }
