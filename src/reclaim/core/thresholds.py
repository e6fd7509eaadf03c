"""Size and age thresholds for individual files."""

from __future__ import annotations

from dataclasses import dataclass

from reclaim.models.rule import Rule

_MB = 1024 * 1024
_DAY = 24 * 60 * 60


def include(
    size: int,
    mtime: float | None,
    now: float,
    min_size: int | None = None,
    min_age: float | None = None,
) -> bool:
    """Decide whether a file passes the optional size and age thresholds.

    ``min_size`` is in bytes and ``min_age`` in seconds. A file whose age
    cannot be computed (no mtime, or an mtime in the future) passes the age
    check.
    """
    if min_size is not None and size < min_size:
        return False
    if min_age is not None and mtime is not None and 0 <= now - mtime < min_age:
        return False
    return True


@dataclass(frozen=True, slots=True)
class Thresholds:
    """Minimum size (bytes) and age (seconds); None means unconstrained."""

    min_size: int | None = None
    min_age: float | None = None

    @classmethod
    def from_rule(cls, rule: Rule) -> Thresholds:
        """Convert a rule's MB / day thresholds. Negative values are ignored."""
        min_size = None
        if rule.size_threshold_mb is not None and rule.size_threshold_mb >= 0:
            min_size = rule.size_threshold_mb * _MB
        min_age = None
        if rule.age_threshold_days is not None and rule.age_threshold_days >= 0:
            min_age = float(rule.age_threshold_days * _DAY)
        return cls(min_size=min_size, min_age=min_age)

    def include(self, size: int, mtime: float | None, now: float) -> bool:
        return include(size, mtime, now, self.min_size, self.min_age)


NO_THRESHOLDS = Thresholds()
