"""Roll per-rule reports up into category and drive buckets."""

from __future__ import annotations

from collections.abc import Iterable

from reclaim.models.report import ItemReport, Summary, SummaryBucket


def summarize(items: Iterable[ItemReport]) -> Summary:
    """Fold ``ok`` and ``partial`` items into totals and two bucket lists.

    Items without a drive still count toward totals and categories. Buckets
    are sorted by bytes, largest first, keeping first-seen order on ties.
    """
    total_bytes = 0
    total_files = 0
    by_category: dict[str, SummaryBucket] = {}
    by_drive: dict[str, SummaryBucket] = {}

    for item in items:
        if not item.counts_toward_summary:
            continue
        total_bytes += item.total_bytes
        total_files += item.file_count
        _accumulate(by_category, item.category, item)
        if item.drive:
            _accumulate(by_drive, item.drive, item)

    return Summary(
        total_bytes=total_bytes,
        total_files=total_files,
        by_category=_finish(by_category, total_bytes),
        by_drive=_finish(by_drive, total_bytes),
    )


def _accumulate(buckets: dict[str, SummaryBucket], key: str, item: ItemReport) -> None:
    bucket = buckets.get(key)
    if bucket is None:
        bucket = buckets[key] = SummaryBucket(key=key)
    bucket.bytes += item.total_bytes
    bucket.files += item.file_count


def _finish(buckets: dict[str, SummaryBucket], total_bytes: int) -> list[SummaryBucket]:
    ordered = sorted(buckets.values(), key=lambda b: b.bytes, reverse=True)
    for bucket in ordered:
        bucket.percent = percent_of(bucket.bytes, total_bytes)
    return ordered


def percent_of(part: int, total: int) -> float:
    """Share of *total* in percent; 0.0 when *total* is zero."""
    if total <= 0:
        return 0.0
    return part / total * 100.0
