from __future__ import annotations

from collections import Counter
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Final

from history_app.records import ALL_FIELDS, SearchField, TranslationRecord

DAY_MS: Final[int] = 24 * 60 * 60 * 1000
WEEK_MS: Final[int] = 7 * DAY_MS
MONTH_MS: Final[int] = 30 * DAY_MS


class SortOption(Enum):
    TIMESTAMP_DESCENDING = "timestamp_desc"
    TIMESTAMP_ASCENDING = "timestamp_asc"
    USAGE_COUNT_DESCENDING = "usage_count_desc"
    ALPHABETICAL = "alphabetical"
    LANGUAGE_PAIR = "language_pair"


class TimeBucket(Enum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"
    OLDER = "older"


_BUCKET_ORDER: Final[tuple[TimeBucket, ...]] = (
    TimeBucket.TODAY,
    TimeBucket.THIS_WEEK,
    TimeBucket.THIS_MONTH,
    TimeBucket.OLDER,
)


@dataclass(frozen=True, slots=True)
class HistoryGroup:
    bucket: TimeBucket
    records: tuple[TranslationRecord, ...]

    @property
    def count(self) -> int:
        return len(self.records)


@dataclass(frozen=True, slots=True)
class HistoryStatistics:
    total_count: int = 0
    favorite_count: int = 0
    today_count: int = 0
    this_week_count: int = 0
    this_month_count: int = 0
    most_used_source_language: str | None = None
    most_used_target_language: str | None = None
    average_translations_per_day: float = 0.0


def _recency_key(record: TranslationRecord) -> tuple[int, str]:
    return (-record.timestamp, record.id)


def sort_records(
    records: Iterable[TranslationRecord], option: SortOption
) -> list[TranslationRecord]:
    items = list(records)
    if option is SortOption.TIMESTAMP_DESCENDING:
        return sorted(items, key=_recency_key)
    if option is SortOption.TIMESTAMP_ASCENDING:
        return sorted(items, key=lambda item: (item.timestamp, item.id))
    if option is SortOption.USAGE_COUNT_DESCENDING:
        return sorted(items, key=lambda item: (-item.usage_count, *_recency_key(item)))
    if option is SortOption.ALPHABETICAL:
        return sorted(
            items,
            key=lambda item: (item.original_text.casefold(), *_recency_key(item)),
        )
    return sorted(
        items, key=lambda item: (item.language_pair_code, *_recency_key(item))
    )


def filter_records(
    records: Iterable[TranslationRecord],
    query: str,
    fields: Collection[SearchField] = ALL_FIELDS,
) -> list[TranslationRecord]:
    return [record for record in records if record.contains_query(query, fields)]


def bucket_for(record: TranslationRecord, now_ms: int) -> TimeBucket:
    age = now_ms - record.timestamp
    if age < DAY_MS:
        return TimeBucket.TODAY
    if age < WEEK_MS:
        return TimeBucket.THIS_WEEK
    if age < MONTH_MS:
        return TimeBucket.THIS_MONTH
    return TimeBucket.OLDER


def group_by_time(
    records: Iterable[TranslationRecord], now_ms: int
) -> list[HistoryGroup]:
    buckets: dict[TimeBucket, list[TranslationRecord]] = {
        bucket: [] for bucket in _BUCKET_ORDER
    }
    for record in records:
        buckets[bucket_for(record, now_ms)].append(record)
    return [
        HistoryGroup(bucket=bucket, records=tuple(items))
        for bucket, items in buckets.items()
        if items
    ]


def compute_statistics(
    records: Collection[TranslationRecord], now_ms: int
) -> HistoryStatistics:
    if not records:
        return HistoryStatistics()
    ages = [now_ms - record.timestamp for record in records]
    source_counts = Counter(record.source_language_code for record in records)
    target_counts = Counter(record.target_language_code for record in records)
    oldest = min(record.timestamp for record in records)
    span_days = max(1, -(-(now_ms - oldest) // DAY_MS))
    return HistoryStatistics(
        total_count=len(records),
        favorite_count=sum(1 for record in records if record.is_favorite),
        today_count=sum(1 for age in ages if age < DAY_MS),
        this_week_count=sum(1 for age in ages if age < WEEK_MS),
        this_month_count=sum(1 for age in ages if age < MONTH_MS),
        most_used_source_language=source_counts.most_common(1)[0][0],
        most_used_target_language=target_counts.most_common(1)[0][0],
        average_translations_per_day=len(records) / span_days,
    )
