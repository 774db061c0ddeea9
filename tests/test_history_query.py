from __future__ import annotations

import pytest

from history_app.query import (
    DAY_MS,
    HistoryStatistics,
    SortOption,
    TimeBucket,
    bucket_for,
    compute_statistics,
    group_by_time,
    sort_records,
)
from history_app.records import TranslationRecord

NOW_MS = 1_700_000_000_000


def _record(
    record_id: str,
    original: str = "hello",
    *,
    age_ms: int = 0,
    source: str = "en",
    target: str = "zh",
    usage_count: int = 0,
    is_favorite: bool = False,
) -> TranslationRecord:
    return TranslationRecord(
        id=record_id,
        original_text=original,
        translated_text="你好",
        source_language_code=source,
        target_language_code=target,
        source_language_name="English",
        target_language_name="Chinese",
        provider="baidu",
        timestamp=NOW_MS - age_ms,
        usage_count=usage_count,
        is_favorite=is_favorite,
    )


@pytest.mark.parametrize(
    ("age_ms", "bucket"),
    [
        (0, TimeBucket.TODAY),
        (DAY_MS - 1, TimeBucket.TODAY),
        (DAY_MS, TimeBucket.THIS_WEEK),
        (7 * DAY_MS - 1, TimeBucket.THIS_WEEK),
        (7 * DAY_MS, TimeBucket.THIS_MONTH),
        (30 * DAY_MS, TimeBucket.OLDER),
        (-DAY_MS, TimeBucket.TODAY),
    ],
)
def test_bucket_boundaries(age_ms: int, bucket: TimeBucket) -> None:
    assert bucket_for(_record("r", age_ms=age_ms), NOW_MS) is bucket


def test_group_by_time_omits_empty_buckets_and_keeps_order() -> None:
    records = [
        _record("old", age_ms=90 * DAY_MS),
        _record("new", age_ms=1),
    ]

    groups = group_by_time(records, NOW_MS)

    assert [group.bucket for group in groups] == [TimeBucket.TODAY, TimeBucket.OLDER]
    assert [group.records[0].id for group in groups] == ["new", "old"]


def test_group_by_time_of_nothing_is_empty() -> None:
    assert group_by_time([], NOW_MS) == []


def test_sort_options() -> None:
    apple = _record("a", "apple", age_ms=3, usage_count=1, target="ja")
    banana = _record("b", "Banana", age_ms=1, usage_count=5)
    cherry = _record("c", "cherry", age_ms=2, usage_count=1, source="de")
    records = [apple, banana, cherry]

    def ids(option: SortOption) -> list[str]:
        return [record.id for record in sort_records(records, option)]

    assert ids(SortOption.TIMESTAMP_DESCENDING) == ["b", "c", "a"]
    assert ids(SortOption.TIMESTAMP_ASCENDING) == ["a", "c", "b"]
    assert ids(SortOption.USAGE_COUNT_DESCENDING) == ["b", "c", "a"]
    assert ids(SortOption.ALPHABETICAL) == ["a", "b", "c"]
    assert ids(SortOption.LANGUAGE_PAIR) == ["c", "a", "b"]


def test_equal_timestamps_break_ties_by_id() -> None:
    records = [_record("z"), _record("m"), _record("a")]

    ordered = sort_records(records, SortOption.TIMESTAMP_DESCENDING)

    assert [record.id for record in ordered] == ["a", "m", "z"]


def test_statistics_of_empty_history() -> None:
    assert compute_statistics([], NOW_MS) == HistoryStatistics()


def test_statistics_counts_are_cumulative() -> None:
    records = [
        _record("today", age_ms=DAY_MS // 2, is_favorite=True),
        _record("week", age_ms=3 * DAY_MS, target="ja"),
        _record("month", age_ms=10 * DAY_MS),
        _record("older", age_ms=40 * DAY_MS - DAY_MS // 2, source="fr"),
    ]

    stats = compute_statistics(records, NOW_MS)

    assert stats.total_count == 4
    assert stats.favorite_count == 1
    assert stats.today_count == 1
    assert stats.this_week_count == 2
    assert stats.this_month_count == 3
    assert stats.most_used_source_language == "en"
    assert stats.most_used_target_language == "zh"
    assert stats.average_translations_per_day == pytest.approx(4 / 40)


def test_statistics_average_uses_at_least_one_day() -> None:
    stats = compute_statistics([_record("one"), _record("two")], NOW_MS)

    assert stats.average_translations_per_day == pytest.approx(2.0)
