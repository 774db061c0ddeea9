from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Collection, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
import json
import logging
from typing import TypeVar

from history_app import telemetry
from history_app.backend import HistoryBackend, SqliteHistoryBackend
from history_app.query import (
    HistoryGroup,
    HistoryStatistics,
    SortOption,
    compute_statistics,
    filter_records,
    group_by_time,
    sort_records,
)
from history_app.records import (
    ALL_FIELDS,
    SearchField,
    TranslationRecord,
    add_tag,
    increment_usage,
    now_ms,
    record_from_result,
    record_from_row,
    remove_tag,
    toggle_favorite,
    update_notes,
    validate_record,
)
from translation_core.domain.errors import (
    CorruptedStateError,
    NotFoundError,
    StoreClosedError,
    ValidationError,
)
from translation_core.models import TranslationResult

_LOGGER = logging.getLogger(__name__)
_T = TypeVar("_T")

RecordUpdate = Callable[[TranslationRecord], TranslationRecord]


class HistoryStore:
    """Persistent translation history.

    Storage calls run on one dedicated worker thread, so the backend is never
    touched concurrently. Each mutation holds ``_write_lock`` and publishes a
    new snapshot mapping only after the backend commit succeeds. Reads work
    off whichever snapshot is currently published and need no lock.

    A mutation that has started always runs to completion, even if the
    awaiting task is cancelled, so a committed write is always visible.
    """

    def __init__(
        self,
        backend: HistoryBackend | None = None,
        *,
        sort_option: SortOption = SortOption.TIMESTAMP_DESCENDING,
        clock_ms: Callable[[], int] = now_ms,
    ) -> None:
        self._backend: HistoryBackend = backend or SqliteHistoryBackend()
        self.sort_option = sort_option
        self._clock_ms = clock_ms
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="history-store"
        )
        self._write_lock: asyncio.Lock | None = None
        self._snapshot: Mapping[str, TranslationRecord] = {}
        self._opened = False
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        self._ensure_usable()
        if self._opened:
            return
        async with self._lock():
            self._ensure_usable()
            if self._opened:
                return
            await self._run(self._backend.initialize)
            rows = await self._run(self._backend.load_rows)
            records: dict[str, TranslationRecord] = {}
            for row in rows:
                try:
                    record = record_from_row(row)
                except CorruptedStateError as exc:
                    await self._quarantine(exc, row)
                    continue
                records[record.id] = record
            self._snapshot = records
            self._opened = True
        telemetry.log_event(telemetry.Event.HISTORY_OPENED, records=len(records))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Writes already in flight hold the lock and finish first.
        async with self._lock():
            try:
                await self._run(self._backend.close)
            finally:
                self._opened = False
                self._snapshot = {}
                self._executor.shutdown(wait=True)

    def set_sort_option(self, option: SortOption) -> None:
        self.sort_option = option

    # Mutations

    async def insert(self, record: TranslationRecord) -> TranslationRecord:
        validate_record(record)

        async def write() -> TranslationRecord:
            if record.id in self._snapshot:
                raise ValidationError("id", f"record {record.id} already exists")
            await self._run(self._backend.upsert, record)
            self._publish({**self._snapshot, record.id: record})
            telemetry.log_event(
                telemetry.Event.HISTORY_INSERTED,
                record_id=record.id,
                provider=record.provider,
                original_text=record.original_text,
            )
            return record

        return await self._mutate(write)

    async def save_result(self, result: TranslationResult) -> str:
        record = await self.insert(record_from_result(result))
        return record.id

    async def get(self, record_id: str) -> TranslationRecord:
        await self.open()
        record = self._snapshot.get(record_id)
        if record is None:
            raise NotFoundError([record_id])
        return record

    async def toggle_favorite(self, record_id: str) -> TranslationRecord:
        return await self._update(record_id, toggle_favorite)

    async def increment_usage(self, record_id: str) -> TranslationRecord:
        accessed_at = self._clock_ms()
        return await self._update(
            record_id, lambda record: increment_usage(record, accessed_at)
        )

    async def add_tag(self, record_id: str, tag: str) -> TranslationRecord:
        return await self._update(record_id, lambda record: add_tag(record, tag))

    async def remove_tag(self, record_id: str, tag: str) -> TranslationRecord:
        return await self._update(record_id, lambda record: remove_tag(record, tag))

    async def update_notes(self, record_id: str, notes: str | None) -> TranslationRecord:
        return await self._update(record_id, lambda record: update_notes(record, notes))

    async def delete(self, record_id: str) -> None:
        await self.delete_batch([record_id])

    async def delete_batch(self, record_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return 0

        async def write() -> int:
            missing = [record_id for record_id in ids if record_id not in self._snapshot]
            if missing:
                raise NotFoundError(missing)
            deleted = await self._delete_ids(ids)
            telemetry.log_event(telemetry.Event.HISTORY_DELETED, count=deleted)
            return deleted

        return await self._mutate(write)

    async def clear_all(self, keep_favorites: bool = False) -> int:
        async def write() -> int:
            ids = [
                record.id
                for record in self._snapshot.values()
                if not (keep_favorites and record.is_favorite)
            ]
            deleted = await self._delete_ids(ids)
            telemetry.log_event(
                telemetry.Event.HISTORY_CLEARED,
                count=deleted,
                keep_favorites=keep_favorites,
            )
            return deleted

        return await self._mutate(write)

    async def delete_older_than(self, cutoff_ms: int, keep_favorites: bool = True) -> int:
        async def write() -> int:
            ids = [
                record.id
                for record in self._snapshot.values()
                if record.timestamp < cutoff_ms
                and not (keep_favorites and record.is_favorite)
            ]
            deleted = await self._delete_ids(ids)
            telemetry.log_event(
                telemetry.Event.HISTORY_PRUNED, count=deleted, cutoff_ms=cutoff_ms
            )
            return deleted

        return await self._mutate(write)

    # Queries

    async def search(
        self,
        query: str = "",
        fields: Collection[SearchField] = ALL_FIELDS,
        sort: SortOption | None = None,
    ) -> list[TranslationRecord]:
        await self.open()
        matched = filter_records(self._snapshot.values(), query, fields)
        return sort_records(matched, sort or self.sort_option)

    async def sorted_by(self, option: SortOption) -> list[TranslationRecord]:
        await self.open()
        return sort_records(self._snapshot.values(), option)

    async def favorites(self, sort: SortOption | None = None) -> list[TranslationRecord]:
        await self.open()
        matched = [record for record in self._snapshot.values() if record.is_favorite]
        return sort_records(matched, sort or self.sort_option)

    async def by_language_pair(
        self, source_code: str, target_code: str, sort: SortOption | None = None
    ) -> list[TranslationRecord]:
        await self.open()
        matched = [
            record
            for record in self._snapshot.values()
            if record.source_language_code == source_code
            and record.target_language_code == target_code
        ]
        return sort_records(matched, sort or self.sort_option)

    async def grouped_by_time(
        self,
        query: str = "",
        fields: Collection[SearchField] = ALL_FIELDS,
        sort: SortOption | None = None,
        now_ms: int | None = None,
    ) -> list[HistoryGroup]:
        records = await self.search(query, fields, sort)
        reference = self._clock_ms() if now_ms is None else now_ms
        return group_by_time(records, reference)

    async def statistics(self, now_ms: int | None = None) -> HistoryStatistics:
        await self.open()
        reference = self._clock_ms() if now_ms is None else now_ms
        return compute_statistics(list(self._snapshot.values()), reference)

    async def count(self) -> int:
        await self.open()
        return len(self._snapshot)

    # Internals

    async def _mutate(self, write: Callable[[], Awaitable[_T]]) -> _T:
        await self.open()

        async def locked() -> _T:
            async with self._lock():
                self._ensure_usable()
                return await write()

        # Shielded so a cancelled caller cannot split a commit from its publish.
        return await asyncio.shield(locked())

    async def _update(self, record_id: str, change: RecordUpdate) -> TranslationRecord:
        async def write() -> TranslationRecord:
            current = self._snapshot.get(record_id)
            if current is None:
                raise NotFoundError([record_id])
            updated = change(current)
            if updated is current:
                return current
            validate_record(updated)
            await self._run(self._backend.upsert, updated)
            self._publish({**self._snapshot, record_id: updated})
            telemetry.log_event(telemetry.Event.HISTORY_UPDATED, record_id=record_id)
            return updated

        return await self._mutate(write)

    async def _delete_ids(self, ids: list[str]) -> int:
        if not ids:
            return 0
        deleted = await self._run(self._backend.delete_ids, ids)
        removed = set(ids)
        self._publish(
            {key: value for key, value in self._snapshot.items() if key not in removed}
        )
        return deleted

    async def _quarantine(self, exc: CorruptedStateError, row: object) -> None:
        _LOGGER.warning("Quarantining corrupted history record %s", exc.record_id)
        telemetry.log_error(
            telemetry.Event.HISTORY_RECORD_CORRUPTED,
            exc,
            record_id=exc.record_id,
            reason=exc.reason,
        )
        payload = json.dumps(_row_payload(row), ensure_ascii=False, default=str)
        await self._run(self._backend.quarantine, exc.record_id, exc.reason, payload)

    def _publish(self, records: dict[str, TranslationRecord]) -> None:
        self._snapshot = records

    def _ensure_usable(self) -> None:
        if self._closed:
            raise StoreClosedError()

    def _lock(self) -> asyncio.Lock:
        lock = self._write_lock
        if lock is None:
            lock = asyncio.Lock()
            self._write_lock = lock
        return lock

    async def _run(self, func: Callable[..., _T], *args: object) -> _T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)


def _row_payload(row: object) -> dict[str, object]:
    keys = getattr(row, "keys", None)
    if keys is None:
        return {"row": repr(row)}
    return {key: row[key] for key in keys()}  # type: ignore[index]
