from __future__ import annotations

import argparse
import asyncio
from dataclasses import asdict
from datetime import datetime
import json
import sys
from pathlib import Path

from history_app.container import AppServices
from history_app.query import HistoryGroup, SortOption
from history_app.records import TranslationRecord
from translation_core.config import load_config
from translation_core.domain.errors import TranslatorError
from translation_core.models import AUTO_DETECT_CODE, TranslationResult

DEFAULT_SOURCE = AUTO_DETECT_CODE
DEFAULT_TARGET = "zh"

_BUCKET_TITLES = {
    "today": "Today",
    "this_week": "This week",
    "this_month": "This month",
    "older": "Older",
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="translator",
        description="Translate text and manage the local translation history.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to provider_config.json (defaults to the XDG config dir).",
    )
    parser.add_argument(
        "--format",
        choices=("lines", "json"),
        default="lines",
        help="Output format.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    translate = commands.add_parser("translate", help="Translate a piece of text.")
    translate.add_argument("text")
    translate.add_argument("--source", default=DEFAULT_SOURCE)
    translate.add_argument("--target", default=DEFAULT_TARGET)
    translate.add_argument(
        "--no-history", action="store_true", help="Do not record the translation."
    )

    history = commands.add_parser("history", help="Inspect translation history.")
    actions = history.add_subparsers(dest="action", required=True)
    listing = actions.add_parser("list")
    listing.add_argument(
        "--sort",
        choices=[option.value for option in SortOption],
        default=SortOption.TIMESTAMP_DESCENDING.value,
    )
    listing.add_argument("--favorites", action="store_true")
    listing.add_argument("--grouped", action="store_true")
    search = actions.add_parser("search")
    search.add_argument("query")
    favorite = actions.add_parser("favorite")
    favorite.add_argument("record_id")
    delete = actions.add_parser("delete")
    delete.add_argument("record_ids", nargs="+")
    clear = actions.add_parser("clear")
    clear.add_argument(
        "--all", action="store_true", help="Also delete favorite records."
    )
    actions.add_parser("stats")
    return parser


def _record_payload(record: TranslationRecord) -> dict[str, object]:
    return {
        "id": record.id,
        "original_text": record.original_text,
        "translated_text": record.translated_text,
        "source_language": record.source_language_code,
        "target_language": record.target_language_code,
        "timestamp": record.timestamp,
        "is_favorite": record.is_favorite,
        "usage_count": record.usage_count,
        "tags": list(record.tags),
        "notes": record.notes,
    }


def _result_payload(result: TranslationResult) -> dict[str, object]:
    warning = result.persistence_warning
    return {
        "translated_text": result.translated_text,
        "source_language": result.source_language.code,
        "target_language": result.target_language.code,
        "confidence": result.confidence,
        "provider": result.provider,
        "record_id": result.record_id,
        "warning": str(warning) if warning is not None else None,
    }


def _format_record(record: TranslationRecord) -> str:
    stamp = datetime.fromtimestamp(record.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
    star = "*" if record.is_favorite else " "
    return (
        f"{star} {record.id[:8]}  {stamp}  [{record.language_pair_code}]  "
        f"{record.original_text} -> {record.translated_text}"
    )


def _print_records(records: list[TranslationRecord], output: str) -> None:
    if output == "json":
        payload = [_record_payload(item) for item in records]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    for record in records:
        print(_format_record(record))


def _print_groups(groups: list[HistoryGroup], output: str) -> None:
    if output == "json":
        payload = [
            {
                "bucket": group.bucket.value,
                "count": group.count,
                "records": [_record_payload(item) for item in group.records],
            }
            for group in groups
        ]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    for group in groups:
        print(f"{_BUCKET_TITLES[group.bucket.value]} ({group.count})")
        for record in group.records:
            print(f"  {_format_record(record)}")


def _print_result(result: TranslationResult, output: str) -> None:
    if output == "json":
        print(json.dumps(_result_payload(result), ensure_ascii=False, indent=2))
        return
    print(result.translated_text)
    print(
        f"  {result.source_language.display_text} -> {result.target_language.display_text}"
    )
    if result.persistence_warning is not None:
        print(f"  warning: {result.persistence_warning}", file=sys.stderr)


async def _run_translate(services: AppServices, args: argparse.Namespace) -> None:
    pipeline = services.pipeline()
    if args.no_history:
        pipeline.save_history = False
    result = await pipeline.translate(args.text, args.source, args.target)
    _print_result(result, args.format)


async def _run_history(services: AppServices, args: argparse.Namespace) -> None:
    store = services.history()
    action = args.action
    if action == "list":
        sort = SortOption(args.sort)
        if args.grouped:
            _print_groups(await store.grouped_by_time(sort=sort), args.format)
        elif args.favorites:
            _print_records(await store.favorites(sort), args.format)
        else:
            _print_records(await store.sorted_by(sort), args.format)
    elif action == "search":
        _print_records(await store.search(args.query), args.format)
    elif action == "favorite":
        record = await store.toggle_favorite(await _resolve_id(services, args.record_id))
        _print_records([record], args.format)
    elif action == "delete":
        ids = [await _resolve_id(services, item) for item in args.record_ids]
        deleted = await store.delete_batch(ids)
        print(f"deleted {deleted}")
    elif action == "clear":
        deleted = await store.clear_all(keep_favorites=not args.all)
        print(f"deleted {deleted}")
    elif action == "stats":
        stats = await store.statistics()
        print(json.dumps(asdict(stats), indent=2))


async def _resolve_id(services: AppServices, prefix: str) -> str:
    # The list view prints short ids; accept any unique prefix.
    records = await services.history().search("")
    matches = [record.id for record in records if record.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    return prefix


async def _run(args: argparse.Namespace) -> int:
    services = AppServices(config=load_config(args.config))
    try:
        if args.command == "translate":
            await _run_translate(services, args)
        else:
            await _run_history(services, args)
    except TranslatorError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        await services.aclose()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
