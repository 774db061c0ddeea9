from __future__ import annotations

from collections.abc import Iterator
import json
from pathlib import Path

import pytest

from history_app import telemetry
from history_app.telemetry import Event
from translation_core.models import PipelineState


@pytest.fixture
def log_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    telemetry.shutdown()
    monkeypatch.setenv("TRANSLATOR_LOGGING", "1")
    monkeypatch.setenv("TRANSLATOR_LOG_DIR", str(tmp_path))
    yield tmp_path
    telemetry.shutdown()


def _events(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines if line.strip()]


def test_events_are_written_as_json_lines(log_dir: Path) -> None:
    telemetry.setup(reset=True)
    telemetry.log_event(Event.HISTORY_INSERTED, record_id="abc", original_text="Hello")
    telemetry.log_error(Event.HISTORY_RECORD_CORRUPTED, ValueError("bad tags"), record_id="x")
    telemetry.shutdown()

    events = _events(log_dir / "translator.log")

    assert [event["event"] for event in events] == [
        "history.inserted",
        "history.record_corrupted",
    ]
    assert events[0]["record_id"] == "abc"
    assert events[0]["original_text_len"] == 5
    assert "Hello" not in json.dumps(events[0])
    assert events[1]["error_type"] == "ValueError"
    assert events[1]["error"] == "bad tags"


def test_provider_credentials_are_redacted() -> None:
    redacted = telemetry.redact_fields(
        {
            "app_id": "20240101abcdef",
            "secret_key": "hunter2",
            "sign": "0123456789abcdef",
            "salt": "1700000000000",
            "query": "Hello",
            "state": PipelineState.FAILED,
            "count": 3,
        }
    )

    assert redacted["app_id"] == "20240101***"
    assert redacted["secret_key"] == "***"
    assert redacted["sign"] == "***"
    assert redacted["salt"] == "***"
    assert "query" not in redacted
    assert redacted["query_len"] == 5
    assert redacted["state"] == "failed"
    assert redacted["count"] == 3
    assert "hunter2" not in json.dumps(redacted)


def test_pipeline_listener_records_terminal_states_only(log_dir: Path) -> None:
    telemetry.setup(reset=True)
    for state in (
        PipelineState.VALIDATING,
        PipelineState.REQUESTING,
        PipelineState.MAPPING,
        PipelineState.COMPLETED,
        PipelineState.FAILED,
    ):
        telemetry.log_pipeline_state(state)
    telemetry.shutdown()

    events = _events(log_dir / "translator.log")

    assert [event["event"] for event in events] == [
        "pipeline.completed",
        "pipeline.failed",
    ]


def test_disabled_logging_writes_nothing(
    log_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("TRANSLATOR_LOGGING", "0")

    telemetry.log_event(Event.HISTORY_OPENED, records=0)

    assert not (log_dir / "translator.log").exists()


def test_text_meta_of_empty_value() -> None:
    assert telemetry.text_meta("") == {"text_len": 0, "text_hash": ""}
