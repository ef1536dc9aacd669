from __future__ import annotations

import logging
from typing import Any

import pytest

from task_pipeline.pipeline.runner import PipelineRunner
from task_pipeline.pipeline.sanitize import TRUNCATION_MARKER
from task_pipeline.storage.json_file import JsonFileResultStore
from task_pipeline.storage.memory import InMemoryResultStore

from tests.unit.stubs import (
    LockedStore,
    LocksAfterFirstSaveStore,
    RecordingTask,
    build_registry,
)


def test_run_next_persists_result_and_returns_remaining_queue(subject: str) -> None:
    alpha = RecordingTask("alpha", result={"title": "A harbour at dusk"})
    runner = PipelineRunner(build_registry(alpha))
    store = InMemoryResultStore(subject)
    queue = ["alpha", "beta"]

    outcome = runner.run_next(store, queue)

    assert outcome.progressed
    assert outcome.task_name == "alpha"
    assert outcome.status == "done"
    assert outcome.remaining == ("beta",)
    assert queue == ["alpha", "beta"]
    assert store.get_prior("alpha") == {"title": "A harbour at dusk"}


def test_later_task_sees_earlier_result(subject: str) -> None:
    first = RecordingTask("first", result={"text": "caption"})
    second = RecordingTask("second")
    runner = PipelineRunner(build_registry(first, second))
    store = InMemoryResultStore(subject)

    runner.run_all(store, ["first", "second"])

    assert first.run_calls[0][1] == {}
    assert second.run_calls[0][1] == {"first": {"text": "caption"}}


def test_prior_results_include_previous_session_entries(subject: str) -> None:
    alpha = RecordingTask("alpha")
    store = InMemoryResultStore(subject)
    store.save_result("beta", {"keywords": ["harbour"]})
    runner = PipelineRunner(build_registry(alpha, RecordingTask("beta")))

    runner.run_next(store, ["alpha"])

    assert alpha.run_calls[0][1] == {"beta": {"keywords": ["harbour"]}}


def test_unknown_task_records_skip_without_raising(subject: str) -> None:
    statuses: list[tuple[str, dict[str, Any], str]] = []
    runner = PipelineRunner(build_registry())
    runner.on_after_task(lambda name, result, status: statuses.append((name, result, status)))
    store = InMemoryResultStore(subject)

    outcome = runner.run_next(store, ["ghost"])

    assert outcome.status == "no_handler"
    assert outcome.remaining == ()
    assert store.get_prior("ghost") == {"skipped": True, "reason": "no registered handler"}
    assert statuses == [("ghost", store.get_prior("ghost"), "no_handler")]


def test_unsupported_task_is_skipped_not_executed(subject: str) -> None:
    picky = RecordingTask("picky", supported=False)
    runner = PipelineRunner(build_registry(picky))
    store = InMemoryResultStore(subject)

    outcome = runner.run_next(store, ["picky"])

    assert outcome.status == "skipped"
    assert len(picky.supports_calls) == 1
    assert picky.run_calls == []
    assert store.get_prior("picky") == {"skipped": True, "reason": "not supported"}


def test_locked_store_blocks_progress(subject: str) -> None:
    alpha = RecordingTask("alpha")
    runner = PipelineRunner(build_registry(alpha))
    store = LockedStore(subject)
    queue = ["alpha"]

    outcome = runner.run_next(store, queue)

    assert not outcome.progressed
    assert outcome.remaining == ("alpha",)
    assert queue == ["alpha"]
    assert store.save_calls == 0
    assert alpha.supports_calls == []
    assert runner.run_all(store, queue) == []


def test_empty_queue_makes_no_progress(subject: str) -> None:
    runner = PipelineRunner(build_registry())

    outcome = runner.run_next(InMemoryResultStore(subject), [])

    assert not outcome.progressed
    assert outcome.remaining == ()


def test_failure_does_not_abort_queue(subject: str) -> None:
    broken = RecordingTask("broken", error=RuntimeError("model endpoint returned 502"))
    after = RecordingTask("after")
    runner = PipelineRunner(build_registry(broken, after))
    store = InMemoryResultStore(subject)

    outcomes = runner.run_all(store, ["broken", "after"])

    assert [item.status for item in outcomes] == ["failed", "done"]
    assert store.get_prior("broken") == {"failed": True, "error": "model endpoint returned 502"}
    assert store.get_prior("after") == {"task": "after", "ok": True}
    assert after.run_calls[0][1]["broken"]["failed"] is True


def test_failure_without_message_records_exception_type(subject: str) -> None:
    runner = PipelineRunner(build_registry(RecordingTask("quiet", error=KeyError())))
    store = InMemoryResultStore(subject)

    runner.run_next(store, ["quiet"])

    assert store.get_prior("quiet") == {"failed": True, "error": "KeyError"}


def test_non_mapping_result_is_recorded_as_failure(subject: str) -> None:
    odd = RecordingTask("odd", result=["not", "a", "mapping"])  # type: ignore[arg-type]
    runner = PipelineRunner(build_registry(odd))
    store = InMemoryResultStore(subject)

    outcome = runner.run_next(store, ["odd"])

    assert outcome.status == "failed"
    assert "expected a mapping" in store.get_prior("odd")["error"]


def test_unserializable_result_is_failed_and_store_keeps_working(
    tmp_path, subject: str
) -> None:
    bad = RecordingTask("bad", result={"when": object()})
    good = RecordingTask("good", result={"title": "Harbour"})
    runner = PipelineRunner(build_registry(bad, good))
    store = JsonFileResultStore(subject, tmp_path)

    outcomes = runner.run_all(store, ["bad", "good"])

    assert [item.status for item in outcomes] == ["failed", "done"]
    assert store.get_prior("bad")["failed"] is True
    assert "not JSON-serializable" in store.get_prior("bad")["error"]
    assert JsonFileResultStore(subject, tmp_path).get_prior("good") == {"title": "Harbour"}


def test_subject_injected_under_conventional_key(subject: str) -> None:
    alpha = RecordingTask("alpha")
    runner = PipelineRunner(build_registry(alpha))
    store = InMemoryResultStore(subject, inputs={"title": "Harbour"})

    runner.run_next(store, ["alpha"])

    inputs, _, context = alpha.run_calls[0]
    assert inputs == {"title": "Harbour", "image_url": subject}
    assert context == {"title": "Harbour"}
    assert alpha.supports_calls == [(inputs, context)]
    assert store.get_inputs() == {"title": "Harbour"}


def test_explicit_primary_input_is_not_overwritten(subject: str) -> None:
    alpha = RecordingTask("alpha")
    runner = PipelineRunner(build_registry(alpha))
    store = InMemoryResultStore(subject, inputs={"image_url": "https://example.org/other.jpg"})

    runner.run_next(store, ["alpha"])

    assert alpha.run_calls[0][0]["image_url"] == "https://example.org/other.jpg"


def test_custom_subject_key_and_missing_subject() -> None:
    alpha = RecordingTask("alpha")
    runner = PipelineRunner(build_registry(alpha), subject_key="text")

    runner.run_all(InMemoryResultStore("Some lyrics"), ["alpha"])
    runner.run_all(InMemoryResultStore(None, inputs={"html": "<p>x</p>"}), ["alpha"])

    assert alpha.run_calls[0][0] == {"text": "Some lyrics"}
    assert alpha.run_calls[1][0] == {"html": "<p>x</p>"}


def test_prior_results_are_sanitized_but_store_keeps_raw(subject: str) -> None:
    reader = RecordingTask("reader")
    runner = PipelineRunner(build_registry(reader))
    store = InMemoryResultStore(subject)
    store.save_result(
        "ocr",
        {"text": "x" * 10_000, "raw_response": {"pages": [1, 2]}, "blocks": [{"id": 1}]},
    )

    runner.run_next(store, ["reader"])

    seen = reader.run_calls[0][1]["ocr"]
    assert seen["text"] == "x" * 8000 + TRUNCATION_MARKER
    assert "raw_response" not in seen
    assert "blocks" not in seen
    durable = store.get_all_prior()["ocr"]
    assert durable["raw_response"] == {"pages": [1, 2]}
    assert len(durable["text"]) == 10_000


def test_hooks_receive_task_details(subject: str) -> None:
    events: list[tuple[Any, ...]] = []
    alpha = RecordingTask("alpha", result={"summary": "ok"})
    runner = (
        PipelineRunner(build_registry(alpha))
        .on_before_task(lambda name, inputs, prior: events.append(("before", name, inputs, prior)))
        .on_after_task(lambda name, result, status: events.append(("after", name, result, status)))
    )
    store = InMemoryResultStore(subject)

    runner.run_next(store, ["alpha"])

    assert events == [
        ("before", "alpha", {"image_url": subject}, {}),
        ("after", "alpha", {"summary": "ok"}, "done"),
    ]


def test_before_hook_is_not_called_for_skips(subject: str) -> None:
    calls: list[str] = []
    runner = PipelineRunner(build_registry(RecordingTask("picky", supported=False)))
    runner.on_before_task(lambda name, inputs, prior: calls.append(name))

    runner.run_all(InMemoryResultStore(subject), ["picky", "ghost"])

    assert calls == []


def test_before_hook_errors_propagate_and_nothing_is_saved(subject: str) -> None:
    alpha = RecordingTask("alpha")

    def explode(name: str, inputs: dict[str, Any], prior: dict[str, Any]) -> None:
        raise RuntimeError("hook failed")

    runner = PipelineRunner(build_registry(alpha)).on_before_task(explode)
    store = InMemoryResultStore(subject)

    with pytest.raises(RuntimeError, match="hook failed"):
        runner.run_next(store, ["alpha"])

    assert alpha.run_calls == []
    assert store.get_all_prior() == {}


def test_after_hook_errors_propagate_once_result_is_saved(subject: str) -> None:
    def explode(name: str, result: dict[str, Any], status: str) -> None:
        raise RuntimeError("display failed")

    runner = PipelineRunner(build_registry(RecordingTask("alpha"))).on_after_task(explode)
    store = InMemoryResultStore(subject)

    with pytest.raises(RuntimeError, match="display failed"):
        runner.run_next(store, ["alpha"])

    assert store.get_prior("alpha") == {"task": "alpha", "ok": True}


def test_run_all_stops_when_store_becomes_locked(subject: str) -> None:
    runner = PipelineRunner(build_registry(RecordingTask("a"), RecordingTask("b")))
    store = LocksAfterFirstSaveStore(subject)

    outcomes = runner.run_all(store, ["a", "b"])

    assert [item.task_name for item in outcomes] == ["a"]
    assert store.get_prior("b") is None


def test_rerun_overwrites_existing_entry(subject: str) -> None:
    runner = PipelineRunner(build_registry(RecordingTask("alpha", result={"version": 2})))
    store = InMemoryResultStore(subject)
    store.save_result("alpha", {"version": 1})

    runner.run_next(store, ["alpha"])

    assert store.get_prior("alpha") == {"version": 2}


def test_prefiltered_queue_leaves_completed_entries_untouched(tmp_path, subject: str) -> None:
    runner = PipelineRunner(build_registry(RecordingTask("alpha"), RecordingTask("beta")))
    store = JsonFileResultStore(subject, tmp_path)
    runner.run_all(store, ["alpha"])
    snapshot = store.get_prior("alpha")

    resumed = JsonFileResultStore(subject, tmp_path)
    queue = [name for name in ["alpha", "beta"] if resumed.get_prior(name) is None]
    runner.run_all(resumed, queue)

    assert queue == ["beta"]
    assert resumed.get_prior("alpha") == snapshot
    assert JsonFileResultStore(subject, tmp_path).get_all_prior() == {
        "alpha": {"task": "alpha", "ok": True},
        "beta": {"task": "beta", "ok": True},
    }


def test_injected_logger_receives_runner_events(subject: str, caplog) -> None:
    logger = logging.getLogger("tests.pipeline")
    runner = PipelineRunner(build_registry(), logger=logger)

    with caplog.at_level(logging.WARNING, logger="tests.pipeline"):
        runner.run_next(InMemoryResultStore(subject), ["ghost"])

    assert any("event=no_handler task=ghost" in record.getMessage() for record in caplog.records)
