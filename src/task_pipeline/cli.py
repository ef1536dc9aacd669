"""Command line entry point: run pipelines and list registered tasks."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from functools import partial
from typing import Any

from task_pipeline.config.settings import Settings, get_settings
from task_pipeline.errors import ResultStoreError, UnknownTaskError
from task_pipeline.pipeline.queue import completed_tasks, pending_tasks, resolve_queue
from task_pipeline.pipeline.runner import PipelineRunner
from task_pipeline.pipeline.sanitize import Sanitizer
from task_pipeline.storage.factory import STORE_BACKENDS, build_store
from task_pipeline.storage.json_file import JsonFileResultStore
from task_pipeline.tasks.base import TaskResult, TaskStatus, is_sentinel
from task_pipeline.tasks.registry import TaskRegistry, build_default_registry

_STATUS_LABELS = {
    "done": "done",
    "skipped": "skipped",
    "failed": "FAILED",
    "no_handler": "no handler",
}

_SUMMARY_KEYS = ("text", "description", "summary", "title")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="task-pipeline",
        description="Run named tasks against a subject and keep resumable results.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default from settings).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run pipeline tasks against a subject.")
    run_parser.add_argument(
        "subject",
        help="Primary input: image URL, text, or other subject. Use '-' to read stdin.",
    )
    run_parser.add_argument(
        "-t",
        "--tasks",
        default="all",
        help='Comma-separated task names or "all".',
    )
    run_parser.add_argument(
        "-s",
        "--store",
        choices=STORE_BACKENDS,
        default=None,
        help="Result store backend (default from settings).",
    )
    run_parser.add_argument("--store-dir", default=None, help="Directory for the json store.")
    run_parser.add_argument(
        "-i",
        "--input",
        dest="inputs",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Named input available to tasks; repeatable.",
    )
    run_parser.add_argument(
        "--subject-key",
        default=None,
        help="Input key the subject is exposed under (default from settings).",
    )
    run_parser.add_argument(
        "-p",
        "--pretty",
        action="store_true",
        help="Pretty-print full JSON results.",
    )
    run_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show inputs and prior result names before each task.",
    )

    tasks_parser = subparsers.add_parser("tasks", help="List registered tasks.")
    tasks_parser.add_argument(
        "--meta",
        action="store_true",
        help="Include handler metadata (instantiates every handler).",
    )
    return parser


def main(
    argv: list[str] | None = None,
    *,
    registry: TaskRegistry | None = None,
    settings: Settings | None = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    resolved_settings = settings or get_settings()
    logging.basicConfig(
        level=(args.log_level or resolved_settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    task_registry = registry or build_default_registry()

    if args.command == "tasks":
        return _cmd_tasks(args, task_registry)
    try:
        inputs = _parse_inputs(args.inputs)
    except ValueError as exc:
        parser.error(str(exc))
    return _cmd_run(args, task_registry, resolved_settings, inputs)


def _cmd_tasks(args: argparse.Namespace, registry: TaskRegistry) -> int:
    task_map = registry.task_names()
    if not task_map:
        print("No tasks registered.")
        return 0

    metadata = registry.metadata() if args.meta else {}
    width = max(len(name) for name in task_map)
    for name, identifier in task_map.items():
        line = f"{name:<{width}}  {identifier}"
        if args.meta:
            line += f"  {json.dumps(metadata.get(name, {}), ensure_ascii=False)}"
        print(line)
    print(f"{len(task_map)} task(s) registered.")
    return 0


def _cmd_run(
    args: argparse.Namespace,
    registry: TaskRegistry,
    settings: Settings,
    inputs: dict[str, str],
) -> int:
    subject = sys.stdin.read().strip() if args.subject == "-" else args.subject
    if not subject:
        print("No subject provided.", file=sys.stderr)
        return 1

    try:
        queue = resolve_queue(args.tasks, registry)
    except UnknownTaskError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    try:
        store = build_store(
            args.store,
            subject,
            inputs=inputs,
            store_dir=args.store_dir,
            settings=settings,
        )
    except ResultStoreError as exc:
        print(f"Result store unavailable: {exc}", file=sys.stderr)
        return 1

    already_done = completed_tasks(queue, store)
    pending = pending_tasks(queue, store)
    if already_done:
        print(f"Skipping already-completed: {', '.join(already_done)}")

    if not pending:
        print("All tasks already completed for this subject.")
    else:
        print(f"Running {len(pending)} task(s) against: {_clip(subject, 120)}")
        runner = PipelineRunner(
            registry,
            subject_key=args.subject_key or settings.subject_key,
            sanitizer=Sanitizer.from_settings(settings),
        )
        if args.verbose:
            runner.on_before_task(_print_before_task)
        runner.on_after_task(partial(_print_after_task, pretty=args.pretty))

        outcomes = runner.run_all(store, pending)
        if len(outcomes) < len(pending) and store.is_locked():
            print("Subject is locked by another worker; remaining tasks were not run.")

    print("")
    _print_results(store.get_all_prior(), pretty=args.pretty)
    if isinstance(store, JsonFileResultStore):
        print(f"Saved to: {store.file_path}")
    return 0


def _parse_inputs(raw_inputs: list[str]) -> dict[str, str]:
    inputs: dict[str, str] = {}
    for raw in raw_inputs:
        key, sep, value = raw.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid --input {raw!r}; expected KEY=VALUE")
        inputs[key.strip()] = value
    return inputs


def _print_before_task(name: str, inputs: dict[str, Any], prior_results: dict[str, Any]) -> None:
    print(f"  -> {name}")
    preview = {key: _clip(str(value), 80) for key, value in inputs.items()}
    print(f"     inputs: {json.dumps(preview, ensure_ascii=False)}")
    print(f"     prior:  [{', '.join(prior_results)}]")


def _print_after_task(
    name: str,
    result: TaskResult,
    status: TaskStatus,
    *,
    pretty: bool = False,
) -> None:
    print(f"  {name:<30} {_STATUS_LABELS.get(status, status)}")
    if status == "failed":
        print(f"     {result.get('error') or '(no message)'}")
    elif pretty and status == "done":
        print(json.dumps(result, indent=4, ensure_ascii=False))


def _print_results(results: dict[str, TaskResult], *, pretty: bool) -> None:
    if not results:
        return
    print("Results summary")
    for name, result in results.items():
        if is_sentinel(result):
            continue
        print(f"  {name:<25} {_summarize_result(result)}")
    if pretty:
        print("")
        print(json.dumps(results, indent=4, ensure_ascii=False))


def _summarize_result(result: TaskResult) -> str:
    for key in _SUMMARY_KEYS:
        value = result.get(key)
        if isinstance(value, str) and value:
            return _clip(value, 120)
    if isinstance(result.get("priority"), str):
        return str(result["priority"])
    for key in ("keywords", "entities"):
        values = result.get(key)
        if isinstance(values, list):
            return ", ".join(str(item) for item in values[:8])
    return _clip(json.dumps(result, ensure_ascii=False), 120)


def _clip(value: str, limit: int) -> str:
    compact = " ".join(value.split())
    if len(compact) <= limit:
        return compact
    return compact[:limit] + "…"


if __name__ == "__main__":
    raise SystemExit(main())
