"""Handler contract consumed by the registry and runner."""

from __future__ import annotations

from typing import Any, Literal, Protocol, runtime_checkable

TaskStatus = Literal["done", "skipped", "failed", "no_handler"]

TaskResult = dict[str, Any]

REASON_NO_HANDLER = "no registered handler"
REASON_NOT_SUPPORTED = "not supported"


@runtime_checkable
class TaskHandler(Protocol):
    """One named unit of work.

    ``name`` must be a constant readable from the class without running its
    constructor; it is persisted as the results key.
    """

    name: str

    def supports(self, inputs: dict[str, Any], context: dict[str, Any]) -> bool: ...

    def run(
        self,
        inputs: dict[str, Any],
        prior_results: dict[str, Any],
        context: dict[str, Any],
    ) -> TaskResult: ...

    def metadata(self) -> dict[str, Any]: ...


class BaseTask:
    """Optional convenience base with permissive defaults."""

    name: str = ""
    description: str = ""

    def supports(self, inputs: dict[str, Any], context: dict[str, Any]) -> bool:
        return True

    def run(
        self,
        inputs: dict[str, Any],
        prior_results: dict[str, Any],
        context: dict[str, Any],
    ) -> TaskResult:
        raise NotImplementedError

    def metadata(self) -> dict[str, Any]:
        return {"description": self.description, "platform": "local"}


def skipped_result(reason: str) -> TaskResult:
    return {"skipped": True, "reason": reason}


def failed_result(error: str) -> TaskResult:
    return {"failed": True, "error": error}


def is_sentinel(result: Any) -> bool:
    """True for runner-written skip/failure shapes."""
    if not isinstance(result, dict):
        return False
    return bool(result.get("skipped")) or bool(result.get("failed"))
