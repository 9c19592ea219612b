"""Structured operation logging for pingsvc.

Every CLI action runs inside an *operation scope*. When the scope closes a
single JSON record is appended to ``operations.jsonl`` in the configured logs
directory, and a one-line human summary is appended to ``pingsvc.log``.
Records look like::

    {
      "ts": "2026-01-01T12:00:00+00:00",
      "op_id": "9a1f...",
      "command": "unit create",
      "args": {"identity": "8.8.8.8"},
      "target": {"kind": "unit", "name": "continuous-ping-8-8-8-8.service"},
      "steps": [{"name": "definition.write", "status": "success", "detail": "..."}],
      "result": {"status": "success", "message": "...", "changed": 3, ...},
      "duration_ms": 12
    }

Logging must never break an operation: when the directory cannot be created
or a write fails the logger disables itself and keeps going.
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

LOGGER = logging.getLogger(__name__)

OPERATIONS_LOG = "operations.jsonl"
HUMAN_LOG = "pingsvc.log"


def _sanitize(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize(item) for item in value]
    return str(value)


class OperationScope:
    """Collects steps and the final result for one logged operation."""

    def __init__(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> None:
        """Initialise an empty scope for *command*."""
        self.command = command
        self.op_id = uuid.uuid4().hex
        self.args = dict(args or {})
        self.target = dict(target or {})
        self.steps: list[dict[str, object]] = []
        self.result: dict[str, object] | None = None
        self._started = time.monotonic()

    @property
    def finished(self) -> bool:
        """Return ``True`` once a result has been recorded."""
        return self.result is not None

    def add_step(self, name: str, *, status: str, detail: str | None = None) -> None:
        """Record an intermediate step."""
        step: dict[str, object] = {"name": name, "status": status}
        if detail:
            step["detail"] = detail
        self.steps.append(step)
        LOGGER.debug("%s: step %s -> %s %s", self.command, name, status, detail or "")

    def success(
        self,
        message: str,
        *,
        changed: int = 0,
        warnings: Sequence[str] = (),
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Record a successful outcome."""
        self._record("success", message, changed=changed, warnings=warnings, context=context)

    def warning(
        self,
        message: str,
        *,
        warnings: Sequence[str] = (),
        errors: Sequence[str] = (),
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Record an outcome that completed with warnings."""
        self._record(
            "warning",
            message,
            changed=changed,
            warnings=warnings,
            errors=errors,
            context=context,
        )

    def error(
        self,
        message: str,
        *,
        errors: Sequence[str] | None = None,
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Record a failed outcome."""
        self._record(
            "error",
            message,
            errors=list(errors) if errors else [message],
            rc=rc,
            context=context,
        )

    def to_record(self) -> dict[str, object]:
        """Return the JSON-safe record for this scope."""
        duration_ms = int((time.monotonic() - self._started) * 1000)
        return {
            "ts": datetime.now(UTC).isoformat(),
            "op_id": self.op_id,
            "command": self.command,
            "args": _sanitize(self.args),
            "target": _sanitize(self.target),
            "steps": _sanitize(self.steps),
            "result": self.result,
            "duration_ms": duration_ms,
        }

    def _record(
        self,
        status: str,
        message: str,
        *,
        changed: int = 0,
        warnings: Sequence[str] = (),
        errors: Sequence[str] = (),
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        result: dict[str, object] = {
            "status": status,
            "message": message,
            "changed": changed,
            "warnings": [str(item) for item in warnings],
            "errors": [str(item) for item in errors],
        }
        if rc is not None:
            result["rc"] = int(rc)
        if context:
            result["context"] = _sanitize(context)
        self.result = result


class StructuredLogger:
    """Append operation records to the pingsvc log directory."""

    def __init__(self, logs_dir: Path) -> None:
        """Prepare *logs_dir*; disable logging if it cannot be created."""
        self._logs_dir = Path(logs_dir)
        self._operations_log_path = self._logs_dir / OPERATIONS_LOG
        self._human_log_path = self._logs_dir / HUMAN_LOG
        self._enabled = True
        try:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.debug("Disabling structured logging, cannot create %s: %s", logs_dir, exc)
            self._enabled = False

    @property
    def enabled(self) -> bool:
        """Return whether records are currently being written."""
        return self._enabled

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Open a scope for *command* and persist it on exit."""
        scope = OperationScope(command, args=args, target=target)
        try:
            yield scope
        except BaseException as exc:
            if not scope.finished:
                scope.error(str(exc) or type(exc).__name__, errors=[repr(exc)])
            raise
        finally:
            if not scope.finished:
                scope.success("Operation completed.")
            self._write(scope)

    def _write(self, scope: OperationScope) -> None:
        if not self._enabled:
            return
        record = scope.to_record()
        result = record.get("result") or {}
        status = result.get("status", "unknown") if isinstance(result, dict) else "unknown"
        message = result.get("message", "") if isinstance(result, dict) else ""
        summary = f"{record['ts']} {status.upper()} {scope.command}: {message}\n"
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, sort_keys=True) + "\n")
            with self._human_log_path.open("a", encoding="utf-8") as handle:
                handle.write(summary)
        except OSError as exc:
            LOGGER.debug("Disabling structured logging after write failure: %s", exc)
            self._enabled = False


__all__ = ["OperationScope", "StructuredLogger"]
