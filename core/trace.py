# core/trace.py
"""Step tracing for conversions.

A trace observer receives `on_enter(step_id, payload)` / `on_exit(step_id, payload)`
around every conversion step. Observers are purely observational: an observer
that raises is logged and ignored, it can never change the conversion outcome.
"""

from __future__ import annotations

import json
import secrets
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, Field

from models.conversion_models import TraceObserver

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MAX_SNAPSHOT_BYTES = 10000


class TraceEvent(BaseModel):
    ts: float
    event: str
    step_id: str = Field(serialization_alias="stepId")
    type: str | None = None
    input: Any = None
    output: Any = None
    meta: dict[str, Any] | None = None


class TraceSession(BaseModel):
    session_id: str = Field(serialization_alias="sessionId")
    item_id: str | None = Field(default=None, serialization_alias="itemId")
    started_at: float = Field(serialization_alias="startedAt")
    ended_at: float | None = Field(default=None, serialization_alias="endedAt")
    events: list[TraceEvent] = Field(default_factory=list)


class TraceRecorder:
    """In-memory trace observer; one recorder per conversion session."""

    def __init__(self) -> None:
        self._session: TraceSession | None = None

    def start_session(self, item_id: str | None = None) -> str:
        now = time.time()
        session_id = f"sess-{int(now * 1000)}-{secrets.token_hex(3)}"
        self._session = TraceSession(session_id=session_id, item_id=item_id, started_at=now)
        return session_id

    def on_enter(self, step_id: str, payload: dict[str, Any]) -> None:
        if self._session is None:
            return
        self._session.events.append(
            TraceEvent(
                ts=time.time(),
                event="enter",
                step_id=step_id,
                type=payload.get("type"),
                input=payload.get("input"),
                meta=payload.get("meta"),
            )
        )

    def on_exit(self, step_id: str, payload: dict[str, Any]) -> None:
        if self._session is None:
            return
        self._session.events.append(
            TraceEvent(
                ts=time.time(),
                event="exit",
                step_id=step_id,
                type=payload.get("type"),
                output=payload.get("output"),
                meta=payload.get("meta"),
            )
        )

    def end_session(self) -> None:
        if self._session is not None:
            self._session.ended_at = time.time()

    def export(self) -> dict[str, Any] | None:
        if self._session is None:
            return None
        return self._session.model_dump(by_alias=True, exclude_none=True)

    def reset(self) -> None:
        self._session = None


def safe_snapshot(value: Any) -> Any:
    """Return `value` when it is small and JSON-serializable, else a summary."""
    try:
        encoded = json.dumps(value, default=str)
    except (TypeError, ValueError):
        return {"snapshot": "unserializable"}
    if len(encoded) > MAX_SNAPSHOT_BYTES:
        return {"truncated": True, "approxBytes": len(encoded)}
    return value


def _notify(observer: TraceObserver | None, hook: str, step_id: str, payload: dict[str, Any]) -> None:
    if observer is None:
        return
    try:
        getattr(observer, hook)(step_id, payload)
    except Exception as exc:
        logger.warning("Trace observer raised; ignoring", hook=hook, step_id=step_id, error=str(exc))


async def traced_step(
    observer: TraceObserver | None,
    step_id: str,
    run: Callable[[], Awaitable[T]],
    *,
    step_type: str | None = None,
    step_input: Any = None,
    summarize: Callable[[T], Any] | None = None,
) -> T:
    """Run one step between enter/exit trace events.

    The exit event carries either the summarized result or `{error: {name, message}}`;
    the step's exception is always re-raised unchanged.
    """
    _notify(observer, "on_enter", step_id, {"type": step_type, "input": safe_snapshot(step_input)})
    try:
        result = await run()
    except BaseException as exc:
        _notify(
            observer,
            "on_exit",
            step_id,
            {"type": step_type, "output": {"error": {"name": type(exc).__name__, "message": str(exc)}}},
        )
        raise
    output = summarize(result) if summarize is not None else None
    _notify(observer, "on_exit", step_id, {"type": step_type, "output": safe_snapshot(output)})
    return result
