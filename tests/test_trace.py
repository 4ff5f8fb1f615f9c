import pytest

from core.trace import MAX_SNAPSHOT_BYTES, TraceRecorder, safe_snapshot, traced_step


class TestSafeSnapshot:
    def test_small_values_pass_through(self) -> None:
        assert safe_snapshot({"a": 1}) == {"a": 1}
        assert safe_snapshot(None) is None

    def test_large_values_are_summarized(self) -> None:
        snapshot = safe_snapshot("x" * (MAX_SNAPSHOT_BYTES + 10))
        assert snapshot["truncated"] is True
        assert snapshot["approxBytes"] > MAX_SNAPSHOT_BYTES

    def test_unserializable_values(self) -> None:
        circular: list = []
        circular.append(circular)
        assert safe_snapshot(circular) == {"snapshot": "unserializable"}


class TestTraceRecorder:
    def test_events_ignored_without_session(self) -> None:
        recorder = TraceRecorder()
        recorder.on_enter("detect", {})
        assert recorder.export() is None

    def test_session_export_uses_camel_case(self) -> None:
        recorder = TraceRecorder()
        session_id = recorder.start_session("abc123")
        recorder.on_enter("detect", {"type": "classify", "input": {"x": 1}})
        recorder.on_exit("detect", {"type": "classify", "output": {"format": "Swipe"}})
        recorder.end_session()
        exported = recorder.export()
        assert exported["sessionId"] == session_id
        assert exported["itemId"] == "abc123"
        assert exported["endedAt"] >= exported["startedAt"]
        enter, exit_ = exported["events"]
        assert enter == {"ts": enter["ts"], "event": "enter", "stepId": "detect", "type": "classify", "input": {"x": 1}}
        assert exit_["output"] == {"format": "Swipe"}

    def test_reset(self) -> None:
        recorder = TraceRecorder()
        recorder.start_session()
        recorder.reset()
        assert recorder.export() is None


@pytest.mark.asyncio
class TestTracedStep:
    async def test_success_records_summary(self) -> None:
        recorder = TraceRecorder()
        recorder.start_session()

        async def run() -> list[int]:
            return [1, 2, 3]

        result = await traced_step(recorder, "count", run, step_type="demo", summarize=len)
        assert result == [1, 2, 3]
        events = recorder.export()["events"]
        assert [e["event"] for e in events] == ["enter", "exit"]
        assert events[1]["output"] == 3

    async def test_failure_records_error_and_reraises(self) -> None:
        recorder = TraceRecorder()
        recorder.start_session()

        async def run() -> None:
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await traced_step(recorder, "parse", run)
        exit_event = recorder.export()["events"][-1]
        assert exit_event["output"] == {"error": {"name": "ValueError", "message": "bad input"}}

    async def test_without_observer(self) -> None:
        async def run() -> str:
            return "ok"

        assert await traced_step(None, "noop", run) == "ok"
