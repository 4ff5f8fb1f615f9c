import pytest

from core.exceptions import ConversionCancelledError
from core.transfer_orchestrator import ResourceTransferOrchestrator, normalize_source_url
from models.conversion_models import ProgressEvent, ProgressStage, TransferOutcome, TransferRequest
from tests.fakes.fake_uploader import RecordingUploader


class TestNormalizeSourceUrl:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("  https://Example.COM/a.jpg  ", "https://example.com/a.jpg"),
            ("HTTPS://example.com/a.jpg#top", "https://example.com/a.jpg"),
            ("//example.com/a.jpg", "https://example.com/a.jpg"),
            ("https://example.com", "https://example.com/"),
            ("images/local.png", "images/local.png"),
        ],
    )
    def test_normalization(self, raw: str, expected: str) -> None:
        assert normalize_source_url(raw) == expected

    def test_query_is_significant(self) -> None:
        assert normalize_source_url("https://e.com/a?x=1") != normalize_source_url("https://e.com/a?x=2")


@pytest.mark.asyncio
class TestResourceTransferOrchestrator:
    async def test_duplicates_transfer_once(self) -> None:
        uploader = RecordingUploader()
        orchestrator = ResourceTransferOrchestrator(uploader)
        outcomes = await orchestrator.run(
            ["https://example.com/a.jpg", "https://EXAMPLE.com/a.jpg#x", "https://example.com/b.jpg"]
        )
        assert uploader.urls == ["https://example.com/a.jpg", "https://example.com/b.jpg"]
        assert orchestrator.transfer_calls == 2
        assert set(outcomes) == {"https://example.com/a.jpg", "https://example.com/b.jpg"}
        assert orchestrator.outcome_for("https://example.com/a.jpg#other").resource_name == "media-1.jpg"

    async def test_duplicates_transfer_once_under_concurrency(self) -> None:
        uploader = RecordingUploader(delay=0.01)
        orchestrator = ResourceTransferOrchestrator(uploader, max_concurrency=4)
        await orchestrator.run(["https://example.com/a.jpg"] * 6 + ["https://example.com/b.jpg"] * 3)
        assert sorted(uploader.urls) == ["https://example.com/a.jpg", "https://example.com/b.jpg"]

    async def test_default_concurrency_is_sequential(self) -> None:
        uploader = RecordingUploader(delay=0.01)
        orchestrator = ResourceTransferOrchestrator(uploader, max_concurrency=1)
        await orchestrator.run([f"https://example.com/{i}.jpg" for i in range(4)])
        assert uploader.max_in_flight == 1

    async def test_bounded_concurrency(self) -> None:
        uploader = RecordingUploader(delay=0.02)
        orchestrator = ResourceTransferOrchestrator(uploader, max_concurrency=2)
        await orchestrator.run([f"https://example.com/{i}.jpg" for i in range(6)])
        assert uploader.max_in_flight == 2

    async def test_second_run_reuses_cached_outcome(self) -> None:
        uploader = RecordingUploader()
        orchestrator = ResourceTransferOrchestrator(uploader)
        await orchestrator.run(["https://example.com/a.jpg"])
        await orchestrator.run([TransferRequest(source_url="https://example.com/a.jpg", context={"kind": "image"})])
        assert orchestrator.transfer_calls == 1

    async def test_cancellation_before_any_transfer(self) -> None:
        uploader = RecordingUploader()
        orchestrator = ResourceTransferOrchestrator(uploader, is_cancelled=lambda: True)
        with pytest.raises(ConversionCancelledError):
            await orchestrator.run([f"https://example.com/{i}.jpg" for i in range(10)])
        assert uploader.calls == []
        assert orchestrator.cancelled

    async def test_cancellation_mid_batch_stops_new_transfers(self) -> None:
        uploader = RecordingUploader()
        orchestrator = ResourceTransferOrchestrator(uploader, is_cancelled=lambda: len(uploader.calls) >= 2)
        with pytest.raises(ConversionCancelledError):
            await orchestrator.run([f"https://example.com/{i}.jpg" for i in range(5)])
        assert len(uploader.calls) == 2

    async def test_failure_is_recorded_and_batch_continues(self) -> None:
        uploader = RecordingUploader(fail_on={"https://example.com/bad.jpg"})
        orchestrator = ResourceTransferOrchestrator(uploader)
        outcomes = await orchestrator.run(["https://example.com/bad.jpg", "https://example.com/good.jpg"])
        bad = outcomes["https://example.com/bad.jpg"]
        assert bad.transferred is False
        assert "upload failed" in (bad.error or "")
        assert outcomes["https://example.com/good.jpg"].transferred is True
        assert orchestrator.statistics()["kept_remote"] == 1

    async def test_progress_enter_then_exit_per_transfer(self) -> None:
        events: list[ProgressEvent] = []
        orchestrator = ResourceTransferOrchestrator(RecordingUploader(), progress=events.append)
        await orchestrator.run(["https://example.com/a.jpg", "https://example.com/b.jpg"])
        assert [e.stage for e in events] == [ProgressStage.MEDIA] * 4
        assert [e.current for e in events] == [1, 1, 2, 2]
        assert all(e.total == 2 for e in events)
        assert events[0].message.startswith("Transferring")
        assert events[1].message.startswith("Transferred")

    async def test_progress_sink_errors_are_ignored(self) -> None:
        def broken(event: ProgressEvent) -> None:
            raise RuntimeError("sink down")

        uploader = RecordingUploader()
        orchestrator = ResourceTransferOrchestrator(uploader, progress=broken)
        outcomes = await orchestrator.run(["https://example.com/a.jpg"])
        assert outcomes["https://example.com/a.jpg"].transferred

    async def test_uploader_may_return_outcome_instance(self) -> None:
        async def uploader(url: str, context: dict) -> TransferOutcome:
            return TransferOutcome(source_url="ignored", resource_name="x.png", transferred=True)

        outcomes = await ResourceTransferOrchestrator(uploader).run(["https://example.com/x.png"])
        assert outcomes["https://example.com/x.png"].source_url == "https://example.com/x.png"

    async def test_empty_batch(self) -> None:
        uploader = RecordingUploader()
        assert await ResourceTransferOrchestrator(uploader, is_cancelled=lambda: True).run([]) == {}
        assert uploader.calls == []
