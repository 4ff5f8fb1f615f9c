# tests/fakes/test_fake_uploader.py
"""Validate the uploader and item fetcher fakes."""

import pytest

from tests.fakes.fake_uploader import FakeItemFetcher, RecordingUploader


class TestRecordingUploader:
    async def test_records_calls_and_reports_transfer(self) -> None:
        uploader = RecordingUploader()
        result = await uploader("https://example.com/a.jpg", {"kind": "image"})
        assert result == {"resourceName": "media-1.jpg", "transferred": True}
        assert uploader.calls == [("https://example.com/a.jpg", {"kind": "image"})]

    async def test_fail_on_raises(self) -> None:
        uploader = RecordingUploader(fail_on={"https://example.com/bad.jpg"})
        with pytest.raises(RuntimeError):
            await uploader("https://example.com/bad.jpg", {})
        assert uploader.in_flight == 0

    async def test_keep_remote_reports_not_transferred(self) -> None:
        uploader = RecordingUploader(keep_remote={"https://example.com/x.jpg"})
        result = await uploader("https://example.com/x.jpg", {})
        assert result["transferred"] is False


class TestFakeItemFetcher:
    async def test_returns_configured_response(self) -> None:
        fetcher = FakeItemFetcher({"abc": {"version": "2.1"}})
        assert await fetcher("abc") == {"version": "2.1"}
        assert await fetcher("other") == {}
        assert fetcher.calls == ["abc", "other"]

    async def test_raises_configured_error(self) -> None:
        fetcher = FakeItemFetcher(errors={"abc": ValueError("boom")})
        with pytest.raises(ValueError):
            await fetcher("abc")
