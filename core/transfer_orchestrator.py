# core/transfer_orchestrator.py
"""Resolve remote media references through an injected transfer function.

The orchestrator never performs network I/O itself. It deduplicates by normalized
source URL, reports progress around each unique transfer, and honors cooperative
cancellation before starting any new unique transfer.

Notes:
    - Concurrency is bounded by a semaphore (default 1, strictly sequential).
    - The dedup table is checked and filled without an intervening await, so two
      requests for the same URL can never both trigger a real transfer.
    - A failing transfer is recorded as `transferred=False`; it never aborts the batch.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import structlog

import config
from core.exceptions import ConversionCancelledError, create_error_context
from models.conversion_models import (
    CancellationCheck,
    ProgressEvent,
    ProgressSink,
    ProgressStage,
    TransferOutcome,
    TransferRequest,
    Uploader,
)

logger = structlog.get_logger(__name__)


def normalize_source_url(url: str) -> str:
    """Normalize a media URL for dedup: trim, lower-case scheme/host, drop the fragment.

    Protocol-relative URLs (`//host/path`) are treated as https.
    """
    candidate = str(url).strip()
    if candidate.startswith("//"):
        candidate = "https:" + candidate
    parts = urlsplit(candidate)
    if not parts.scheme or not parts.netloc:
        return candidate
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, ""))


class ResourceTransferOrchestrator:
    """Drive the transfer of every unique media source discovered while building.

    Args:
        transfer: Async `transfer(url, context)` returning a `TransferOutcome` or a
            `{resourceName, transferred}` mapping. The sole I/O boundary.
        progress: Optional synchronous progress sink.
        is_cancelled: Optional predicate consulted before each unique transfer.
        max_concurrency: Upper bound on transfers in flight.
    """

    def __init__(
        self,
        transfer: Uploader,
        *,
        progress: ProgressSink | None = None,
        is_cancelled: CancellationCheck | None = None,
        max_concurrency: int | None = None,
    ):
        self._transfer = transfer
        self._progress = progress
        self._is_cancelled = is_cancelled
        limit = max_concurrency if max_concurrency is not None else config.settings.MAX_CONCURRENT_TRANSFERS
        self._semaphore = asyncio.Semaphore(max(1, limit))
        self._outcomes: dict[str, asyncio.Future[TransferOutcome]] = {}
        self._cancelled = False
        self._started = 0
        self._total = 0
        self.transfer_calls = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _emit(self, message: str, current: int | None = None, total: int | None = None) -> None:
        if self._progress is None:
            return
        event = ProgressEvent(stage=ProgressStage.MEDIA, message=message, current=current, total=total)
        try:
            self._progress(event)
        except Exception as exc:
            logger.warning("Progress sink raised; ignoring", error=str(exc), message=message)

    def _check_cancelled(self) -> None:
        if self._cancelled:
            raise ConversionCancelledError()
        if self._is_cancelled is not None and self._is_cancelled():
            self._cancelled = True
            logger.info("Cancellation observed before media transfer", started=self._started, total=self._total)
            raise ConversionCancelledError(
                details=create_error_context(transfers_started=self._started, transfers_total=self._total)
            )

    async def _run_unique(self, key: str, request: TransferRequest) -> TransferOutcome:
        async with self._semaphore:
            self._check_cancelled()
            self._started += 1
            index = self._started
            self._emit(f"Transferring media {index}/{self._total}", index, self._total)
            self.transfer_calls += 1
            try:
                result = await self._transfer(request.source_url, dict(request.context))
                outcome = TransferOutcome.from_uploader_result(request.source_url, result)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(
                    "Media transfer failed; keeping remote reference",
                    url=request.source_url,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                outcome = TransferOutcome(source_url=request.source_url, transferred=False, error=str(exc))
            status = "Transferred" if outcome.transferred else "Kept remote"
            self._emit(f"{status} media {index}/{self._total}", index, self._total)
            return outcome

    def _register(self, request: TransferRequest) -> asyncio.Future[TransferOutcome] | None:
        """Return a new task for a first-seen URL, or `None` when already known."""
        key = normalize_source_url(request.source_url)
        if key in self._outcomes:
            return None
        task = asyncio.ensure_future(self._run_unique(key, request))
        self._outcomes[key] = task
        return task

    async def run(self, requests: Iterable[TransferRequest | str]) -> dict[str, TransferOutcome]:
        """Transfer every unique source and return outcomes keyed by normalized URL.

        Raises:
            ConversionCancelledError: Once `is_cancelled()` is observed true. Work
                already done is discarded and tasks not yet started never start.
        """
        queue = [r if isinstance(r, TransferRequest) else TransferRequest(source_url=str(r)) for r in requests]
        unique_keys = {normalize_source_url(r.source_url) for r in queue} - set(self._outcomes)
        self._total += len(unique_keys)
        if not queue:
            return {}

        # Observe a cancellation that happened before any transfer was scheduled.
        self._check_cancelled()

        tasks = [task for task in (self._register(r) for r in queue) if task is not None]
        if tasks:
            try:
                await asyncio.gather(*tasks)
            except ConversionCancelledError:
                self._cancelled = True
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
        return self.outcomes()

    def outcomes(self) -> dict[str, TransferOutcome]:
        return {
            key: future.result()
            for key, future in self._outcomes.items()
            if future.done() and not future.cancelled() and future.exception() is None
        }

    def outcome_for(self, url: str) -> TransferOutcome | None:
        future = self._outcomes.get(normalize_source_url(url))
        if future is None or not future.done() or future.cancelled() or future.exception() is not None:
            return None
        return future.result()

    def statistics(self) -> Mapping[str, Any]:
        outcomes = self.outcomes()
        return {
            "unique_sources": len(self._outcomes),
            "transfer_calls": self.transfer_calls,
            "transferred": sum(1 for o in outcomes.values() if o.transferred),
            "kept_remote": sum(1 for o in outcomes.values() if not o.transferred),
            "cancelled": self._cancelled,
        }
