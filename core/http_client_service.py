# core/http_client_service.py
"""Perform HTTP I/O against a portal for classic items, webmap data and media.

This module is the only place the converter touches the network. The conversion
core never imports it; callers inject its pieces through
[`ConversionOptions`](models/conversion_models.py:1):

- `PortalClient.fetch_webmap_data` as `item_data_fetcher`
- `MediaDownloader` as `uploader`

Notes:
    - Requests are concurrency-limited via a semaphore.
    - Retries are applied for transient failures and server/rate-limit responses.
"""

import asyncio
import hashlib
import mimetypes
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import httpx
import structlog

import config
from core.exceptions import PortalRequestError, TransferError, create_error_context
from utils.file_io import write_bytes_file

logger = structlog.get_logger(__name__)


class HTTPClientService:
    """Perform concurrency-limited HTTP GET requests with retries."""

    def __init__(
        self,
        timeout: float = config.HTTPX_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the HTTP client.

        Args:
            timeout: Request timeout in seconds.
            transport: Optional transport override (tests use `httpx.MockTransport`).
        """
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True)
        self._semaphore = asyncio.Semaphore(config.MAX_CONCURRENT_HTTP_REQUESTS)
        self.request_count = 0
        self._stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "retry_attempts": 0,
        }

        logger.info(
            "HTTPClientService initialized",
            timeout=timeout,
            concurrency_limit=config.MAX_CONCURRENT_HTTP_REQUESTS,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()
        logger.debug("HTTPClientService closed")

    async def __aenter__(self) -> "HTTPClientService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        max_retries: int | None = None,
    ) -> httpx.Response:
        """GET a URL with retry behavior.

        Args:
            url: Target URL for the request.
            params: Optional query parameters.
            max_retries: Maximum attempts. When omitted, defaults to the configured value.

        Returns:
            The successful HTTP response.

        Raises:
            httpx.TimeoutException: When all attempts time out.
            httpx.HTTPStatusError: When a non-retryable status occurs or retries are
                exhausted.
            httpx.RequestError: When the request fails and retries are exhausted.
        """
        async with self._semaphore:
            self._stats["total_requests"] += 1
            self.request_count += 1

            effective_max_retries = max(1, max_retries if max_retries is not None else config.HTTP_RETRY_ATTEMPTS)
            last_exception: Exception | None = None

            for attempt in range(effective_max_retries):
                try:
                    logger.debug("HTTP GET", url=url, attempt=attempt + 1, max_attempts=effective_max_retries)

                    response = await self._client.get(url, params=params)
                    response.raise_for_status()

                    self._stats["successful_requests"] += 1
                    return response

                except httpx.TimeoutException as e:
                    last_exception = e
                    logger.warning("HTTP timeout", url=url, attempt=attempt + 1, error=str(e))

                except httpx.HTTPStatusError as e:
                    last_exception = e
                    status_code = e.response.status_code
                    logger.warning(
                        "HTTP status error",
                        url=url,
                        attempt=attempt + 1,
                        status_code=status_code,
                        body=e.response.text[:200],
                    )

                    # Don't retry on client errors (except 429 rate limit)
                    if 400 <= status_code < 500 and status_code != 429:
                        logger.error("Non-retryable client error, aborting", status_code=status_code)
                        break

                except httpx.RequestError as e:
                    last_exception = e
                    logger.warning("HTTP request error", url=url, attempt=attempt + 1, error=str(e))

                # Apply retry delay if not the last attempt
                if attempt < effective_max_retries - 1:
                    delay = config.HTTP_RETRY_DELAY_SECONDS * (2**attempt)
                    logger.info("Retrying HTTP GET", delay=round(delay, 2), reason=type(last_exception).__name__)
                    await asyncio.sleep(delay)
                    self._stats["retry_attempts"] += 1

            # All retries failed
            self._stats["failed_requests"] += 1
            logger.error("HTTP GET failed", url=url, attempts=effective_max_retries, error=str(last_exception))

            if last_exception:
                raise last_exception
            raise httpx.RequestError(f"GET {url} failed with no specific error")

    def get_statistics(self) -> dict[str, Any]:
        """Return HTTP request statistics for monitoring."""
        total = self._stats["total_requests"]
        return {
            **self._stats,
            "success_rate": (self._stats["successful_requests"] / total * 100) if total > 0 else 0,
            "failure_rate": (self._stats["failed_requests"] / total * 100) if total > 0 else 0,
            "avg_retries_per_request": (self._stats["retry_attempts"] / total) if total > 0 else 0,
        }


class PortalClient:
    """Read portal items through the sharing REST API."""

    def __init__(self, http_client: HTTPClientService, base_url: str | None = None, token: str | None = None):
        """Initialize the portal client.

        Args:
            http_client: Shared HTTP client used for requests.
            base_url: Portal root; defaults to `config.PORTAL_BASE_URL`.
            token: Optional access token appended to every request.
        """
        self._http_client = http_client
        self._base_url = (base_url or config.PORTAL_BASE_URL).rstrip("/")
        self._token = token

    def item_url(self, item_id: str, data: bool = False) -> str:
        url = f"{self._base_url}/sharing/rest/content/items/{item_id}"
        return f"{url}/data" if data else url

    async def _get_json(self, url: str, item_id: str) -> dict[str, Any]:
        params = {"f": "json"}
        if self._token:
            params["token"] = self._token
        try:
            response = await self._http_client.get(url, params=params)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PortalRequestError(
                f"Portal request for item {item_id} failed",
                details=create_error_context(url=url, error=str(e), error_type=type(e).__name__),
            ) from e
        if not isinstance(payload, dict):
            raise PortalRequestError(
                f"Portal returned a non-object payload for item {item_id}",
                details={"url": url, "received_type": type(payload).__name__},
            )
        # The sharing API reports failures as 200 responses with an `error` object.
        error = payload.get("error")
        if isinstance(error, dict):
            raise PortalRequestError(
                f"Portal error for item {item_id}: {error.get('message', 'unknown error')}",
                details=create_error_context(url=url, code=error.get("code")),
            )
        return payload

    async def fetch_item(self, item_id: str) -> dict[str, Any]:
        """Return the item description (title, type, typeKeywords, ...)."""
        return await self._get_json(self.item_url(item_id), item_id)

    async def fetch_item_data(self, item_id: str) -> dict[str, Any]:
        """Return the item's data JSON."""
        return await self._get_json(self.item_url(item_id, data=True), item_id)

    async def fetch_classic_document(self, item_id: str) -> dict[str, Any]:
        """Return a classic story's data JSON, with the item description merged in.

        Returns:
            The data document; `values.title` falls back to the item title.
        """
        item = await self.fetch_item(item_id)
        document = await self.fetch_item_data(item_id)
        values = document.get("values")
        if isinstance(values, dict) and not values.get("title") and item.get("title"):
            values["title"] = item["title"]
        logger.info("Fetched classic item", item_id=item_id, item_type=item.get("type"))
        return document

    async def fetch_webmap_data(self, item_id: str) -> dict[str, Any]:
        """Return webmap or webscene data; the signature matches `item_data_fetcher`."""
        return await self.fetch_item_data(item_id)


def media_file_name(url: str, content_type: str | None = None) -> str:
    """Derive a stable local file name from a media URL."""
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:16]
    suffix = Path(urlsplit(url).path).suffix.lower()
    if not suffix or len(suffix) > 5:
        guessed = mimetypes.guess_extension((content_type or "").split(";")[0].strip()) if content_type else None
        suffix = guessed or ".bin"
    return f"{digest}{suffix}"


class MediaDownloader:
    """Uploader that copies remote media into a local directory.

    Instances are passed as `ConversionOptions.uploader`; each call downloads one
    URL and reports the written file name as the resource name.
    """

    def __init__(self, http_client: HTTPClientService, directory: str | Path | None = None):
        self._http_client = http_client
        self._directory = Path(directory or config.MEDIA_DOWNLOAD_DIR)

    @property
    def directory(self) -> Path:
        return self._directory

    async def __call__(self, url: str, context: dict[str, Any]) -> dict[str, Any]:
        source = "https:" + url if url.startswith("//") else url
        try:
            response = await self._http_client.get(source)
            name = media_file_name(source, response.headers.get("content-type"))
            write_bytes_file(self._directory / name, response.content)
        except (httpx.HTTPError, OSError) as exc:
            raise TransferError(
                f"Failed to download media: {exc}",
                details=create_error_context(url=source, error_type=type(exc).__name__),
            ) from exc
        logger.debug("Downloaded media", url=source, resource_name=name, kind=context.get("kind"), size=len(response.content))
        return {"resourceName": name, "transferred": True}
