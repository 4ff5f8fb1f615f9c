"""Define request, progress and result payloads for a conversion run."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from models.graph_models import Graph


class ProgressStage(str, Enum):
    FETCH = "fetch"
    DETECT = "detect"
    DRAFT = "draft"
    CONVERT = "convert"
    ENRICH = "enrich"
    MEDIA = "media"
    FINALIZE = "finalize"
    VALIDATE = "validate"
    DONE = "done"
    ERROR = "error"


class ProgressEvent(BaseModel):
    """A progress notification; `current`/`total` are set for counted stages."""

    stage: ProgressStage
    message: str
    current: int | None = None
    total: int | None = None


class TransferRequest(BaseModel):
    """An externally hosted media reference discovered while building."""

    source_url: str
    context: dict[str, Any] = Field(default_factory=dict)


class TransferOutcome(BaseModel):
    """Result of resolving one unique source URL.

    `transferred=False` means the original remote URL is kept.
    """

    source_url: str
    resource_name: str | None = None
    transferred: bool = False
    error: str | None = None

    @classmethod
    def from_uploader_result(cls, source_url: str, result: Any) -> TransferOutcome:
        """Accept either an outcome instance or a `{resourceName, transferred}` mapping."""
        if isinstance(result, TransferOutcome):
            return result.model_copy(update={"source_url": source_url})
        if isinstance(result, Mapping):
            name = result.get("resourceName", result.get("resource_name"))
            return cls(
                source_url=source_url,
                resource_name=str(name) if name else None,
                transferred=bool(result.get("transferred")) and bool(name),
            )
        raise TypeError(f"Uploader returned unsupported result type {type(result).__name__}")


class ValidationReport(BaseModel):
    """Errors block publishing; warnings are advisory."""

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class Diagnostics(BaseModel):
    format: str
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    transfers: dict[str, TransferOutcome] = Field(default_factory=dict)
    trace: dict[str, Any] | None = None


class ConversionResult(BaseModel):
    graph: Graph
    diagnostics: Diagnostics


ProgressSink = Callable[[ProgressEvent], None]
Uploader = Callable[[str, dict[str, Any]], Awaitable[Any]]
CancellationCheck = Callable[[], bool]
ItemDataFetcher = Callable[[str], Awaitable[dict[str, Any]]]


class TraceObserver(Protocol):
    """Optional, purely observational sink for step enter/exit events."""

    def on_enter(self, step_id: str, payload: dict[str, Any]) -> None: ...

    def on_exit(self, step_id: str, payload: dict[str, Any]) -> None: ...


class ConversionOptions(BaseModel):
    """Per-call options for [`convert()`](core/conversion_service.py:1).

    Notes:
        `None` for the enrichment and metadata toggles means "use the configured
        default" from `config.settings`.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    theme_id: str | None = None
    progress: ProgressSink | None = None
    uploader: Uploader | None = None
    is_cancelled: CancellationCheck | None = None
    item_data_fetcher: ItemDataFetcher | None = None
    trace: Any | None = None
    enrich_maps: bool | None = None
    enrich_scenes: bool | None = None
    suppress_converter_metadata: bool | None = None
    max_concurrent_transfers: int | None = None
    id_seed: int | None = None
    classic_item_id: str | None = None
    first_record_as_intro: bool = False
