# core/conversion_service.py
"""Convert a classic story document into a node/resource/action graph.

The pipeline runs as a fixed sequence of traced steps:

    detect -> draft -> enrich (optional) -> media -> finalize -> validate

Each call gets its own builder, identifier allocator and
[`ConversionContext`](core/converters/base.py:1); nothing is shared between calls.
Validation never raises, its findings are returned in the diagnostics. Any step
failure emits an `error` progress event and is re-raised to the caller.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

import config
from core.converters import STRATEGIES, ConversionContext, FormatStrategy
from core.exceptions import (
    BuilderInvariantError,
    ClassificationError,
    ConversionCancelledError,
    ConverterCoreError,
    UnsupportedFormatError,
    create_error_context,
    wrap_builder_error,
)
from core.graph_builder import GraphBuilder
from core.id_allocator import IdAllocator
from core.map_enrichment import enrich_webmaps
from core.structural_validator import StructuralValidationService, structural_validator
from core.template_detection import ClassicFormat, classic_values, classify_document
from core.theme_mapper import derive_theme
from core.trace import traced_step
from core.transfer_orchestrator import ResourceTransferOrchestrator, normalize_source_url
from models.conversion_models import (
    ConversionOptions,
    ConversionResult,
    Diagnostics,
    ProgressEvent,
    ProgressStage,
    TransferOutcome,
    ValidationReport,
)
from models.graph_models import Graph

logger = structlog.get_logger(__name__)


class ConversionService:
    """Run conversions against a strategy table and a structural validator.

    Args:
        strategies: Classic format tag to strategy class.
        validator: Validation service run on every finished graph.
    """

    def __init__(
        self,
        strategies: Mapping[ClassicFormat, type[FormatStrategy]] | None = None,
        validator: StructuralValidationService | None = None,
    ):
        self._strategies = dict(strategies if strategies is not None else STRATEGIES)
        self._validator = validator or structural_validator
        self._stats = {"conversions": 0, "succeeded": 0, "failed": 0, "cancelled": 0}

    @property
    def validator(self) -> StructuralValidationService:
        return self._validator

    def supported_formats(self) -> list[ClassicFormat]:
        return list(self._strategies)

    def get_statistics(self) -> dict[str, int]:
        return dict(self._stats)

    def strategy_for(self, fmt: ClassicFormat) -> type[FormatStrategy]:
        """Return the strategy class for a tag.

        Raises:
            ClassificationError: For `UNKNOWN`.
            UnsupportedFormatError: For a recognized tag without a strategy.
        """
        if fmt is ClassicFormat.UNKNOWN:
            raise ClassificationError("Could not determine the classic story format", format_tag=fmt.value)
        strategy = self._strategies.get(fmt)
        if strategy is None:
            raise UnsupportedFormatError(
                f"Conversion of {fmt.value} stories is not supported",
                format_tag=fmt.value,
                details={"supported": [f.value for f in self._strategies]},
            )
        return strategy

    async def convert(self, document: Any, options: ConversionOptions | None = None) -> ConversionResult:
        """Convert one classic document.

        Args:
            document: Parsed classic JSON (`{"values": {...}}`).
            options: Per-call options; defaults come from `config.settings`.

        Returns:
            The finished graph and its diagnostics.

        Raises:
            InvalidDocumentError: The input is not a classic document.
            ClassificationError: The format is unknown or has no strategy.
            ConversionCancelledError: Cancellation was observed during media transfer.
            BuilderInvariantError: A strategy violated a graph invariant or failed unexpectedly.
        """
        options = options or ConversionOptions()
        run = _ConversionRun(self, document, options)
        self._stats["conversions"] += 1
        try:
            result = await run.execute()
        except ConverterCoreError as exc:
            key = "cancelled" if isinstance(exc, ConversionCancelledError) else "failed"
            self._stats[key] += 1
            run.emit(ProgressStage.ERROR, str(exc.message))
            logger.info("Conversion stopped", reason=key, error=str(exc))
            raise
        except Exception as exc:
            self._stats["failed"] += 1
            run.emit(ProgressStage.ERROR, str(exc))
            logger.error("Conversion failed", error=str(exc), exc_info=True)
            raise
        finally:
            run.close_trace()
        self._stats["succeeded"] += 1
        return result


class _ConversionRun:
    """State for one `convert()` call."""

    def __init__(self, service: ConversionService, document: Any, options: ConversionOptions):
        self.service = service
        self.document = document
        self.options = options
        self.observer = options.trace
        self.format: ClassicFormat | None = None
        self.context: ConversionContext | None = None
        self.strategy: FormatStrategy | None = None
        self.enrichment_notes: list[str] = []
        self.transfers: dict[str, TransferOutcome] = {}
        self._owns_session = False

        start_session = getattr(self.observer, "start_session", None)
        export = getattr(self.observer, "export", None)
        if callable(start_session) and callable(export) and export() is None:
            start_session(options.classic_item_id)
            self._owns_session = True

    # ----------------------------------------------------------------- events

    def emit(self, stage: ProgressStage, message: str, current: int | None = None, total: int | None = None) -> None:
        sink = self.options.progress
        if sink is None:
            return
        try:
            sink(ProgressEvent(stage=stage, message=message, current=current, total=total))
        except Exception as exc:
            logger.warning("Progress sink raised; ignoring", error=str(exc), stage=stage.value)

    def close_trace(self) -> None:
        if self._owns_session:
            self.observer.end_session()

    def trace_export(self) -> dict[str, Any] | None:
        export = getattr(self.observer, "export", None)
        if not callable(export):
            return None
        try:
            return export()
        except Exception as exc:
            logger.warning("Trace export failed; omitting trace", error=str(exc))
            return None

    # ------------------------------------------------------------------ steps

    def _drafted(self, step: str) -> tuple[ConversionContext, FormatStrategy]:
        if self.context is None or self.strategy is None:
            raise BuilderInvariantError(
                "Conversion step ran before drafting",
                details=create_error_context(step=step, format=self.format.value if self.format else None),
            )
        return self.context, self.strategy

    async def _detect(self) -> ClassicFormat:
        self.emit(ProgressStage.DETECT, "Detecting classic story format")
        fmt = classify_document(self.document)
        self.service.strategy_for(fmt)
        self.format = fmt
        self.emit(ProgressStage.DETECT, f"Detected {fmt.value}")
        return fmt

    async def _draft(self) -> GraphBuilder:
        fmt = self.format
        if fmt is None:
            raise BuilderInvariantError("Drafting requires a detected format", details=create_error_context(step="draft"))
        values = classic_values(self.document)
        requested = self.options.theme_id or config.settings.DEFAULT_THEME_ID
        theme = derive_theme(values, fmt, requested)
        suppress = self.options.suppress_converter_metadata
        if suppress is None:
            suppress = config.settings.SUPPRESS_CONVERTER_METADATA
        builder = GraphBuilder(
            theme.theme_id,
            IdAllocator(self.options.id_seed),
            theme.overrides,
            suppress_converter_metadata=suppress,
        )
        self.context = ConversionContext(
            document=self.document,
            values=values,
            format=fmt,
            builder=builder,
            options=self.options,
            theme=theme,
        )
        self.strategy = self.service.strategy_for(fmt)(self.context)
        self.emit(ProgressStage.DRAFT, f"Drafting {fmt.value} story")
        try:
            self.strategy.draft()
        except ConverterCoreError:
            raise
        except Exception as exc:
            raise wrap_builder_error("draft", exc, format=fmt.value) from exc
        return builder

    async def _enrich(self) -> list[str]:
        context, strategy = self._drafted("enrich")
        fetcher = self.options.item_data_fetcher
        maps = config.settings.ENRICH_MAPS if self.options.enrich_maps is None else self.options.enrich_maps
        scenes = config.settings.ENRICH_SCENES if self.options.enrich_scenes is None else self.options.enrich_scenes
        if fetcher is None or not (maps or scenes):
            return []
        self.emit(ProgressStage.ENRICH, "Enriching webmaps")
        notes = await enrich_webmaps(context.builder, fetcher, maps=maps, scenes=scenes)
        if notes:
            context.builder.add_converter_metadata(strategy.classic_type, {"mappingDecisions": notes})
        self.enrichment_notes = notes
        return notes

    async def _media(self) -> dict[str, TransferOutcome]:
        context, _ = self._drafted("media")
        requests = context.builder.media_requests
        if self.options.uploader is None or not requests:
            return {}
        unique = len({normalize_source_url(r.source_url) for r in requests})
        self.emit(ProgressStage.MEDIA, f"Transferring {unique} media reference(s)", 0, unique)
        orchestrator = ResourceTransferOrchestrator(
            self.options.uploader,
            progress=self.options.progress,
            is_cancelled=self.options.is_cancelled,
            max_concurrency=self.options.max_concurrent_transfers,
        )
        self.transfers = await orchestrator.run(requests)
        logger.info("Media transfer finished", **orchestrator.statistics())
        return self.transfers

    async def _finalize(self) -> Graph:
        context, _ = self._drafted("finalize")
        self.emit(ProgressStage.FINALIZE, "Finalizing graph")
        context.builder.apply_transfer_outcomes(self.transfers)
        return context.builder.build()

    async def _validate(self, graph: Graph) -> ValidationReport:
        self.emit(ProgressStage.VALIDATE, "Validating graph")
        return self.service.validator.validate(graph)

    # -------------------------------------------------------------- execution

    async def execute(self) -> ConversionResult:
        fmt = await traced_step(
            self.observer,
            "detect",
            self._detect,
            step_type="classify",
            summarize=lambda f: {"format": f.value},
        )
        await traced_step(
            self.observer,
            "draft",
            self._draft,
            step_type="build",
            step_input={"format": fmt.value},
            summarize=lambda b: {"nodes": len(b.peek().nodes), "resources": len(b.peek().resources)},
        )
        await traced_step(
            self.observer,
            "enrich",
            self._enrich,
            step_type="enrich",
            summarize=lambda notes: {"notes": len(notes)},
        )
        await traced_step(
            self.observer,
            "media",
            self._media,
            step_type="transfer",
            summarize=lambda outcomes: {
                "unique": len(outcomes),
                "transferred": sum(1 for o in outcomes.values() if o.transferred),
            },
        )
        graph = await traced_step(
            self.observer,
            "finalize",
            self._finalize,
            step_type="build",
            summarize=lambda g: {"nodes": len(g.nodes), "resources": len(g.resources), "actions": len(g.actions)},
        )

        async def validate() -> ValidationReport:
            return await self._validate(graph)

        report = await traced_step(
            self.observer,
            "validate",
            validate,
            step_type="validate",
            summarize=lambda r: {"errors": len(r.errors), "warnings": len(r.warnings)},
        )

        context, _ = self._drafted("done")
        self.emit(ProgressStage.DONE, f"Converted {fmt.value} with {len(report.errors)} error(s)")
        if self._owns_session:
            self.observer.end_session()
            self._owns_session = False
        diagnostics = Diagnostics(
            format=fmt.value,
            errors=list(report.errors),
            warnings=list(report.warnings),
            notes=context.notes + self.enrichment_notes,
            transfers=dict(self.transfers),
            trace=self.trace_export(),
        )
        logger.info(
            "Conversion complete",
            format=fmt.value,
            nodes=len(graph.nodes),
            resources=len(graph.resources),
            errors=len(report.errors),
            warnings=len(report.warnings),
        )
        return ConversionResult(graph=graph, diagnostics=diagnostics)


conversion_service = ConversionService()


async def convert(document: Any, options: ConversionOptions | None = None) -> ConversionResult:
    """Convert `document` with the shared service instance."""
    return await conversion_service.convert(document, options)
