"""Export the graph and conversion model types.

This package exposes a stable import surface for the Pydantic models shared by
the builder, the transfer orchestrator, the validator and the CLI.
"""

from .conversion_models import (
    ConversionOptions,
    ConversionResult,
    Diagnostics,
    ProgressEvent,
    ProgressStage,
    TraceObserver,
    TransferOutcome,
    TransferRequest,
    ValidationReport,
)
from .graph_models import (
    ACTION_EVENT_REPLACE_MEDIA,
    ACTION_TRIGGER_APPLY,
    Action,
    Graph,
    Node,
    Resource,
)

__all__ = [
    "ACTION_EVENT_REPLACE_MEDIA",
    "ACTION_TRIGGER_APPLY",
    "Action",
    "ConversionOptions",
    "ConversionResult",
    "Diagnostics",
    "Graph",
    "Node",
    "ProgressEvent",
    "ProgressStage",
    "Resource",
    "TraceObserver",
    "TransferOutcome",
    "TransferRequest",
    "ValidationReport",
]
