# core/template_detection.py
"""Classify a classic document into one of a closed set of legacy formats.

Classification runs once per conversion and yields a `ClassicFormat` tag. The
conversion service looks the tag up in its strategy table; nothing downstream
branches on raw document shape to decide the format.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

import structlog

from core.exceptions import InvalidDocumentError

logger = structlog.get_logger(__name__)


class ClassicFormat(str, Enum):
    MAP_JOURNAL = "Map Journal"
    MAP_TOUR = "Map Tour"
    MAP_SERIES = "Map Series"
    SWIPE = "Swipe"
    CASCADE = "Cascade"
    SHORTLIST = "Shortlist"
    CROWDSOURCE = "Crowdsource"
    BASIC = "Basic"
    UNKNOWN = "Unknown"


# Order matters: "spyglass" is a Swipe layout, "storymapjournal" a journal.
_NAME_HINTS: tuple[tuple[str, ClassicFormat], ...] = (
    ("journal", ClassicFormat.MAP_JOURNAL),
    ("tour", ClassicFormat.MAP_TOUR),
    ("series", ClassicFormat.MAP_SERIES),
    ("cascade", ClassicFormat.CASCADE),
    ("shortlist", ClassicFormat.SHORTLIST),
    ("swipe", ClassicFormat.SWIPE),
    ("spyglass", ClassicFormat.SWIPE),
    ("crowdsource", ClassicFormat.CROWDSOURCE),
    ("basic", ClassicFormat.BASIC),
)


def classic_values(document: Any) -> dict[str, Any]:
    """Return the `values` object of a classic document.

    Raises:
        InvalidDocumentError: If the document is not an object or has no `values` object.
    """
    if not isinstance(document, Mapping):
        raise InvalidDocumentError(
            "Classic document must be a JSON object",
            details={"received_type": type(document).__name__},
        )
    values = document.get("values")
    if not isinstance(values, Mapping):
        raise InvalidDocumentError(
            "Classic document has no 'values' object",
            details={"keys": sorted(str(k) for k in document.keys())[:20]},
        )
    return dict(values)


def normalize_template_name(name: str) -> ClassicFormat:
    lowered = name.strip().lower()
    for hint, fmt in _NAME_HINTS:
        if hint in lowered:
            return fmt
    return ClassicFormat.UNKNOWN


def explicit_template_name(values: Mapping[str, Any]) -> str | None:
    name: str | None = None
    if isinstance(values.get("templateName"), str) and values["templateName"].strip():
        name = values["templateName"]
    template = values.get("template")
    if isinstance(template, str) and template.strip():
        name = template
    elif isinstance(template, Mapping) and isinstance(template.get("name"), str) and template["name"].strip():
        name = template["name"]
    return name


def classify_values(values: Mapping[str, Any]) -> ClassicFormat:
    name = explicit_template_name(values)
    if name:
        return normalize_template_name(name)

    settings = values.get("settings") if isinstance(values.get("settings"), Mapping) else {}
    story = values.get("story") if isinstance(values.get("story"), Mapping) else {}
    components = values.get("components") if isinstance(values.get("components"), Mapping) else {}

    if settings.get("components"):
        return ClassicFormat.CROWDSOURCE
    if isinstance(values.get("series"), list) or isinstance(story.get("entries"), list):
        return ClassicFormat.MAP_SERIES
    if values.get("tabs"):
        return ClassicFormat.SHORTLIST
    if isinstance(values.get("order"), list):
        return ClassicFormat.MAP_TOUR
    if values.get("dataModel") or values.get("layers") or values.get("webmaps"):
        return ClassicFormat.SWIPE
    if components.get("contribute"):
        return ClassicFormat.CROWDSOURCE
    sections = story.get("sections")
    if isinstance(sections, list):
        if any(isinstance(s, Mapping) and s.get("type") == "sequence" for s in sections):
            return ClassicFormat.CASCADE
        return ClassicFormat.MAP_JOURNAL
    if isinstance(values.get("sections"), list):
        return ClassicFormat.MAP_JOURNAL
    return ClassicFormat.BASIC


def classify_document(document: Any) -> ClassicFormat:
    """Classify a classic document.

    Explicit template names win; otherwise structural signals decide, in a fixed
    priority order.

    Raises:
        InvalidDocumentError: If the document shape is not a classic document at all.
    """
    values = classic_values(document)
    fmt = classify_values(values)
    logger.debug("Classified classic document", format=fmt.value)
    return fmt
