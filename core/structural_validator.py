# core/structural_validator.py
"""
Structural validation of a converted graph.

Walks a finished graph and reports:
- errors: violations that must block publishing
- warnings: suspicious but non-blocking conditions

Validation is read-only and deterministic: nodes, resources and actions are
visited in a fixed order, so two runs over the same graph produce identical lists.
This is an internal invariant check, distinct from any external JSON-schema gate.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import structlog

from core.id_allocator import IdAllocator, IdNamespace
from models.conversion_models import ValidationReport
from models.graph_models import Graph, Node, Resource

logger = structlog.get_logger(__name__)

DEPRECATED_ROOT_FIELDS = ("metaSettings",)
WEBMAP_SIZES = {"standard", "wide"}
WEBMAP_ITEM_TYPES = {"Web Map", "Web Scene"}
TOUR_REQUIRED_FIELDS = ("type", "subtype", "map", "places", "accentColor")


class _Findings:
    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def error(self, message: str) -> None:
        self.errors.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _dangling(ref: Any, pool: Mapping[str, Any], subject: str, out: _Findings) -> bool:
    """True when `ref` is a string id absent from `pool`; non-string ids are reported here."""
    if not isinstance(ref, str):
        out.error(f"{subject} has non-string reference {ref!r}")
        return False
    return ref not in pool


# --------------------------------------------------------------------- nodes


def _check_webmap_node(node: Node, graph: Graph, out: _Findings) -> None:
    size = (node.config or {}).get("size")
    if size is None:
        out.error(f"webmap node {node.id} missing config.size")
    elif size not in WEBMAP_SIZES:
        out.warn(f"webmap node {node.id} has unexpected config.size '{size}'")
    if "scale" in node.data:
        out.error(f"webmap node {node.id} data.scale should be removed (use viewpoint.scale)")
    map_id = node.data.get("map")
    if _is_blank(map_id):
        out.error(f"webmap node {node.id} missing data.map resource reference")
    elif _dangling(map_id, graph.resources, f"webmap node {node.id} data.map", out):
        out.error(f"webmap node {node.id} references missing resource {map_id}")


def _check_text_node(node: Node, graph: Graph, out: _Findings) -> None:
    if _is_blank(node.data.get("text")):
        out.warn(f"text node {node.id} has empty text")
    if "textAlignment" not in node.data:
        out.warn(f"text node {node.id} missing textAlignment")


def _check_image_node(node: Node, graph: Graph, out: _Findings) -> None:
    image_id = node.data.get("image")
    if _is_blank(image_id):
        out.error(f"image node {node.id} missing data.image resource reference")
    elif _dangling(image_id, graph.resources, f"image node {node.id} data.image", out):
        out.error(f"image node {node.id} references missing resource {image_id}")


def _check_video_node(node: Node, graph: Graph, out: _Findings) -> None:
    video_id = node.data.get("video")
    if not _is_blank(video_id) and _dangling(video_id, graph.resources, f"video node {node.id} data.video", out):
        out.warn(f"video node {node.id} references missing resource {video_id}")


def _check_embed_node(node: Node, graph: Graph, out: _Findings) -> None:
    if _is_blank(node.data.get("url")) and _is_blank(node.data.get("embedSrc")):
        out.warn(f"embed node {node.id} has neither url nor embedSrc")


def _check_tour_node(node: Node, graph: Graph, out: _Findings) -> None:
    missing = [field for field in TOUR_REQUIRED_FIELDS if field not in node.data]
    if missing:
        out.error(f"tour node {node.id} missing required fields: {', '.join(missing)}")
    places = node.data.get("places")
    if places is not None and not isinstance(places, list):
        out.error(f"tour node {node.id} places is not a list")
        places = None
    elif "places" in node.data and not places:
        out.warn(f"tour node {node.id} has no places")
    map_id = node.data.get("map")
    if not _is_blank(map_id) and _dangling(map_id, graph.nodes, f"tour node {node.id} data.map", out):
        out.error(f"tour node {node.id} references missing map node {map_id}")
    for index, place in enumerate(places or ()):
        if not isinstance(place, Mapping):
            out.error(f"tour node {node.id} place {index} is not an object")
            continue
        contents = place.get("contents")
        if contents is not None and not isinstance(contents, list):
            out.error(f"tour node {node.id} place {index} contents is not a list")
            contents = None
        refs = [place.get("title"), place.get("media"), *(contents or ())]
        for ref in refs:
            if ref is not None and _dangling(ref, graph.nodes, f"tour node {node.id} place {index}", out):
                out.error(f"tour node {node.id} place {index} references missing node {ref}")


def _check_tour_map_node(node: Node, graph: Graph, out: _Findings) -> None:
    if not node.data:
        out.error(f"tour-map node {node.id} missing data")
        return
    if "geometries" not in node.data:
        out.warn(f"tour-map node {node.id} missing geometries")
    if "mode" not in node.data:
        out.warn(f"tour-map node {node.id} missing mode")
    basemap = node.data.get("basemap")
    if isinstance(basemap, Mapping) and basemap.get("type") == "resource":
        if _dangling(basemap.get("value"), graph.resources, f"tour-map node {node.id} basemap", out):
            out.error(f"tour-map node {node.id} references missing basemap resource {basemap.get('value')}")


def _check_swipe_node(node: Node, graph: Graph, out: _Findings) -> None:
    contents = node.data.get("contents")
    if not isinstance(contents, Mapping) or len(contents) != 2:
        out.error(f"swipe node {node.id} must reference exactly two contents")
        return
    for slot in sorted(contents):
        if _dangling(contents[slot], graph.nodes, f"swipe node {node.id} content {slot}", out):
            out.error(f"swipe node {node.id} references missing node {contents[slot]}")


def _check_story_theme(node: Node, graph: Graph, out: _Findings) -> None:
    theme_id = node.data.get("storyTheme")
    if not _is_blank(theme_id) and _dangling(theme_id, graph.resources, f"story node {node.id} data.storyTheme", out):
        out.error(f"story node {node.id} references missing theme resource {theme_id}")


def _check_cover_node(node: Node, graph: Graph, out: _Findings) -> None:
    image_id = node.data.get("image")
    if not _is_blank(image_id) and _dangling(image_id, graph.resources, f"storycover node {node.id} data.image", out):
        out.error(f"storycover node {node.id} references missing resource {image_id}")


NODE_RULES: dict[str, Callable[[Node, Graph, _Findings], None]] = {
    "story": _check_story_theme,
    "storycover": _check_cover_node,
    "webmap": _check_webmap_node,
    "text": _check_text_node,
    "image": _check_image_node,
    "video": _check_video_node,
    "embed": _check_embed_node,
    "tour": _check_tour_node,
    "tour-map": _check_tour_map_node,
    "swipe": _check_swipe_node,
}


# ----------------------------------------------------------------- resources


def _check_webmap_resource(resource: Resource, out: _Findings) -> None:
    if _is_blank(resource.data.get("itemId")):
        out.error(f"webmap resource {resource.id} missing itemId")
    item_type = resource.data.get("itemType")
    if item_type is not None and item_type not in WEBMAP_ITEM_TYPES:
        out.warn(f"webmap resource {resource.id} has unexpected itemType '{item_type}'")
    state = resource.data.get("initialState")
    if isinstance(state, Mapping) and "scale" in state:
        out.error(f"webmap resource {resource.id} initialState.scale should be removed")


def _check_image_resource(resource: Resource, out: _Findings) -> None:
    if _is_blank(resource.data.get("src")) and _is_blank(resource.data.get("resourceId")):
        out.warn(f"image resource {resource.id} has neither src nor resourceId")


RESOURCE_RULES: dict[str, Callable[[Resource, _Findings], None]] = {
    "webmap": _check_webmap_resource,
    "image": _check_image_resource,
}


# --------------------------------------------------------------------- entry


def _check_interchange_shape(data: Mapping[str, Any], out: _Findings) -> None:
    """Report interchange values that `Graph.from_dict` has to coerce or drop."""
    root = data.get("root")
    if root is not None and not isinstance(root, str):
        out.error(f"graph root has non-string value {root!r}")
    for key, expected in (("nodes", Mapping), ("resources", Mapping), ("actions", list)):
        value = data.get(key)
        if value is not None and not isinstance(value, expected):
            out.error(f"graph {key} is not {'a list' if expected is list else 'an object'}")

    nodes = data["nodes"] if isinstance(data.get("nodes"), Mapping) else {}
    for node_id in sorted(nodes, key=str):
        node = nodes[node_id]
        if not isinstance(node, Mapping):
            out.error(f"node {node_id} is not an object")
            continue
        node_type = node.get("type")
        if node_type is not None and not isinstance(node_type, str):
            out.error(f"node {node_id} has non-string type {node_type!r}")
        for field in ("data", "config"):
            if node.get(field) is not None and not isinstance(node[field], Mapping):
                out.error(f"node {node_id} {field} is not an object")
        children = node.get("children")
        if children is None:
            continue
        if not isinstance(children, list):
            out.error(f"node {node_id} children is not a list")
            continue
        for child in children:
            if not isinstance(child, str):
                out.error(f"node {node_id} has non-string reference {child!r}")

    resources = data["resources"] if isinstance(data.get("resources"), Mapping) else {}
    for resource_id in sorted(resources, key=str):
        resource = resources[resource_id]
        if not isinstance(resource, Mapping):
            out.error(f"resource {resource_id} is not an object")
            continue
        resource_type = resource.get("type")
        if resource_type is not None and not isinstance(resource_type, str):
            out.error(f"resource {resource_id} has non-string type {resource_type!r}")

    actions = data.get("actions")
    for index, action in enumerate(actions if isinstance(actions, list) else ()):
        if not isinstance(action, Mapping):
            out.error(f"action {index} is not an object")
            continue
        for field in ("origin", "target", "trigger", "event"):
            value = action.get(field)
            if value is not None and not isinstance(value, str):
                out.error(f"action {index} has non-string {field} {value!r}")


def validate_graph(graph: Graph | Mapping[str, Any]) -> ValidationReport:
    """Validate a graph against the structural rule set.

    Args:
        graph: A `Graph` or its interchange dictionary.

    Returns:
        A report with ordered `errors` and `warnings`. The graph is not modified.
        Malformed interchange input is reported, never raised.
    """
    out = _Findings()
    if not isinstance(graph, Graph):
        if not isinstance(graph, Mapping):
            out.error(f"graph is not an object (found {type(graph).__name__})")
            return ValidationReport(errors=out.errors, warnings=out.warnings)
        _check_interchange_shape(graph, out)
        graph = Graph.from_dict(graph)

    if _is_blank(graph.root):
        out.error("graph missing root")
    if not graph.nodes:
        out.error("graph has no nodes")
    if not _is_blank(graph.root) and graph.nodes:
        root = graph.nodes.get(graph.root)  # type: ignore[arg-type]
        if root is None:
            out.error(f"root {graph.root} does not resolve to a node")
        else:
            if root.type != "story":
                out.error(f"root node {root.id} must be of type story (found {root.type})")
            for field in DEPRECATED_ROOT_FIELDS:
                if field in root.data:
                    out.error(f"root node data contains deprecated field {field}")

    for node_id in sorted(graph.nodes):
        node = graph.nodes[node_id]
        if IdAllocator.namespace_of(node_id) is IdNamespace.RESOURCE:
            out.error(f"node id {node_id} uses the resource namespace")
        if _is_blank(node.type):
            out.error(f"node {node_id} missing type")
        for child in node.children or ():
            if child not in graph.nodes:
                out.error(f"node {node_id} has missing child {child}")
        rule = NODE_RULES.get(node.type or "")
        if rule is not None:
            rule(node, graph, out)

    for resource_id in sorted(graph.resources):
        resource = graph.resources[resource_id]
        if IdAllocator.namespace_of(resource_id) is IdNamespace.NODE:
            out.error(f"resource id {resource_id} uses the node namespace")
        if _is_blank(resource.type):
            out.error(f"resource {resource_id} missing type")
            continue
        rule = RESOURCE_RULES.get(resource.type or "")
        if rule is not None:
            rule(resource, out)

    for index, action in enumerate(graph.actions):
        if action.origin not in graph.nodes:
            out.error(f"action {index} origin {action.origin} not found")
        if action.target not in graph.nodes:
            out.error(f"action {index} target {action.target} not found")
        if action.is_media_replacement:
            media = action.data.get("media")
            if _is_blank(media):
                out.error(f"action {index} replace-media missing data.media")
            elif _dangling(media, graph.nodes, f"action {index} data.media", out):
                out.error(f"action {index} media {media} not found")

    return ValidationReport(errors=out.errors, warnings=out.warnings)


def format_report(report: ValidationReport) -> str:
    """Render a report as human-readable text."""
    lines = [f"Errors: {len(report.errors)}"]
    lines.extend(f"  - {e}" for e in report.errors)
    lines.append(f"Warnings: {len(report.warnings)}")
    lines.extend(f"  - {w}" for w in report.warnings)
    return "\n".join(lines)


class StructuralValidationService:
    """
    Service wrapper around `validate_graph` that logs outcomes.
    """

    def __init__(self, log_findings: bool = True):
        self.log_findings = log_findings

    def validate(self, graph: Graph | Mapping[str, Any]) -> ValidationReport:
        report = validate_graph(graph)
        if self.log_findings:
            if report.errors:
                logger.warning(
                    "Structural validation found errors",
                    errors=len(report.errors),
                    warnings=len(report.warnings),
                    first_error=report.errors[0],
                )
            else:
                logger.info("Structural validation passed", warnings=len(report.warnings))
        return report


structural_validator = StructuralValidationService()
