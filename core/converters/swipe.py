# core/converters/swipe.py
"""Swipe / Spyglass: two webmap panes compared side by side."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from core.converters.base import FormatStrategy, as_list, text_or_none
from core.graph_builder import GroupKind
from utils.geometry import determine_scale_zoom, extent_center, normalize_extent
from utils.html_text import split_html_segments

logger = structlog.get_logger(__name__)

MODEL_TWO_WEBMAPS = "TWO_WEBMAPS"
MODEL_TWO_LAYERS = "TWO_LAYERS"
_GENERIC_TITLES = {"swipe", "spyglass"}


def swipe_model(values: Mapping[str, Any]) -> str:
    return MODEL_TWO_LAYERS if str(values.get("dataModel") or "").upper() == MODEL_TWO_LAYERS else MODEL_TWO_WEBMAPS


def swipe_layout(values: Mapping[str, Any]) -> str:
    return "spyglass" if "spyglass" in str(values.get("layout") or "").lower() else "swipe"


def classic_layers(values: Mapping[str, Any]) -> list[dict[str, str]]:
    """Classic `layers` entries are objects with an id or bare id strings."""
    layers: list[dict[str, str]] = []
    for entry in as_list(values.get("layers")):
        if isinstance(entry, Mapping) and entry.get("id"):
            layers.append({"id": str(entry["id"]), "title": str(entry.get("title") or entry["id"])})
        elif isinstance(entry, str) and entry.strip():
            layers.append({"id": entry.strip(), "title": entry.strip()})
    return layers


def webmap_ids(values: Mapping[str, Any]) -> list[str]:
    ids: list[str] = []
    for entry in as_list(values.get("webmaps")):
        if isinstance(entry, str) and entry.strip():
            ids.append(entry.strip())
        elif isinstance(entry, Mapping) and entry.get("id"):
            ids.append(str(entry["id"]))
    if not ids and text_or_none(values.get("webmap")):
        ids.append(str(values["webmap"]).strip())
    return ids


def swipe_caption(values: Mapping[str, Any]) -> str | None:
    """Caption from popup titles (classic order is right, left) or the first two layers."""
    popup_titles = [str(t) for t in as_list(values.get("popupTitles")) if t]
    left = right = None
    if len(popup_titles) >= 2:
        right, left = popup_titles[0], popup_titles[1]
    else:
        layers = classic_layers(values)
        if len(layers) >= 2:
            left, right = layers[0]["title"], layers[1]["title"]
    if left and right:
        return f"Left side\u2014{left}, Right side\u2014{right}"
    return None


class SwipeStrategy(FormatStrategy):
    classic_type = "Swipe"

    def cover_title(self) -> str:
        title = text_or_none(self.values.get("title"))
        if title and title.lower() not in _GENERIC_TITLES:
            return title
        return text_or_none(self.values.get("name")) or title or "Swipe"

    def _initial_state(self) -> dict[str, Any]:
        extent = normalize_extent(self.values.get("extent"))
        if extent is None:
            return {}
        scale_zoom = determine_scale_zoom(extent)
        return {
            "extent": extent,
            "center": extent_center(extent),
            "viewpoint": {"targetGeometry": extent, "scale": scale_zoom["scale"]} if scale_zoom else None,
            "zoom": scale_zoom["zoom"] if scale_zoom else None,
        }

    def _panes(self, model: str) -> tuple[str, str] | None:
        state = self._initial_state()
        node_state = {k: state.get(k) for k in ("extent", "viewpoint")}
        if model == MODEL_TWO_WEBMAPS:
            ids = webmap_ids(self.values)
            if len(ids) < 2:
                self.context.note(f"Swipe with {len(ids)} webmap(s); two are required")
                return None
            left_res = self.builder.add_webmap_resource(ids[0], "Web Map", state, "default")
            right_res = self.builder.add_webmap_resource(ids[1], "Web Map", state, "default", reuse=ids[0] != ids[1])
            return (
                self.builder.create_webmap(left_res, **node_state),
                self.builder.create_webmap(right_res, **node_state),
            )

        ids = webmap_ids(self.values)
        if not ids:
            self.context.note("Two-layer swipe without a base webmap")
            return None
        left_res = self.builder.add_webmap_resource(ids[0], "Web Map", state, "default")
        right_res = self.builder.add_webmap_resource(ids[0], "Web Map", state, "default", reuse=False)
        layers = classic_layers(self.values)
        left_layers = [{"id": layer["id"], "title": layer["title"], "visible": True} for layer in layers]
        right_layers = [{"id": layer["id"], "title": layer["title"], "visible": False} for layer in layers]
        return (
            self.builder.create_webmap(left_res, mapLayers=left_layers or None, **node_state),
            self.builder.create_webmap(right_res, mapLayers=right_layers or None, **node_state),
        )

    def draft(self) -> None:
        model = swipe_model(self.values)
        layout = swipe_layout(self.values)
        self.context.emit(f"Swipe model={model} layout={layout}")
        self.builder.scaffold(self.cover_title(), text_or_none(self.values.get("subtitle")))

        description = text_or_none(self.values.get("sidePanelDescription") or self.values.get("description"))
        if description:
            for segment in split_html_segments(description):
                if segment.kind != "text":
                    continue
                if segment.has_markup:
                    node_id = self.builder.create_rich_text(segment.html, segment.text_type)
                else:
                    node_id = self.builder.create_text(segment.text, segment.text_type)
                self.builder.place_top_level(node_id)

        panes = self._panes(model)
        if panes is not None:
            left, right = panes
            swipe_id = self.builder.compose_group(
                GroupKind.SWIPE,
                [left, right],
                view_placement="center" if layout == "spyglass" else "extent",
                caption=swipe_caption(self.values),
            )
            if self.values.get("legend"):
                self.builder.update_node_data(swipe_id, legendPinned=True, legend=[left])
            self.builder.place_top_level(swipe_id)
            self.context.bump("webmaps", 2)
        self.context.emit("Built swipe block")
        self.record_metadata({"layout": layout, "model": model})
