# core/map_enrichment.py
"""Enrich webmap resources with data from the referenced portal items.

Enrichment is optional and runs between drafting and media transfer. It needs an
injected `item_data_fetcher(item_id) -> dict`; every distinct item id is fetched
once no matter how many resources point at it. Fetch failures never abort the
conversion, they become notes.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from core.graph_builder import GraphBuilder
from models.conversion_models import ItemDataFetcher
from utils.geometry import extent_center, extent_from_corners, normalize_extent

logger = structlog.get_logger(__name__)

MIN_WEBMAP_VERSION = (2, 0)


def parse_version(value: Any) -> tuple[int, int] | None:
    if value is None:
        return None
    parts = str(value).strip().split(".")
    try:
        major = int(parts[0])
        minor = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    except ValueError:
        return None
    return major, minor


def operational_layers(item_data: Mapping[str, Any]) -> list[dict[str, Any]]:
    layers = item_data.get("operationalLayers")
    if not isinstance(layers, list):
        return []
    out = []
    for layer in layers:
        if isinstance(layer, Mapping) and layer.get("id"):
            layer_id = str(layer["id"])
            out.append({"id": layer_id, "title": layer.get("title") or layer_id, "visible": bool(layer.get("visibility"))})
    return out


def merge_layer_overrides(
    source: list[dict[str, Any]], overrides: list[dict[str, Any]] | None
) -> list[dict[str, Any]]:
    """Apply classic visibility overrides to the item's layers.

    Overrides that name a layer the item does not have are kept, ahead of the item's
    own layers.
    """
    if not overrides:
        return source
    by_id = {str(o.get("id")): o for o in overrides if isinstance(o, Mapping) and o.get("id")}
    merged = [
        {**layer, "visible": bool(by_id[layer["id"]].get("visible"))} if layer["id"] in by_id else layer
        for layer in source
    ]
    known = {layer["id"] for layer in source}
    extra = [dict(o) for key, o in by_id.items() if key not in known]
    return extra + merged


def inspect_item(item_id: str, item_data: Mapping[str, Any]) -> list[str]:
    """Return compatibility notes (outdated webmap version, insecure layer URLs)."""
    notes: list[str] = []
    version = parse_version(item_data.get("version"))
    if version is not None and version < MIN_WEBMAP_VERSION:
        notes.append(f"Webmap {item_id} uses version {item_data.get('version')}; version 2.0 or later is expected")
    insecure = [
        str(layer.get("title") or layer.get("id"))
        for layer in item_data.get("operationalLayers") or ()
        if isinstance(layer, Mapping) and str(layer.get("url") or "").lower().startswith("http:")
    ]
    if insecure:
        notes.append(f"Webmap {item_id} has layers served over http: {', '.join(insecure)}")
    return notes


def _item_extent(item_data: Mapping[str, Any]) -> dict[str, Any] | None:
    raw = item_data.get("extent")
    if isinstance(raw, list):
        raw = extent_from_corners(raw)
    return normalize_extent(raw)


async def enrich_webmaps(
    builder: GraphBuilder,
    fetcher: ItemDataFetcher,
    *,
    maps: bool = True,
    scenes: bool = False,
) -> list[str]:
    """Fetch item data for webmap resources and fold it into the resources.

    Args:
        builder: Builder owning the in-progress graph.
        fetcher: Async `fetcher(item_id)` returning the item's data JSON.
        maps: Enrich `Web Map` resources.
        scenes: Enrich `Web Scene` resources.

    Returns:
        Notes describing what happened, for diagnostics and converter metadata.
    """
    graph = builder.peek()
    wanted = {"Web Map"} if maps else set()
    if scenes:
        wanted.add("Web Scene")
    by_item: dict[str, list[str]] = {}
    for resource in graph.resources_of_type("webmap"):
        item_id = resource.data.get("itemId")
        if item_id and resource.data.get("itemType", "Web Map") in wanted:
            by_item.setdefault(str(item_id), []).append(resource.id)

    notes: list[str] = []
    for item_id in sorted(by_item):
        try:
            item_data = await fetcher(item_id)
        except Exception as exc:
            logger.warning("Webmap enrichment fetch failed", item_id=item_id, error=str(exc))
            notes.append(f"Could not fetch webmap {item_id}: {exc}")
            continue
        if not isinstance(item_data, Mapping):
            notes.append(f"Webmap {item_id} returned no usable data")
            continue
        notes.extend(inspect_item(item_id, item_data))

        layers = operational_layers(item_data)
        extent = _item_extent(item_data)
        for resource_id in by_item[item_id]:
            current = builder.resource(resource_id, "webmap").data
            updates: dict[str, Any] = {"type": "default"}
            if layers:
                updates["mapLayers"] = merge_layer_overrides(layers, current.get("mapLayers"))
            if "baseMap" in item_data and "baseMap" not in current:
                updates["baseMap"] = item_data["baseMap"]
            if extent is not None and "extent" not in current:
                updates["extent"] = extent
                updates["center"] = current.get("center") or extent_center(extent)
            builder.update_resource_data(resource_id, **updates)
        logger.debug("Enriched webmap", item_id=item_id, resources=len(by_item[item_id]), layers=len(layers))
    return notes
