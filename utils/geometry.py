# utils/geometry.py
"""Extent, projection and scale helpers for webmap and tour conversion.

Classic documents store extents either in WGS84 (wkid 4326) or Web Mercator
(wkid 102100 / latestWkid 3857). The graph always carries Web Mercator extents.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

WEB_MERCATOR_HALF_WORLD = 20037508.34
WEB_MERCATOR_WKIDS = {102100, 102113, 3857, 900913}
WGS84_WKID = 4326
ZOOM0_SCALE = 591657527.5
DEFAULT_EXTENT_SCALE = 50000
DEFAULT_EXTENT_ZOOM = 10
MAX_ZOOM = 24


def lon_to_x(lon: float) -> float:
    return lon * WEB_MERCATOR_HALF_WORLD / 180


def lat_to_y(lat: float) -> float:
    y = math.log(math.tan((90 + lat) * math.pi / 360)) / (math.pi / 180)
    return y * WEB_MERCATOR_HALF_WORLD / 180


def x_to_lon(x: float) -> float:
    return x / WEB_MERCATOR_HALF_WORLD * 180


def y_to_lat(y: float) -> float:
    lat = y / WEB_MERCATOR_HALF_WORLD * 180
    return 180 / math.pi * (2 * math.atan(math.exp(lat * math.pi / 180)) - math.pi / 2)


def spatial_reference_wkid(geometry: Mapping[str, Any] | None) -> int | None:
    if not isinstance(geometry, Mapping):
        return None
    sr = geometry.get("spatialReference")
    if not isinstance(sr, Mapping):
        return None
    for key in ("wkid", "latestWkid"):
        value = sr.get(key)
        if isinstance(value, int):
            return value
    return None


def is_web_mercator(geometry: Mapping[str, Any] | None) -> bool:
    return spatial_reference_wkid(geometry) in WEB_MERCATOR_WKIDS


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def normalize_extent(extent: Any) -> dict[str, Any] | None:
    """Return the extent in Web Mercator, converting from WGS84 when needed.

    Extents in any other spatial reference are returned unchanged. Anything that is
    not an `{xmin, ymin, xmax, ymax}` mapping of numbers yields `None`.
    """
    if not isinstance(extent, Mapping):
        return None
    coords = [_as_float(extent.get(k)) for k in ("xmin", "ymin", "xmax", "ymax")]
    if any(c is None for c in coords):
        return None
    xmin, ymin, xmax, ymax = coords  # type: ignore[misc]
    if spatial_reference_wkid(extent) == WGS84_WKID:
        return {
            "xmin": lon_to_x(xmin),
            "ymin": lat_to_y(ymin),
            "xmax": lon_to_x(xmax),
            "ymax": lat_to_y(ymax),
            "spatialReference": {"wkid": 102100},
        }
    out: dict[str, Any] = {"xmin": xmin, "ymin": ymin, "xmax": xmax, "ymax": ymax}
    if isinstance(extent.get("spatialReference"), Mapping):
        out["spatialReference"] = dict(extent["spatialReference"])
    return out


def extent_from_corners(corners: Any) -> dict[str, Any] | None:
    """Build a WGS84 extent from an item's `[[xmin, ymin], [xmax, ymax]]` pair."""
    if not (isinstance(corners, list) and len(corners) == 2 and all(isinstance(c, list) and len(c) >= 2 for c in corners)):
        return None
    (xmin, ymin), (xmax, ymax) = corners[0][:2], corners[1][:2]
    return {"xmin": xmin, "ymin": ymin, "xmax": xmax, "ymax": ymax, "spatialReference": {"wkid": WGS84_WKID}}


def extent_center(extent: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not isinstance(extent, Mapping):
        return None
    try:
        center: dict[str, Any] = {
            "x": (extent["xmin"] + extent["xmax"]) / 2,
            "y": (extent["ymin"] + extent["ymax"]) / 2,
        }
    except (KeyError, TypeError):
        return None
    if "spatialReference" in extent:
        center["spatialReference"] = extent["spatialReference"]
    return center


def determine_scale_zoom(value: Any) -> dict[str, float] | None:
    """Derive `{scale, zoom}` from a map scale or an extent.

    A positive numeric scale maps to the nearest tiling zoom level (0-24). Extents
    get a fixed regional default because classic extents carry no scale.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        if value <= 0:
            return None
        zoom = min(max(round(math.log2(ZOOM0_SCALE / value)), 0), MAX_ZOOM)
        return {"scale": value, "zoom": zoom}
    if isinstance(value, Mapping):
        return {"scale": DEFAULT_EXTENT_SCALE, "zoom": DEFAULT_EXTENT_ZOOM}
    return None


def point_to_lon_lat(x: Any, y: Any, wkid: int | None = None) -> tuple[float, float] | None:
    """Return `(lon, lat)`, un-projecting Web Mercator input.

    Without an explicit spatial reference, coordinates outside the geographic range
    are assumed to be Web Mercator meters.
    """
    fx, fy = _as_float(x), _as_float(y)
    if fx is None or fy is None:
        return None
    mercator = wkid in WEB_MERCATOR_WKIDS if wkid is not None else (abs(fx) > 180 or abs(fy) > 90)
    if mercator:
        return x_to_lon(fx), y_to_lat(fy)
    return fx, fy
