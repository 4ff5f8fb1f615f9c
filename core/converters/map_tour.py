# core/converters/map_tour.py
"""Map Tour: ordered places become a guided (or explorer) tour over a tour map."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import structlog

import config
from core.converters.base import FormatStrategy, as_list, as_mapping, text_or_none
from core.graph_builder import TOUR_ACCENT_COLOR
from utils.geometry import point_to_lon_lat

logger = structlog.get_logger(__name__)

TITLE_KEYS = ("name", "Name", "NAME", "title", "Title", "TITLE")
DESC_KEYS = (
    "description", "Description", "DESCRIPTION", "desc", "Desc", "DESC",
    "desc1", "Desc1", "DESC1", "caption", "Caption", "CAPTION", "FULL_Caption",
)
IMAGE_URL_KEYS = ("pic_url", "Pic_url", "PIC_URL", "url", "Url", "URL")
THUMB_URL_KEYS = ("thumb_url", "Thumb_url", "THUMB_URL")
LON_KEYS = ("long", "Long", "LONG", "LON", "longitude", "Longitude", "LONGITUDE", "x")
LAT_KEYS = ("lat", "Lat", "LAT", "latitude", "Latitude", "LATITUDE", "y")
FEATURE_ID_KEYS = ("__OBJECTID", "objectid", "id", "ID", "FID", "fid", "ObjectID", "Object_Id", "OBJECTID", "OBJECTID_1")

TOUR_POINT_SCALE = 4514

LAYOUT_MAPPING = {
    "three-panel": ("guided-tour", "media-focused"),
    "side-panel": ("guided-tour", "media-focused"),
    "integrated": ("guided-tour", "map-focused"),
}


def first_non_empty(record: Mapping[str, Any], keys: Sequence[str]) -> str | None:
    for key in keys:
        value = record.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def place_coordinates(place: Mapping[str, Any]) -> tuple[float, float] | None:
    """Return `(lon, lat)` from attribute keys, else from `geometry.x/y`."""
    lon_raw = first_non_empty(place, LON_KEYS)
    lat_raw = first_non_empty(place, LAT_KEYS)
    if lon_raw is not None and lat_raw is not None:
        try:
            lon, lat = float(lon_raw), float(lat_raw)
        except ValueError:
            pass
        else:
            if abs(lon) <= 180 and abs(lat) <= 90:
                return lon, lat
    geometry = as_mapping(place.get("geometry"))
    if "x" in geometry and "y" in geometry:
        wkid = as_mapping(geometry.get("spatialReference")).get("wkid")
        coords = point_to_lon_lat(geometry["x"], geometry["y"], wkid if isinstance(wkid, int) else None)
        if coords is not None and abs(coords[0]) <= 180 and abs(coords[1]) <= 90:
            return coords
    return None


def features_to_places(features: Any) -> list[dict[str, Any]]:
    """Flatten feature attributes into place records keyed by their feature id."""
    places: list[dict[str, Any]] = []
    for feature in as_list(features):
        attributes = as_mapping(as_mapping(feature).get("attributes"))
        feature_id = first_non_empty(attributes, FEATURE_ID_KEYS)
        if feature_id is None:
            continue
        places.append({**attributes, "id": feature_id, "geometry": as_mapping(feature).get("geometry")})
    return places


def features_from_webmap(webmap_json: Any, source_layer: str | None = None) -> list[Any]:
    """Find the tour feature collection embedded in a webmap's operational layers."""
    for layer in as_list(as_mapping(webmap_json).get("operationalLayers")):
        layer = as_mapping(layer)
        layer_id = str(layer.get("id") or "")
        title = str(layer.get("title") or "").lower()
        matches = (
            (source_layer and (layer_id == source_layer or source_layer in layer_id or layer_id in source_layer))
            or layer_id.lower().startswith("maptour-layer")
            or "map tour" in title
            or "maptour" in title
        )
        if not matches:
            continue
        for collection in as_list(as_mapping(layer.get("featureCollection")).get("layers")):
            features = as_mapping(as_mapping(collection).get("featureSet")).get("features")
            if isinstance(features, list):
                return features
    return []


class MapTourStrategy(FormatStrategy):
    classic_type = "MapTour"

    def raw_places(self) -> list[dict[str, Any]]:
        places = [dict(p) for p in as_list(self.values.get("places")) if isinstance(p, Mapping)]
        if places:
            return places
        embedded = features_from_webmap(self.context.document.get("webmapJson"), self.values.get("sourceLayer"))
        if embedded:
            self.context.note(f"Built {len(embedded)} place(s) from the embedded tour feature collection")
        return features_to_places(embedded)

    def ordered_places(self) -> list[dict[str, Any]]:
        raw = self.raw_places()
        by_id = {str(p.get("id")): p for p in raw if p.get("id") is not None}
        order = [o for o in as_list(self.values.get("order")) if isinstance(o, Mapping) and o.get("id") is not None]
        if not order:
            order = [{"id": p.get("id"), "visible": p.get("visible") is not False} for p in raw]
        ordered: list[dict[str, Any]] = []
        for entry in order:
            place = by_id.get(str(entry["id"]))
            if place is None:
                self.context.note(f"Tour order references unknown place {entry['id']}")
                continue
            ordered.append({**place, "visible": entry.get("visible") is not False and place.get("visible") is not False})
        return ordered

    def draft(self) -> None:
        title = self.title()
        subtitle = text_or_none(self.values.get("subtitle"))
        self.builder.scaffold(title, subtitle)

        places = self.ordered_places()
        self.context.emit(f"Found {len(places)} tour place(s)")
        intro = bool(self.values.get("firstRecordAsIntro")) or self.context.options.first_record_as_intro

        image_resources: list[tuple[str | None, str | None]] = []
        for index, place in enumerate(places):
            image_url = first_non_empty(place, IMAGE_URL_KEYS)
            thumb_url = first_non_empty(place, THUMB_URL_KEYS)
            image_res = self.builder.add_image_resource(image_url, context={"place": index}) if image_url else None
            thumb_res = self.builder.add_image_resource(thumb_url, context={"place": index, "thumbnail": True}) if thumb_url else None
            image_resources.append((image_res, thumb_res))

        tour_places: list[dict[str, Any]] = []
        geometries: dict[str, Any] = {}
        cover_image: str | None = None
        for index, place in enumerate(places):
            image_res, thumb_res = image_resources[index]
            if index == 0 and intro and image_res is not None:
                cover_image = image_res

            images = [self.builder.create_image(r) for r in (image_res, thumb_res) if r is not None]
            carousel_id = self.builder.compose_group("carousel", images) if images else None
            if images:
                self.context.bump("images", len(images))

            title_id = self.builder.create_text(first_non_empty(place, TITLE_KEYS) or f"Place {index + 1}", "h3", "wide")
            description = first_non_empty(place, DESC_KEYS)
            contents = [self.builder.create_text(description, "paragraph", "wide")] if description else []

            geometry_id = self.builder.allocate_id()
            coords = place_coordinates(place)
            if coords is not None:
                geometries[geometry_id] = {
                    "id": geometry_id,
                    "type": "POINT_NUMBERED_TOUR",
                    "nodes": [{"long": coords[0], "lat": coords[1]}],
                    "viewpoint": {},
                    "scale": TOUR_POINT_SCALE,
                }
            else:
                self.context.note(f"Tour place {place.get('id')} has no usable coordinates")

            tour_place: dict[str, Any] = {
                "id": self.builder.allocate_id(),
                "featureId": geometry_id,
                "contents": contents,
                "title": title_id,
            }
            if carousel_id is not None:
                tour_place["media"] = carousel_id
            if not place["visible"]:
                tour_place["config"] = {"isHidden": True}
            tour_places.append(tour_place)

        webmap_id = text_or_none(self.values.get("webmap"))
        basemap_resource = self.builder.add_webmap_resource(webmap_id) if webmap_id else None
        map_node = self.builder.create_tour_map(geometries, basemap_resource)

        layout = str(self.values.get("layout") or "integrated")
        if len(tour_places) > config.settings.TOUR_EXPLORER_THRESHOLD:
            tour_type, subtype = "explorer", "grid"
        else:
            tour_type, subtype = LAYOUT_MAPPING.get(layout, LAYOUT_MAPPING["integrated"])
        tour_id = self.builder.create_tour(
            map_node,
            tour_places,
            tour_type=tour_type,
            subtype=subtype,
            panel_position="end" if self.values.get("placardPosition") == "end" else "start",
            panel_size="large",
            accent_color=TOUR_ACCENT_COLOR,
        )
        self.builder.place_top_level(tour_id)
        if cover_image is not None:
            self.builder.set_cover_image(cover_image)

        self.context.emit(f"Built {len(tour_places)} place(s); layout={layout} mapped to {tour_type}/{subtype}")
        self.record_metadata(
            {
                "layoutMapping": {"classicLayout": layout, "tourType": tour_type, "subtype": subtype},
                "places": len(tour_places),
                "hiddenPlaces": sum(1 for p in tour_places if p.get("config")),
            }
        )
