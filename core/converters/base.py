# core/converters/base.py
"""Shared foundation for the per-format conversion strategies.

A strategy receives one [`ConversionContext`](core/converters/base.py) and drafts
the graph through the context's builder. Strategies never perform I/O: remote
media is queued on the builder and resolved later by the transfer phase.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

import structlog

import config
from core.graph_builder import GraphBuilder
from core.template_detection import ClassicFormat
from core.theme_mapper import ThemeChoice
from models.conversion_models import ConversionOptions, ProgressEvent, ProgressStage
from utils.geometry import determine_scale_zoom, extent_center, normalize_extent
from utils.html_text import parse_video_provider

logger = structlog.get_logger(__name__)


@dataclass
class ConversionContext:
    """Everything one conversion call needs; created per call, never shared."""

    document: Mapping[str, Any]
    values: dict[str, Any]
    format: ClassicFormat
    builder: GraphBuilder
    options: ConversionOptions
    theme: ThemeChoice
    notes: list[str] = field(default_factory=list)
    counters: dict[str, int] = field(default_factory=dict)

    def note(self, message: str) -> None:
        self.notes.append(message)
        logger.debug("Conversion note", note=message, format=self.format.value)

    def bump(self, counter: str, amount: int = 1) -> None:
        self.counters[counter] = self.counters.get(counter, 0) + amount

    def emit(self, message: str) -> None:
        sink = self.options.progress
        if sink is None:
            return
        try:
            sink(ProgressEvent(stage=ProgressStage.CONVERT, message=message))
        except Exception as exc:
            logger.warning("Progress sink raised; ignoring", error=str(exc), message=message)


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def layer_overrides(layers: Any) -> list[dict[str, Any]] | None:
    """Turn classic `[{id, visibility, title}]` layer entries into `mapLayers`."""
    entries = [layer for layer in as_list(layers) if isinstance(layer, Mapping) and layer.get("id")]
    if not entries:
        return None
    return [
        {
            "id": str(layer["id"]),
            "title": layer.get("title") or str(layer["id"]),
            "visible": bool(layer.get("visibility", layer.get("visible", False))),
        }
        for layer in entries
    ]


class FormatStrategy(ABC):
    """Convert one classic format into graph content.

    Subclasses set `classic_type` and implement `draft()`. The scaffold (root,
    cover, hidden navigation, credits) is created by `draft()` itself because the
    cover text differs per format.
    """

    classic_type: ClassVar[str] = "Classic"

    def __init__(self, context: ConversionContext):
        self.context = context
        self.builder = context.builder
        self.values = context.values

    @abstractmethod
    def draft(self) -> None:
        """Populate the builder with this format's content."""

    # ----------------------------------------------------------------- helpers

    def title(self, fallback: str = "Untitled Story") -> str:
        return text_or_none(self.values.get("title")) or fallback

    def webmap_media(
        self,
        webmap: Mapping[str, Any],
        caption: str | None = None,
        size: str = "standard",
    ) -> str | None:
        """Create a webmap resource and node from a classic `media.webmap` entry."""
        item_id = text_or_none(webmap.get("id") or webmap.get("itemId"))
        if item_id is None:
            self.context.note("Skipped webmap media without an item id")
            return None
        item_type = "Web Scene" if webmap.get("itemType") == "Web Scene" else "Web Map"
        extent = normalize_extent(webmap.get("extent"))
        viewpoint: dict[str, Any] | None = None
        zoom: float | None = None
        if extent is not None:
            scale_zoom = determine_scale_zoom(extent)
            if scale_zoom is not None:
                viewpoint = {"targetGeometry": extent, "scale": scale_zoom["scale"]}
                zoom = scale_zoom["zoom"]
        layers = layer_overrides(webmap.get("layers"))
        overview = as_mapping(webmap.get("overview"))
        legend = as_mapping(webmap.get("legend"))
        geocoder = as_mapping(webmap.get("geocoder"))
        state = {
            "extent": extent,
            "center": extent_center(extent),
            "viewpoint": viewpoint,
            "zoom": zoom,
            "mapLayers": layers,
            "overview": {"enable": bool(overview.get("enable")), "openByDefault": bool(overview.get("openByDefault"))}
            if overview
            else None,
            "legend": {"enable": bool(legend.get("enable")), "openByDefault": bool(legend.get("openByDefault"))}
            if legend
            else None,
            "geocoder": {"enable": bool(geocoder.get("enable"))} if geocoder else None,
        }
        resource_id = self.builder.add_webmap_resource(item_id, item_type, state, "default")
        node_data: dict[str, Any] = {
            "extent": extent,
            "viewpoint": viewpoint,
            "zoom": zoom,
            "mapLayers": layers,
        }
        if overview.get("enable"):
            node_data["overview"] = {"openByDefault": bool(overview.get("openByDefault"))}
        if legend.get("enable"):
            node_data["legend"] = {"openByDefault": bool(legend.get("openByDefault"))}
        if caption is None and text_or_none(webmap.get("caption")):
            caption = str(webmap["caption"])
        self.context.bump("webmaps")
        return self.builder.create_webmap(resource_id, caption, size, **node_data)

    def image_media(self, image: Mapping[str, Any], size: str = "standard", **context: Any) -> str | None:
        url = text_or_none(image.get("url") or image.get("src"))
        if url is None:
            return None
        resource_id = self.builder.add_image_resource(
            url,
            width=image.get("width") if isinstance(image.get("width"), int) else None,
            height=image.get("height") if isinstance(image.get("height"), int) else None,
            context=context,
        )
        self.context.bump("images")
        return self.builder.create_image(
            resource_id,
            text_or_none(image.get("caption")),
            text_or_none(image.get("altText") or image.get("alt")),
            size,
        )

    def video_media(self, video: Mapping[str, Any], **context: Any) -> str | None:
        url = text_or_none(video.get("url"))
        if url is None:
            return None
        caption = text_or_none(video.get("caption"))
        alt = text_or_none(video.get("altText"))
        provider = parse_video_provider(url)
        if provider is not None:
            self.context.bump("video_embeds")
            return self.builder.create_video_embed(url, provider[0], provider[1], caption, caption, alt)
        resource_id = self.builder.add_video_resource(url, "uri", context=context)
        self.context.bump("videos")
        return self.builder.create_video(resource_id, caption, alt)

    def webpage_media(self, webpage: Mapping[str, Any]) -> str | None:
        url = text_or_none(webpage.get("url"))
        if url is None:
            return None
        provider = parse_video_provider(url)
        if provider is not None:
            self.context.bump("video_embeds")
            caption = text_or_none(webpage.get("caption"))
            return self.builder.create_video_embed(url, provider[0], provider[1], caption, text_or_none(webpage.get("title")))
        self.context.bump("embeds")
        return self.builder.create_embed(
            url,
            text_or_none(webpage.get("caption")),
            text_or_none(webpage.get("title")),
            text_or_none(webpage.get("description")),
            text_or_none(webpage.get("altText")),
        )

    def media_node(
        self,
        media: Any,
        *,
        title: str | None = None,
        image_size: str = "wide",
        **context: Any,
    ) -> str | None:
        """Convert a classic `media` object (image, webmap, video or webpage)."""
        media = as_mapping(media)
        if as_mapping(media.get("image")).get("url"):
            return self.image_media(media["image"], image_size, **context)
        if as_mapping(media.get("webmap")).get("id"):
            webmap = media["webmap"]
            caption = None
            if title:
                prefix = "Scene" if webmap.get("itemType") == "Web Scene" else "Map"
                caption = f"{prefix}: {title}"
            return self.webmap_media(webmap, caption)
        if as_mapping(media.get("video")).get("url"):
            return self.video_media(media["video"], **context)
        if as_mapping(media.get("webpage")).get("url"):
            return self.webpage_media(media["webpage"])
        if media:
            self.context.note(f"Unsupported media type '{media.get('type', 'unknown')}' skipped")
        return None

    def record_metadata(self, classic_metadata: Mapping[str, Any] | None = None) -> None:
        """Append provenance for this conversion to the converter-metadata resource."""
        values = self.values
        template = as_mapping(values.get("template"))
        version = (
            self.context.document.get("version")
            or values.get("version")
            or values.get("templateVersion")
            or template.get("version")
        )
        metadata = {
            "classicTheme": self.context.theme.classic_theme,
            "mappingDecisions": list(self.context.theme.decisions),
            "templateVersion": version,
            "counters": dict(self.context.counters) or None,
            **(classic_metadata or {}),
        }
        self.builder.add_converter_metadata(
            self.classic_type,
            {k: v for k, v in metadata.items() if v is not None},
            converterVersion=config.settings.CONVERTER_VERSION,
            classicItemId=self.context.options.classic_item_id,
            classicTemplateCreation=values.get("templateCreation"),
            classicTemplateLastEdit=values.get("templateLastEdit"),
        )
