# core/converters/map_series.py
"""Map Series: each classic entry becomes one sidecar slide."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from core.converters.base import FormatStrategy, as_list, as_mapping, text_or_none
from utils.html_text import split_html_segments

logger = structlog.get_logger(__name__)

_PANEL_SIZES = {"small", "medium", "large"}


def normalize_entry_media(entry: Mapping[str, Any]) -> dict[str, Any]:
    """Coerce the several classic entry media spellings to `{image|webmap|video|webpage}`."""
    media = dict(as_mapping(entry.get("media") or entry.get("content")))
    webmap = media.get("webmap") or entry.get("webmap")
    if isinstance(webmap, str) and webmap.strip():
        media["webmap"] = {"id": webmap.strip()}
    image = media.get("image") or media.get("imageUrl") or media.get("photo")
    if isinstance(image, str) and image.strip():
        media["image"] = {"url": image.strip()}
    video = media.get("video") or media.get("videoUrl")
    if isinstance(video, str) and video.strip():
        media["video"] = {"url": video.strip()}
    elif isinstance(video, Mapping) and not video.get("url") and video.get("source"):
        media["video"] = {**video, "url": video["source"]}
    if not as_mapping(media.get("webpage")).get("url"):
        embed_url = as_mapping(media.get("embed")).get("url") or media.get("url")
        if isinstance(embed_url, str) and embed_url.strip():
            media["webpage"] = {"url": embed_url.strip()}
    return media


def series_layout(values: Mapping[str, Any]) -> dict[str, str]:
    settings = as_mapping(values.get("settings"))
    layout_id = str(as_mapping(settings.get("layout")).get("id") or "tab")
    panel = as_mapping(as_mapping(settings.get("layoutOptions")).get("panel"))
    size = panel.get("size") if panel.get("size") in _PANEL_SIZES else "medium"
    return {
        "classicLayoutId": layout_id,
        "subtype": "floating-panel" if panel.get("style") == "float" else "docked-panel",
        "position": "start" if panel.get("position", "left") == "left" else "end",
        "size": size,
    }


class MapSeriesStrategy(FormatStrategy):
    classic_type = "MapSeries"

    def entries(self) -> list[Mapping[str, Any]]:
        story = as_mapping(self.values.get("story"))
        entries = as_list(story.get("entries")) or as_list(self.values.get("series")) or as_list(story.get("sections"))
        return [e for e in entries if isinstance(e, Mapping)]

    def draft(self) -> None:
        entries = self.entries()
        self.context.emit(f"Found {len(entries)} series entr{'y' if len(entries) == 1 else 'ies'}")
        self.builder.scaffold(self.title(), text_or_none(self.values.get("subtitle")))
        if not entries:
            self.context.note("Map Series has no entries")

        layout = series_layout(self.values)
        sidecar_id = self.builder.add_sidecar(layout["subtype"], layout["position"], layout["size"])

        for index, entry in enumerate(entries):
            title = text_or_none(entry.get("title") or entry.get("headline")) or f"Entry {index + 1}"
            narrative = [self.builder.create_text(title, "h3")]
            for segment in split_html_segments(str(entry.get("description") or "")):
                if segment.kind == "text":
                    if segment.has_markup:
                        narrative.append(self.builder.create_rich_text(segment.html, segment.text_type))
                    else:
                        narrative.append(self.builder.create_text(segment.text, segment.text_type))
                elif segment.kind == "image":
                    image_id = self.image_media({"url": segment.src, "altText": segment.alt, "caption": segment.caption}, entry=index)
                    if image_id is not None:
                        narrative.append(image_id)
                elif segment.kind == "embed":
                    embed_id = self.webpage_media({"url": segment.src, "caption": segment.caption})
                    if embed_id is not None:
                        narrative.append(embed_id)
                else:
                    self.context.note(f"Entry {index}: story action {segment.action_id} kept as text")
                    narrative.append(self.builder.create_text(segment.text or "View"))

            media_id = self.media_node(normalize_entry_media(entry), title=title, entry=index)
            if media_id is None:
                self.context.note(f"Entry {index} has no convertible media")
            self.builder.add_slide(sidecar_id, narrative, media_id)
            self.context.emit(f"Converted entry {index + 1}/{len(entries)}")

        self.record_metadata({"layoutMapping": layout, "entries": len(entries)})
