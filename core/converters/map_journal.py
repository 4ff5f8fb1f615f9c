# core/converters/map_journal.py
"""Map Journal: one sidecar slide per classic section."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import structlog

from core.converters.base import FormatStrategy, as_list, as_mapping, text_or_none
from utils.html_text import HtmlSegment, split_html_segments

logger = structlog.get_logger(__name__)

_LABEL_PREFIX_RE = re.compile(r"^[>›»\s]+")

_PANEL_SIZES = {"small", "medium", "large"}


def normalize_button_label(label: str | None) -> str:
    cleaned = _LABEL_PREFIX_RE.sub("", str(label or "").replace("\u00a0", " ").replace("&nbsp;", " ")).strip()
    return cleaned or "View"


def sidecar_layout(values: Mapping[str, Any]) -> dict[str, str]:
    """Map classic layout settings to sidecar `subtype`, `position` and `size`."""
    settings = as_mapping(values.get("settings"))
    layout_id = as_mapping(settings.get("layout")).get("id") or "side"
    layout_cfg = as_mapping(as_mapping(settings.get("layoutOptions")).get("layoutCfg"))
    size = layout_cfg.get("size") if layout_cfg.get("size") in _PANEL_SIZES else "medium"
    return {
        "subtype": "floating-panel" if layout_id == "float" else "docked-panel",
        "position": "start" if layout_cfg.get("position") == "left" else "end",
        "size": size,
    }


class MapJournalStrategy(FormatStrategy):
    classic_type = "MapJournal"

    def sections(self) -> list[Mapping[str, Any]]:
        story = as_mapping(self.values.get("story"))
        sections = as_list(story.get("sections")) or as_list(self.values.get("sections"))
        return [s for s in sections if isinstance(s, Mapping)]

    def draft(self) -> None:
        sections = self.sections()
        self.context.emit(f"Extracted {len(sections)} section(s)")
        self.builder.scaffold(self.title(), text_or_none(self.values.get("subtitle")))

        layout = sidecar_layout(self.values)
        sidecar_id = self.builder.add_sidecar(layout["subtype"], layout["position"], layout["size"])

        description = text_or_none(self.values.get("description"))
        if description:
            self.builder.add_slide(sidecar_id, [self._text_node(description)])

        heading_ids: list[str | None] = []
        navigate_buttons: list[tuple[str, str]] = []
        navigate_targets: dict[str, int] = {}

        for index, section in enumerate(sections):
            actions = {
                str(a.get("id")): a for a in as_list(section.get("contentActions")) if isinstance(a, Mapping) and a.get("id")
            }
            for action_id, action in actions.items():
                if action.get("type") == "navigate" and isinstance(action.get("index"), int):
                    navigate_targets[action_id] = action["index"]

            narrative: list[str] = []
            heading_id: str | None = None
            section_title = text_or_none(section.get("title"))
            if section_title:
                heading_id = self.builder.create_text(section_title, "h3")
                narrative.append(heading_id)
            heading_ids.append(heading_id)

            media_buttons: list[tuple[str, Mapping[str, Any]]] = []
            body = section.get("content") or section.get("description") or ""
            for segment in split_html_segments(str(body)):
                node_id = self._segment_node(segment, actions, media_buttons, navigate_buttons, index)
                if node_id is not None:
                    narrative.append(node_id)

            media_id = self.media_node(section.get("media"), title=section_title, section=index)
            slide_id = self.builder.add_slide(sidecar_id, narrative, media_id)

            for button_id, action in media_buttons:
                action_media = self.media_node(action.get("media"), image_size="standard", section=index)
                if action_media is None:
                    self.context.note(f"Section {index}: media action {action.get('id')} has no convertible media")
                    continue
                self.builder.add_child(slide_id, action_media)
                self.builder.register_replace_media_action(button_id, slide_id, action_media)

            self.context.emit(f"Converted section {index + 1}/{len(sections)}")

        for action_id, button_id in navigate_buttons:
            target = navigate_targets.get(action_id)
            heading = heading_ids[target] if target is not None and 0 <= target < len(heading_ids) else None
            if heading is None:
                self.context.note(f"Navigate action {action_id} has no target heading")
                continue
            self.builder.set_button_link(button_id, f"#ref-{heading}")

        self.record_metadata({"layoutMapping": layout, "sections": len(sections)})

    def _text_node(self, fragment: str) -> str:
        segments = [s for s in split_html_segments(fragment) if s.kind == "text"]
        if len(segments) == 1 and segments[0].has_markup:
            return self.builder.create_rich_text(segments[0].html, segments[0].text_type)
        if len(segments) == 1:
            return self.builder.create_text(segments[0].text, segments[0].text_type)
        return self.builder.create_rich_text(fragment.strip())

    def _segment_node(
        self,
        segment: HtmlSegment,
        actions: Mapping[str, Mapping[str, Any]],
        media_buttons: list[tuple[str, Mapping[str, Any]]],
        navigate_buttons: list[tuple[str, str]],
        section_index: int,
    ) -> str | None:
        if segment.kind == "text":
            if segment.has_markup:
                return self.builder.create_rich_text(segment.html, segment.text_type)
            return self.builder.create_text(segment.text, segment.text_type)
        if segment.kind == "image":
            return self.image_media(
                {"url": segment.src, "altText": segment.alt, "caption": segment.caption},
                "standard",
                section=section_index,
            )
        if segment.kind == "embed":
            return self.webpage_media({"url": segment.src, "caption": segment.caption})

        action_id = segment.action_id or ""
        action = actions.get(action_id)
        action_type = (action or {}).get("type") or segment.action_type
        label = normalize_button_label(segment.text)
        if action_type == "media" and action is not None:
            button_id = self.builder.create_action_button(label)
            media_buttons.append((button_id, action))
            return button_id
        if action_type == "navigate":
            button_id = self.builder.create_button(label)
            navigate_buttons.append((action_id, button_id))
            return button_id
        self.context.note(f"Section {section_index}: unresolved story action {action_id or '?'} kept as text")
        return self.builder.create_text(label)
