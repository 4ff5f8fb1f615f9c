# core/theme_mapper.py
"""Derive the target theme and variable overrides from a classic document."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from core.template_detection import ClassicFormat

THEME_IDS = ("summit", "obsidian")

_FONT_IDS = {
    "open_sansregular": "openSans",
    "opensans": "openSans",
    "roboto": "roboto",
    "noto": "notoSerif",
    "notoserif": "notoSerif",
    "lato": "lato",
    "sourcesanspro": "sourceSansPro",
    "avenirnext": "avenirNext",
    "charterbt": "charterBT",
    "arial": "arial",
}

_COLOR_VARIABLES = (
    ("panel", "backgroundColor"),
    ("dotNav", "headerFooterBackgroundColor"),
    ("textLink", "themeColor1"),
)


@dataclass
class ThemeChoice:
    theme_id: str
    overrides: dict[str, Any] = field(default_factory=dict)
    decisions: list[str] = field(default_factory=list)
    classic_theme: dict[str, Any] | None = None


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _theme_from_major(major: Any) -> str:
    return "obsidian" if str(major or "").lower() in {"dark", "black"} else "summit"


def font_id_from_css(value: str | None) -> str | None:
    """Map a classic `font-family:` declaration to a font id."""
    if not value or "font-family" not in value:
        return None
    quoted = re.search(r"font-family:\s*['\"]([^'\"]+)['\"]", value)
    if quoted:
        font = quoted.group(1)
    else:
        bare = re.search(r"font-family:\s*([^;]+);?", value)
        if not bare:
            return None
        font = bare.group(1).split(",")[0].strip().strip("'\"")
    return _FONT_IDS.get(re.sub(r"\s+", "", font.lower()))


def _color_pair(values: Mapping[str, Any], choice: ThemeChoice) -> None:
    parts = [p.strip() for p in str(values.get("colors") or "").split(";")]
    if parts and parts[0]:
        choice.overrides["headerFooterBackgroundColor"] = parts[0]
        choice.decisions.append("colors[0] -> headerFooterBackgroundColor")
    if len(parts) > 1 and parts[1]:
        choice.overrides["backgroundColor"] = parts[1]
        choice.decisions.append("colors[1] -> backgroundColor")


def derive_theme(values: Mapping[str, Any], fmt: ClassicFormat, requested: str | None = "auto") -> ThemeChoice:
    """Choose the theme for a conversion.

    Args:
        values: The classic document's `values` object.
        fmt: The classified format.
        requested: `auto`, `summit` or `obsidian`. Anything but an explicit theme id
            resolves from the classic theme.

    Returns:
        The chosen theme id, its variable overrides and a list of mapping decisions.
    """
    classic_theme = _mapping(_mapping(values.get("settings")).get("theme"))
    colors = _mapping(classic_theme.get("colors"))
    choice = ThemeChoice(
        theme_id=_theme_from_major(colors.get("themeMajor")),
        classic_theme=dict(classic_theme) or None,
    )

    if fmt in {ClassicFormat.MAP_JOURNAL, ClassicFormat.MAP_SERIES, ClassicFormat.CASCADE}:
        for classic_key, variable in _COLOR_VARIABLES:
            if colors.get(classic_key):
                choice.overrides[variable] = colors[classic_key]
                choice.decisions.append(f"{classic_key} -> {variable}")
        fonts = _mapping(classic_theme.get("fonts"))
        for classic_key, variable in (("sectionTitle", "titleFontId"), ("sectionContent", "bodyFontId")):
            font_id = font_id_from_css(_mapping(fonts.get(classic_key)).get("value"))
            if font_id:
                choice.overrides[variable] = font_id
                choice.decisions.append(f"{classic_key} font -> {variable}")
        layout_id = _mapping(_mapping(values.get("settings")).get("layout")).get("id")
        if fmt is ClassicFormat.MAP_JOURNAL and not classic_theme and layout_id == "float":
            choice.theme_id = "obsidian"
            choice.decisions.append("float layout without classic theme -> obsidian")
    elif fmt is ClassicFormat.MAP_TOUR:
        choice.theme_id = "summit"
        _color_pair(values, choice)
    elif fmt is ClassicFormat.SWIPE:
        _color_pair(values, choice)

    if requested in THEME_IDS:
        if requested != choice.theme_id:
            choice.decisions.append(f"theme {choice.theme_id} overridden by request -> {requested}")
        choice.theme_id = requested
    return choice
