# utils/html_text.py
"""Split classic rich-text HTML into ordered content segments.

Classic section bodies are HTML fragments mixing paragraphs, headings, figures,
inline images, iframes and story action anchors (`<a data-storymaps="...">`).
The converter needs them as an ordered list of segments it can turn into nodes.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass

_DROP_BLOCKS_RE = re.compile(r"<(style|script)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_BLOCK_RE = re.compile(
    r"<figure\b[^>]*>.*?</figure\s*>"
    r"|<iframe\b[^>]*>(?:.*?</iframe\s*>)?"
    r"|<(?P<tag>p|h[1-6]|blockquote|ul|ol)\b[^>]*>.*?</(?P=tag)\s*>",
    re.IGNORECASE | re.DOTALL,
)
_INLINE_RE = re.compile(
    r"<a\b(?P<attrs>[^>]*\bdata-storymaps\s*=\s*[\"'][^\"']+[\"'][^>]*)>(?P<label>.*?)</a\s*>"
    r"|<img\b[^>]*>",
    re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_OUTER_TAG_RE = re.compile(r"^\s*<(?P<tag>[a-z0-9]+)\b[^>]*>(?P<inner>.*)</(?P=tag)\s*>\s*$", re.IGNORECASE | re.DOTALL)

_HEADING_TYPES = {"h1": "h2", "h2": "h2", "h3": "h3", "h4": "h4", "h5": "h4", "h6": "h4"}
_LIST_TYPES = {"ul": "bullet-list", "ol": "numbered-list"}


@dataclass
class HtmlSegment:
    """One ordered piece of a classic HTML body.

    `kind` is one of `text`, `image`, `embed` or `action`.
    """

    kind: str
    text: str = ""
    html: str = ""
    text_type: str = "paragraph"
    src: str = ""
    alt: str | None = None
    caption: str | None = None
    action_id: str | None = None
    action_type: str | None = None

    @property
    def has_markup(self) -> bool:
        return bool(_TAG_RE.search(self.html))


def get_attribute(tag_html: str, name: str) -> str | None:
    match = re.search(rf"\b{re.escape(name)}\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s>]+))", tag_html, re.IGNORECASE)
    if not match:
        return None
    value = next(g for g in match.groups() if g is not None)
    return html.unescape(value)


def strip_html(fragment: str) -> str:
    """Remove tags, decode entities and collapse whitespace."""
    if not fragment:
        return ""
    text = _TAG_RE.sub(" ", fragment)
    text = html.unescape(text).replace("\u00a0", " ")
    return _WS_RE.sub(" ", text).strip()


def _clean_inner(fragment: str) -> str:
    return fragment.replace("&nbsp;", " ").replace("\u00a0", " ").strip()


def _text_segment(fragment: str, text_type: str) -> HtmlSegment | None:
    plain = strip_html(fragment)
    if not plain:
        return None
    inner = _clean_inner(fragment)
    return HtmlSegment(kind="text", text=plain, html=inner, text_type=text_type)


def _split_inline(fragment: str, text_type: str) -> list[HtmlSegment]:
    """Split a block's inner HTML at images and action anchors, preserving order."""
    segments: list[HtmlSegment] = []
    cursor = 0
    for match in _INLINE_RE.finditer(fragment):
        before = _text_segment(fragment[cursor : match.start()], text_type)
        if before:
            segments.append(before)
        token = match.group(0)
        if match.group("attrs") is not None:
            segments.append(
                HtmlSegment(
                    kind="action",
                    text=strip_html(match.group("label")),
                    action_id=get_attribute(token, "data-storymaps"),
                    action_type=get_attribute(token, "data-storymaps-type"),
                )
            )
        else:
            src = get_attribute(token, "src")
            if src:
                segments.append(HtmlSegment(kind="image", src=src, alt=get_attribute(token, "alt")))
        cursor = match.end()
    tail = _text_segment(fragment[cursor:], text_type)
    if tail:
        segments.append(tail)
    return segments


def _block_segments(block: str, tag: str | None) -> list[HtmlSegment]:
    lowered = block.lstrip()[:8].lower()
    if lowered.startswith("<figure"):
        img = re.search(r"<img\b[^>]*>", block, re.IGNORECASE)
        iframe = re.search(r"<iframe\b[^>]*>", block, re.IGNORECASE)
        caption_match = re.search(r"<figcaption\b[^>]*>(.*?)</figcaption\s*>", block, re.IGNORECASE | re.DOTALL)
        caption = strip_html(caption_match.group(1)) if caption_match else None
        if img and get_attribute(img.group(0), "src"):
            return [
                HtmlSegment(
                    kind="image",
                    src=get_attribute(img.group(0), "src") or "",
                    alt=get_attribute(img.group(0), "alt"),
                    caption=caption or None,
                )
            ]
        if iframe and get_attribute(iframe.group(0), "src"):
            return [HtmlSegment(kind="embed", src=get_attribute(iframe.group(0), "src") or "", caption=caption or None)]
        text = _text_segment(block, "paragraph")
        return [text] if text else []
    if lowered.startswith("<iframe"):
        src = get_attribute(block, "src")
        return [HtmlSegment(kind="embed", src=src)] if src else []

    tag = (tag or "p").lower()
    if tag in _LIST_TYPES:
        segment = _text_segment(block, _LIST_TYPES[tag])
        if segment:
            segment.html = block.strip()
        return [segment] if segment else []
    outer = _OUTER_TAG_RE.match(block)
    inner = outer.group("inner") if outer else block
    if tag == "blockquote":
        return _split_inline(inner, "quote")
    return _split_inline(inner, _HEADING_TYPES.get(tag, "paragraph"))


def split_html_segments(fragment: str | None) -> list[HtmlSegment]:
    """Split an HTML body into ordered text/image/embed/action segments.

    Loose text between recognized blocks becomes its own paragraph segment. Blank
    and whitespace-only paragraphs are dropped.
    """
    if not fragment or not str(fragment).strip():
        return []
    source = _COMMENT_RE.sub("", _DROP_BLOCKS_RE.sub("", str(fragment)))
    segments: list[HtmlSegment] = []
    cursor = 0
    for match in _BLOCK_RE.finditer(source):
        segments.extend(_split_inline(source[cursor : match.start()], "paragraph"))
        segments.extend(_block_segments(match.group(0), match.group("tag")))
        cursor = match.end()
    segments.extend(_split_inline(source[cursor:], "paragraph"))
    return segments


def parse_video_provider(url: str | None) -> tuple[str, str] | None:
    """Return `(provider, video_id)` for YouTube and Vimeo URLs."""
    if not url:
        return None
    youtube = re.search(
        r"(?:youtube(?:-nocookie)?\.com/(?:watch\?(?:.*&)?v=|embed/|shorts/|v/)|youtu\.be/)([A-Za-z0-9_-]{6,})",
        url,
    )
    if youtube:
        return "youtube", youtube.group(1)
    vimeo = re.search(r"vimeo\.com/(?:video/|channels/[^/]+/)?(\d+)", url)
    if vimeo:
        return "vimeo", vimeo.group(1)
    return None
