# utils/__init__.py
"""Geometry, HTML and file helpers shared by the converter."""

from .file_io import read_json_file, write_bytes_file, write_text_file, write_yaml_file
from .geometry import determine_scale_zoom, extent_center, normalize_extent
from .html_text import HtmlSegment, parse_video_provider, split_html_segments, strip_html

__all__ = [
    "HtmlSegment",
    "determine_scale_zoom",
    "extent_center",
    "normalize_extent",
    "parse_video_provider",
    "read_json_file",
    "split_html_segments",
    "strip_html",
    "write_bytes_file",
    "write_text_file",
    "write_yaml_file",
]
