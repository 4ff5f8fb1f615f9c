from core.converters.map_series import MapSeriesStrategy, normalize_entry_media, series_layout
from core.structural_validator import validate_graph
from core.template_detection import ClassicFormat
from tests.converter_helpers import children_of, draft, top_level_types


def _series() -> dict:
    return {
        "values": {
            "title": "Series",
            "settings": {
                "layout": {"id": "bullet"},
                "layoutOptions": {"panel": {"position": "right", "size": "large", "style": "float"}},
            },
            "series": [
                {"title": "One", "description": "<p>First entry</p>", "media": {"type": "webmap", "webmap": {"id": "w1"}}},
                {"title": "Two", "media": {"type": "image", "image": {"url": "https://example.com/2.png"}}},
                {"title": "Three", "media": {"type": "video", "video": {"url": "https://youtu.be/dQw4w9WgXcQ"}}},
                {"title": "Four"},
            ],
        }
    }


class TestEntryMedia:
    def test_string_spellings_are_coerced(self) -> None:
        assert normalize_entry_media({"webmap": "abc"})["webmap"] == {"id": "abc"}
        assert normalize_entry_media({"media": {"imageUrl": "https://e.com/a.png"}})["image"] == {
            "url": "https://e.com/a.png"
        }
        assert normalize_entry_media({"media": {"video": "https://vimeo.com/123"}})["video"] == {
            "url": "https://vimeo.com/123"
        }

    def test_video_source_and_embed_url(self) -> None:
        media = normalize_entry_media({"media": {"video": {"source": "https://e.com/v.mp4"}}})
        assert media["video"]["url"] == "https://e.com/v.mp4"
        media = normalize_entry_media({"content": {"embed": {"url": " https://e.com/page "}}})
        assert media["webpage"] == {"url": "https://e.com/page"}

    def test_layout_defaults(self) -> None:
        assert series_layout({}) == {
            "classicLayoutId": "tab",
            "subtype": "docked-panel",
            "position": "start",
            "size": "medium",
        }


class TestMapSeriesStrategy:
    def test_one_slide_per_entry(self) -> None:
        context = draft(MapSeriesStrategy, _series(), ClassicFormat.MAP_SERIES)
        graph = context.builder.build()
        assert top_level_types(graph) == ["storycover", "navigation", "immersive", "credits"]
        sidecar = graph.nodes_of_type("immersive")[0]
        assert sidecar.data["subtype"] == "floating-panel"
        assert sidecar.data["narrativePanelPosition"] == "end"
        assert sidecar.data["narrativePanelSize"] == "large"
        assert len(sidecar.children) == 4

    def test_entry_media(self) -> None:
        graph = draft(MapSeriesStrategy, _series(), ClassicFormat.MAP_SERIES).builder.build()
        slides = children_of(graph, graph.nodes_of_type("immersive")[0].id)
        media = [graph.nodes[s.children[1]] if len(s.children) > 1 else None for s in slides]
        assert media[0].type == "webmap"
        assert media[0].data["caption"] == "Map: One"
        assert media[1].type == "image"
        assert media[2].type == "embed"
        assert media[2].data["embedSrc"] == "https://www.youtube.com/embed/dQw4w9WgXcQ"
        assert media[3] is None

    def test_narrative_and_notes(self) -> None:
        context = draft(MapSeriesStrategy, _series(), ClassicFormat.MAP_SERIES)
        graph = context.builder.build()
        first_slide = children_of(graph, graph.nodes_of_type("immersive")[0].id)[0]
        panel = graph.nodes[first_slide.children[0]]
        assert [graph.nodes[c].data["text"] for c in panel.children] == ["One", "First entry"]
        assert "Entry 3 has no convertible media" in context.notes
        assert validate_graph(graph).errors == []

    def test_metadata_records_layout(self) -> None:
        graph = draft(MapSeriesStrategy, _series(), ClassicFormat.MAP_SERIES).builder.build()
        metadata = graph.resources_of_type("converter-metadata")[0].data
        assert metadata["classicType"] == "MapSeries"
        assert metadata["classicMetadata"]["entries"] == 4
        assert metadata["classicMetadata"]["layoutMapping"]["classicLayoutId"] == "bullet"

    def test_empty_series(self) -> None:
        context = draft(MapSeriesStrategy, {"values": {"title": "Empty", "series": []}}, ClassicFormat.MAP_SERIES)
        assert "Map Series has no entries" in context.notes
        assert context.builder.peek().nodes_of_type("immersive")[0].children == []
