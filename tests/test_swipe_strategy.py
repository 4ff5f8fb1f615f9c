from core.converters.swipe import SwipeStrategy, classic_layers, swipe_caption, swipe_layout, swipe_model, webmap_ids
from core.structural_validator import validate_graph
from core.template_detection import ClassicFormat
from tests.converter_helpers import draft, top_level_types

_EXTENT = {"xmin": -10, "ymin": -10, "xmax": 10, "ymax": 10, "spatialReference": {"wkid": 4326}}


class TestSwipeHelpers:
    def test_model_and_layout(self) -> None:
        assert swipe_model({"dataModel": "two_layers"}) == "TWO_LAYERS"
        assert swipe_model({}) == "TWO_WEBMAPS"
        assert swipe_layout({"layout": "Spyglass"}) == "spyglass"
        assert swipe_layout({"layout": "vertical"}) == "swipe"

    def test_webmap_ids_and_layers(self) -> None:
        assert webmap_ids({"webmaps": ["a", {"id": "b"}, ""]}) == ["a", "b"]
        assert webmap_ids({"webmap": " base "}) == ["base"]
        assert classic_layers({"layers": ["l1", {"id": "l2", "title": "Layer 2"}, {}]}) == [
            {"id": "l1", "title": "l1"},
            {"id": "l2", "title": "Layer 2"},
        ]

    def test_caption_from_popup_titles_is_right_then_left(self) -> None:
        assert swipe_caption({"popupTitles": ["Right", "Left"]}) == "Left side\u2014Left, Right side\u2014Right"
        assert swipe_caption({"layers": ["a"]}) is None


class TestSwipeStrategy:
    def test_two_webmaps_spyglass(self) -> None:
        document = {
            "values": {
                "dataModel": "TWO_WEBMAPS",
                "webmaps": ["a", "b"],
                "layout": "spyglass",
                "title": "Swipe",
                "name": "Compare",
                "popupTitles": ["Right", "Left"],
                "legend": True,
                "extent": _EXTENT,
                "description": "<p>Side text</p>",
            }
        }
        graph = draft(SwipeStrategy, document, ClassicFormat.SWIPE).builder.build()
        assert top_level_types(graph) == ["storycover", "navigation", "text", "swipe", "credits"]
        assert graph.nodes_of_type("storycover")[0].data["title"] == "Compare"
        swipe = graph.nodes_of_type("swipe")[0]
        assert swipe.data["viewPlacement"] == "center"
        assert swipe.data["caption"] == "Left side\u2014Left, Right side\u2014Right"
        assert swipe.data["legendPinned"] is True
        assert swipe.data["legend"] == [swipe.data["contents"]["0"]]
        assert swipe.config == {"size": "full"}
        item_ids = sorted(r.data["itemId"] for r in graph.resources_of_type("webmap"))
        assert item_ids == ["a", "b"]
        left = graph.nodes[swipe.data["contents"]["0"]]
        assert left.data["extent"]["spatialReference"] == {"wkid": 102100}
        assert validate_graph(graph).errors == []

    def test_two_layers_share_base_map_with_independent_resources(self) -> None:
        document = {
            "values": {
                "dataModel": "TWO_LAYERS",
                "webmap": "base",
                "layers": ["l1", {"id": "l2", "title": "Layer 2"}],
                "layout": "vertical",
            }
        }
        graph = draft(SwipeStrategy, document, ClassicFormat.SWIPE).builder.build()
        resources = graph.resources_of_type("webmap")
        assert len(resources) == 2
        assert {r.data["itemId"] for r in resources} == {"base"}
        swipe = graph.nodes_of_type("swipe")[0]
        left = graph.nodes[swipe.data["contents"]["0"]]
        right = graph.nodes[swipe.data["contents"]["1"]]
        assert left.data["map"] != right.data["map"]
        assert [layer["visible"] for layer in left.data["mapLayers"]] == [True, True]
        assert [layer["visible"] for layer in right.data["mapLayers"]] == [False, False]
        assert swipe.data["viewPlacement"] == "extent"
        assert swipe.data["caption"] == "Left side\u2014l1, Right side\u2014Layer 2"

    def test_same_webmap_twice_gets_two_resources(self) -> None:
        document = {"values": {"webmaps": ["same", "same"], "title": "Twins"}}
        graph = draft(SwipeStrategy, document, ClassicFormat.SWIPE).builder.build()
        assert len(graph.resources_of_type("webmap")) == 2

    def test_single_webmap_produces_no_swipe(self) -> None:
        context = draft(SwipeStrategy, {"values": {"webmaps": ["only"], "title": "Lonely"}}, ClassicFormat.SWIPE)
        assert "Swipe with 1 webmap(s); two are required" in context.notes
        assert context.builder.peek().nodes_of_type("swipe") == []

    def test_metadata(self) -> None:
        document = {"values": {"webmaps": ["a", "b"], "layout": "spyglass"}}
        graph = draft(SwipeStrategy, document, ClassicFormat.SWIPE).builder.build()
        metadata = graph.resources_of_type("converter-metadata")[0].data
        assert metadata["classicType"] == "Swipe"
        assert metadata["classicMetadata"]["layout"] == "spyglass"
        assert metadata["classicMetadata"]["model"] == "TWO_WEBMAPS"
