import pytest

from core.graph_builder import GraphBuilder
from core.id_allocator import IdAllocator
from core.map_enrichment import enrich_webmaps, inspect_item, merge_layer_overrides, operational_layers, parse_version
from tests.fakes.fake_uploader import FakeItemFetcher


@pytest.fixture
def builder() -> GraphBuilder:
    b = GraphBuilder("summit", IdAllocator(seed=5))
    b.scaffold("Enrich me")
    return b


class TestHelpers:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("2.1", (2, 1)), ("1", (1, 0)), (" 1.9 ", (1, 9)), ("abc", None), (None, None)],
    )
    def test_parse_version(self, raw, expected) -> None:
        assert parse_version(raw) == expected

    def test_operational_layers(self) -> None:
        data = {"operationalLayers": [{"id": "a", "visibility": True}, {"title": "no id"}, "junk"]}
        assert operational_layers(data) == [{"id": "a", "title": "a", "visible": True}]
        assert operational_layers({"operationalLayers": None}) == []

    def test_merge_layer_overrides(self) -> None:
        source = [{"id": "a", "title": "A", "visible": True}, {"id": "b", "title": "B", "visible": False}]
        overrides = [{"id": "b", "visible": True}, {"id": "ghost", "title": "Ghost", "visible": False}]
        assert merge_layer_overrides(source, overrides) == [
            {"id": "ghost", "title": "Ghost", "visible": False},
            {"id": "a", "title": "A", "visible": True},
            {"id": "b", "title": "B", "visible": True},
        ]
        assert merge_layer_overrides(source, None) is source

    def test_inspect_item(self) -> None:
        assert inspect_item("m", {"version": "2.0"}) == []
        notes = inspect_item("m", {"version": "1.6", "operationalLayers": [{"id": "x", "url": "HTTP://old"}]})
        assert notes == [
            "Webmap m uses version 1.6; version 2.0 or later is expected",
            "Webmap m has layers served over http: x",
        ]


@pytest.mark.asyncio
class TestEnrichWebmaps:
    async def test_each_item_fetched_once(self, builder: GraphBuilder) -> None:
        first = builder.add_webmap_resource("m1")
        builder.add_webmap_resource("m2")
        builder.add_webmap_resource("m1", reuse=False)
        fetcher = FakeItemFetcher(
            responses={
                "m1": {
                    "operationalLayers": [{"id": "l", "visibility": False}],
                    "extent": [[-10, -10], [10, 10]],
                },
            }
        )
        notes = await enrich_webmaps(builder, fetcher)
        assert fetcher.calls == ["m1", "m2"]
        assert notes == []
        data = builder.resource(first).data
        assert data["type"] == "default"
        assert data["mapLayers"] == [{"id": "l", "title": "l", "visible": False}]
        assert data["extent"]["spatialReference"] == {"wkid": 102100}
        assert "center" in data

    async def test_existing_extent_and_overrides_are_kept(self, builder: GraphBuilder) -> None:
        resource_id = builder.add_webmap_resource(
            "m1",
            initial_state={"extent": {"xmin": 0, "ymin": 0, "xmax": 1, "ymax": 1}, "mapLayers": [{"id": "l", "visible": True}]},
        )
        fetcher = FakeItemFetcher(
            responses={"m1": {"operationalLayers": [{"id": "l", "title": "L"}], "extent": [[-10, -10], [10, 10]]}}
        )
        await enrich_webmaps(builder, fetcher)
        data = builder.resource(resource_id).data
        assert data["extent"] == {"xmin": 0, "ymin": 0, "xmax": 1, "ymax": 1}
        assert data["mapLayers"] == [{"id": "l", "title": "L", "visible": True}]

    async def test_scenes_only_when_requested(self, builder: GraphBuilder) -> None:
        builder.add_webmap_resource("scene1", item_type="Web Scene")
        fetcher = FakeItemFetcher()
        await enrich_webmaps(builder, fetcher)
        assert fetcher.calls == []
        await enrich_webmaps(builder, fetcher, maps=False, scenes=True)
        assert fetcher.calls == ["scene1"]

    async def test_failures_become_notes(self, builder: GraphBuilder) -> None:
        builder.add_webmap_resource("bad")
        builder.add_webmap_resource("odd")
        fetcher = FakeItemFetcher(responses={"odd": ["not", "a", "mapping"]}, errors={"bad": RuntimeError("404")})
        notes = await enrich_webmaps(builder, fetcher)
        assert notes == ["Could not fetch webmap bad: 404", "Webmap odd returned no usable data"]
