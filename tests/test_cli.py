import json
from unittest.mock import AsyncMock, patch

import pytest
import yaml

import main
from core.exceptions import ConversionCancelledError


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "setup_converter_logging", lambda *args, **kwargs: None)


def _write(path, payload) -> str:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


JOURNAL = {
    "values": {
        "title": "CLI journal",
        "story": {"sections": [{"title": "Only", "content": "<p>Hello</p>"}]},
    }
}


@pytest.mark.integration
class TestConvertCommand:
    def test_convert_writes_graph_and_report(self, tmp_path) -> None:
        source = _write(tmp_path / "classic.json", JOURNAL)
        output = tmp_path / "out" / "graph.json"
        report = tmp_path / "out" / "report.yaml"

        code = main.main(["convert", source, "--no-enrich", "-o", str(output), "--report", str(report), "--trace"])

        assert code == 0
        graph = json.loads(output.read_text(encoding="utf-8"))
        assert graph["nodes"][graph["root"]]["type"] == "story"
        diagnostics = yaml.safe_load(report.read_text(encoding="utf-8"))
        assert diagnostics["format"] == "Map Journal"
        assert diagnostics["errors"] == []
        assert diagnostics["trace"]["events"][0]["stepId"] == "detect"

    def test_unsupported_format_exits_with_2(self, tmp_path) -> None:
        source = _write(tmp_path / "cascade.json", {"values": {"template": "Cascade"}})
        assert main.main(["convert", source, "--no-enrich", "-o", str(tmp_path / "g.json")]) == 2
        assert not (tmp_path / "g.json").exists()

    def test_missing_input_exits_with_2(self, tmp_path) -> None:
        assert main.main(["convert", str(tmp_path / "nope.json"), "--no-enrich"]) == 2

    def test_cancellation_exits_with_130(self, tmp_path) -> None:
        source = _write(tmp_path / "classic.json", JOURNAL)
        cancelled = AsyncMock(side_effect=ConversionCancelledError())
        with patch.object(main.conversion_service, "convert", cancelled):
            assert main.main(["convert", source, "--no-enrich"]) == 130
        cancelled.assert_awaited_once()

    def test_item_id_is_fetched_from_portal(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        stages: list[str] = []
        monkeypatch.setattr(main, "_log_progress", lambda event: stages.append(event.stage.value))
        fetch = AsyncMock(return_value=JOURNAL)
        with patch.object(main.PortalClient, "fetch_classic_document", fetch):
            code = main.main(["convert", "--item-id", "abc123", "--no-enrich", "-o", str(tmp_path / "g.json")])

        assert code == 0
        fetch.assert_awaited_once_with("abc123")
        assert stages[:2] == ["fetch", "detect"]
        assert (tmp_path / "g.json").exists()

    def test_input_and_item_id_are_exclusive(self, tmp_path) -> None:
        with pytest.raises(SystemExit):
            main.main(["convert", "a.json", "--item-id", "abc"])


@pytest.mark.integration
class TestValidateCommand:
    def test_clean_graph(self, tmp_path) -> None:
        graph = _write(tmp_path / "g.json", {"root": "n-1", "nodes": {"n-1": {"type": "story", "children": []}}})
        assert main.main(["validate", graph]) == 0

    def test_graph_with_errors(self, tmp_path) -> None:
        graph = _write(tmp_path / "g.json", {"root": "n-1", "nodes": {"n-1": {"type": "story", "children": ["n-2"]}}})
        assert main.main(["validate", graph]) == 1

    def test_malformed_graph_is_reported_not_raised(self, tmp_path) -> None:
        payload = {"root": "n-1", "nodes": {"n-1": {"type": "story", "children": "n-2", "data": {"storyTheme": {"id": 1}}}}}
        graph = _write(tmp_path / "g.json", payload)
        assert main.main(["validate", graph]) == 1

    def test_fail_on_warning(self, tmp_path) -> None:
        payload = {
            "root": "n-1",
            "nodes": {"n-1": {"type": "story", "children": ["n-2"]}, "n-2": {"type": "text", "data": {"text": ""}}},
        }
        graph = _write(tmp_path / "g.json", payload)
        assert main.main(["validate", graph]) == 0
        assert main.main(["validate", graph, "--fail-on-warning"]) == 1

    def test_invalid_json_exits_with_2(self, tmp_path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        assert main.main(["validate", str(bad)]) == 2


def test_no_command_prints_help() -> None:
    assert main.main([]) == 1
