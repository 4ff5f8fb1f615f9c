import pytest

from core.template_detection import ClassicFormat
from core.theme_mapper import derive_theme, font_id_from_css


def _journal_values(**theme) -> dict:
    return {"settings": {"theme": theme}}


class TestDeriveTheme:
    def test_default_is_summit(self) -> None:
        choice = derive_theme({}, ClassicFormat.MAP_JOURNAL)
        assert choice.theme_id == "summit"
        assert choice.overrides == {}
        assert choice.classic_theme is None

    @pytest.mark.parametrize("major", ["dark", "black", "DARK"])
    def test_dark_major_maps_to_obsidian(self, major: str) -> None:
        choice = derive_theme(_journal_values(colors={"themeMajor": major}), ClassicFormat.MAP_JOURNAL)
        assert choice.theme_id == "obsidian"

    def test_journal_color_variables(self) -> None:
        values = _journal_values(colors={"panel": "#111", "dotNav": "#222", "textLink": "#333", "themeMajor": "light"})
        choice = derive_theme(values, ClassicFormat.MAP_JOURNAL)
        assert choice.overrides == {
            "backgroundColor": "#111",
            "headerFooterBackgroundColor": "#222",
            "themeColor1": "#333",
        }
        assert "panel -> backgroundColor" in choice.decisions

    def test_journal_fonts(self) -> None:
        values = _journal_values(
            fonts={
                "sectionTitle": {"value": "font-family:'open_sansregular', sans-serif;"},
                "sectionContent": {"value": "font-family: Lato, sans-serif;"},
            }
        )
        choice = derive_theme(values, ClassicFormat.MAP_JOURNAL)
        assert choice.overrides == {"titleFontId": "openSans", "bodyFontId": "lato"}

    def test_float_layout_without_theme_is_obsidian(self) -> None:
        choice = derive_theme({"settings": {"layout": {"id": "float"}}}, ClassicFormat.MAP_JOURNAL)
        assert choice.theme_id == "obsidian"

    def test_tour_colors_and_forced_summit(self) -> None:
        values = {"colors": "#444;#555", "settings": {"theme": {"colors": {"themeMajor": "dark"}}}}
        choice = derive_theme(values, ClassicFormat.MAP_TOUR)
        assert choice.theme_id == "summit"
        assert choice.overrides == {"headerFooterBackgroundColor": "#444", "backgroundColor": "#555"}

    def test_swipe_colors(self) -> None:
        choice = derive_theme({"colors": "#abc"}, ClassicFormat.SWIPE)
        assert choice.overrides == {"headerFooterBackgroundColor": "#abc"}

    def test_explicit_theme_keeps_overrides(self) -> None:
        values = _journal_values(colors={"panel": "#111", "themeMajor": "dark"})
        choice = derive_theme(values, ClassicFormat.MAP_JOURNAL, "summit")
        assert choice.theme_id == "summit"
        assert choice.overrides == {"backgroundColor": "#111"}
        assert choice.decisions[-1] == "theme obsidian overridden by request -> summit"

    def test_unknown_request_resolves_automatically(self) -> None:
        choice = derive_theme(_journal_values(colors={"themeMajor": "dark"}), ClassicFormat.MAP_JOURNAL, "neon")
        assert choice.theme_id == "obsidian"


class TestFontIdFromCss:
    @pytest.mark.parametrize(
        ("css", "expected"),
        [
            ("font-family:'Roboto', sans-serif", "roboto"),
            ("font-family: \"Noto Serif\";", "notoSerif"),
            ("font-family: Comic Sans MS;", None),
            ("color: red", None),
            (None, None),
        ],
    )
    def test_mapping(self, css, expected) -> None:
        assert font_id_from_css(css) == expected
