import pytest

from utils.html_text import get_attribute, parse_video_provider, split_html_segments, strip_html


class TestStripHtml:
    def test_tags_entities_and_whitespace(self) -> None:
        assert strip_html("<p>Fish &amp;&nbsp;chips</p>\n<p>  done </p>") == "Fish & chips done"
        assert strip_html("") == ""

    def test_get_attribute(self) -> None:
        assert get_attribute('<img src="a.png" alt=\'Alt &amp; text\'>', "alt") == "Alt & text"
        assert get_attribute("<img src=plain.png>", "src") == "plain.png"
        assert get_attribute("<img>", "src") is None


class TestSplitHtmlSegments:
    def test_blocks_in_order(self) -> None:
        segments = split_html_segments(
            "<h1>Title</h1><p>Plain</p><ul><li>a</li><li>b</li></ul><blockquote>Quoted</blockquote>"
        )
        assert [(s.kind, s.text_type) for s in segments] == [
            ("text", "h2"),
            ("text", "paragraph"),
            ("text", "bullet-list"),
            ("text", "quote"),
        ]
        assert segments[2].html == "<ul><li>a</li><li>b</li></ul>"

    def test_inline_image_and_action_split_paragraph(self) -> None:
        segments = split_html_segments(
            '<p>Before <img src="https://e.com/x.png" alt="X"> middle '
            '<a data-storymaps="MJ-ACTION-1" data-storymaps-type="media">Show</a> after</p>'
        )
        assert [s.kind for s in segments] == ["text", "image", "text", "action", "text"]
        assert segments[1].src == "https://e.com/x.png"
        assert segments[1].alt == "X"
        assert segments[3].action_id == "MJ-ACTION-1"
        assert segments[3].action_type == "media"
        assert segments[3].text == "Show"

    def test_figure_and_iframe(self) -> None:
        segments = split_html_segments(
            '<figure><img src="https://e.com/f.jpg"><figcaption>Cap</figcaption></figure>'
            '<iframe src="https://e.com/embed"></iframe>'
        )
        assert [(s.kind, s.src, s.caption) for s in segments] == [
            ("image", "https://e.com/f.jpg", "Cap"),
            ("embed", "https://e.com/embed", None),
        ]

    def test_markup_is_preserved_for_rich_text(self) -> None:
        (segment,) = split_html_segments("<p>Some <em>emphasis</em></p>")
        assert segment.has_markup
        assert segment.html == "Some <em>emphasis</em>"
        assert segment.text == "Some emphasis"

    def test_blank_scripts_and_comments_are_dropped(self) -> None:
        assert split_html_segments("<p>&nbsp;</p><script>alert(1)</script><!-- note -->") == []
        assert split_html_segments(None) == []

    def test_loose_text_becomes_paragraph(self) -> None:
        (segment,) = split_html_segments("just text")
        assert (segment.kind, segment.text, segment.has_markup) == ("text", "just text", False)


class TestParseVideoProvider:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", ("youtube", "dQw4w9WgXcQ")),
            ("https://youtu.be/dQw4w9WgXcQ", ("youtube", "dQw4w9WgXcQ")),
            ("https://www.youtube.com/embed/dQw4w9WgXcQ?rel=0", ("youtube", "dQw4w9WgXcQ")),
            ("https://vimeo.com/123456", ("vimeo", "123456")),
            ("https://player.vimeo.com/video/987", ("vimeo", "987")),
            ("https://example.com/movie.mp4", None),
            (None, None),
        ],
    )
    def test_providers(self, url, expected) -> None:
        assert parse_video_provider(url) == expected
