"""Tests for the credit/caption line filter."""

import pytest

from lyricsync.services.line_filter import LineFilter


@pytest.fixture
def line_filter():
    return LineFilter()


class TestShouldSkip:
    @pytest.mark.parametrize("text", [
        "作词：某人",
        "作曲 : 某人",
        "编曲：someone",
        "Produced by Someone",
        "Mixed by Someone",
        "Written by A & B",
        "TME享有本翻译作品的著作权",
    ])
    def test_credit_prefixes(self, line_filter: LineFilter, text: str):
        assert line_filter.should_skip(text)

    def test_leading_whitespace_trimmed(self, line_filter: LineFilter):
        assert line_filter.should_skip("   作词：某人")

    @pytest.mark.parametrize("text", ["(間奏)", "（間奏）", "(instrumental)"])
    def test_parenthesised_lines(self, line_filter: LineFilter, text: str):
        assert line_filter.should_skip(text)

    def test_partial_parentheses_kept(self, line_filter: LineFilter):
        assert not line_filter.should_skip("(oh) baby")
        assert not line_filter.should_skip("baby (oh)")

    def test_title_artist_caption(self, line_filter: LineFilter):
        assert line_filter.should_skip("Lemon - Kenshi Yonezu", "Lemon", "Kenshi Yonezu")
        assert line_filter.should_skip("Kenshi Yonezu - Lemon (Live)", "Lemon", "Kenshi Yonezu")

    def test_caption_needs_both_title_and_artist(self, line_filter: LineFilter):
        assert not line_filter.should_skip("Lemon - Kenshi Yonezu", "Lemon", None)
        assert not line_filter.should_skip("Lemon - Kenshi Yonezu")

    def test_regular_lyrics_kept(self, line_filter: LineFilter):
        assert not line_filter.should_skip("夢ならばどれほどよかったでしょう", "Lemon", "Kenshi Yonezu")
        assert not line_filter.should_skip("Hello world")

    def test_custom_prefixes(self):
        custom = LineFilter(skip_prefixes=["Intro"])
        assert custom.should_skip("Intro music")
        assert not custom.should_skip("作词：某人")

    def test_empty_prefix_list(self):
        assert not LineFilter(skip_prefixes=[]).should_skip("作词：某人")
