"""Tests for search-result scoring."""

import pytest

from lyricsync.models.lyrics import Candidate
from lyricsync.services import candidate_scorer
from lyricsync.services.candidate_scorer import normalize, rank, score, similarity, strip_parentheses


def _candidate(title: str, artist: str, hash: str = "h") -> Candidate:
    return Candidate(title=title, artist=artist, hash=hash, album_id="1")


class TestNormalize:
    def test_accents_and_punctuation(self):
        assert normalize("Café—Déjà Vu!") == "cafe deja vu"

    def test_case_and_whitespace(self):
        assert normalize("  HELLO   World ") == "hello world"

    def test_cjk_kept(self):
        assert normalize("米津玄師") == "米津玄師"

    def test_empty(self):
        assert normalize("") == ""

    def test_strip_parentheses(self):
        assert strip_parentheses("Lemon (Live Ver.)") == "Lemon"
        assert strip_parentheses("A (x) B") == "A B"


class TestSimilarity:
    def test_exact(self):
        assert similarity("Lemon", "lemon") == 1.0

    def test_requested_inside_candidate(self):
        assert similarity("Lemon", "Lemon Remix") == 0.9

    def test_candidate_inside_requested(self):
        assert similarity("Lemon Remix", "Lemon") == 0.85

    def test_word_overlap_with_partial_credit(self):
        # hello exact, big no match, world partial against worlds
        assert similarity("hello big world", "hello small worlds") == pytest.approx(1.5 / 3 * 0.8)

    def test_short_words_get_no_partial_credit(self):
        assert similarity("cat dog", "cats dogs") == 0.0

    def test_partial_weight_is_tunable(self):
        assert similarity("hello big world", "hello small worlds", partial_weight=0.0) == pytest.approx(1 / 3 * 0.8)

    def test_empty_inputs(self):
        assert similarity("", "x") == 0.0
        assert similarity("x", "!!!") == 0.0

    def test_bounded(self):
        for a, b in [("a b c", "c b a"), ("one", "two"), ("Lemon", "Lemon")]:
            assert 0.0 <= similarity(a, b) <= 1.0


class TestScore:
    def test_exact_match_gets_bonus(self):
        assert score(_candidate("Lemon", "Kenshi Yonezu"), "Lemon", "Kenshi Yonezu") == pytest.approx(1.1)

    def test_parenthetical_suffix_ignored(self):
        assert score(_candidate("Lemon (Live)", "Kenshi Yonezu"), "Lemon", "Kenshi Yonezu") == pytest.approx(1.1)

    def test_exact_components_are_one(self):
        assert similarity("Sunny Day", "Sunny Day") == 1.0
        assert similarity("Jay Chou", "Jay Chou") == 1.0

    def test_remix_suffix_still_confident(self):
        assert score(_candidate("Sunny Day (Remix)", "Jay Chou"), "Sunny Day", "Jay Chou") >= 0.95

    def test_no_bonus_below_threshold(self):
        result = score(_candidate("Lemon", "Someone Else"), "Lemon", "Kenshi Yonezu")
        assert result == pytest.approx(candidate_scorer.TITLE_WEIGHT * 1.0)

    def test_empty_artist(self):
        assert score(_candidate("Lemon", "Kenshi Yonezu"), "Lemon", "") == pytest.approx(0.55)


class TestRank:
    def test_best_first_with_rounded_scores(self):
        ranked = rank(
            [
                _candidate("Lemonade", "Other", "a"),
                _candidate("Lemon", "Kenshi Yonezu", "b"),
            ],
            "Lemon",
            "Kenshi Yonezu",
        )
        assert [c.hash for c in ranked] == ["b", "a"]
        assert ranked[0].score == 1.1
        assert ranked[1].score == round(ranked[1].score, 3)

    def test_ties_keep_provider_order(self):
        ranked = rank(
            [_candidate("Song", "Band", "first"), _candidate("Song", "Band", "second")],
            "Song",
            "Band",
        )
        assert [c.hash for c in ranked] == ["first", "second"]

    def test_empty(self):
        assert rank([], "a", "b") == []
