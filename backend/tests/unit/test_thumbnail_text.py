"""Tests for thumbnail overlay text and sizing."""

import pytest

from clipline.services.thumbnail_text import (
    FALLBACK_TEXT,
    choose_font_size,
    extract_first_sentence,
    generated_thumbnail_spec,
    one_word_per_line,
    premade_label,
    premade_thumbnail_spec,
)


class TestFirstSentence:
    def test_stops_at_first_terminator(self):
        assert extract_first_sentence("Hello world. Second one!") == "Hello world."

    def test_earliest_terminator_wins(self):
        assert extract_first_sentence("Really? Yes. Sure!") == "Really?"

    def test_first_line_when_no_terminator(self):
        assert extract_first_sentence("no stop here\nnext line") == "no stop here"

    def test_quotes_stripped(self):
        assert extract_first_sentence('"Quoted start."') == "Quoted start."

    def test_long_sentence_clipped(self):
        result = extract_first_sentence("x" * 200)
        assert result.endswith("…")
        assert len(result) == 91

    @pytest.mark.parametrize("text", [None, "", "   \n "])
    def test_empty_input(self, text):
        assert extract_first_sentence(text) is None


class TestLayout:
    def test_one_word_per_line_clips_to_four(self):
        assert one_word_per_line("ONE TWO THREE FOUR FIVE.") == "ONE\nTWO\nTHREE\nFOUR…"

    def test_one_word_per_line_fallback(self):
        assert one_word_per_line("   ") == FALLBACK_TEXT

    @pytest.mark.parametrize(
        "text,expected",
        [("SHORT", 170), ("ELEVENCHARS", 150), ("FIFTEEN_CHARSXX", 130), ("X" * 19, 115)],
    )
    def test_font_size_by_longest_line(self, text, expected):
        assert choose_font_size(text, (170, 150, 130, 115)) == expected


class TestSpecs:
    def test_generated_spec(self):
        spec = generated_thumbnail_spec("Hello world. More text follows.")
        assert spec.text == "HELLO\nWORLD."
        assert spec.font_size == 170
        assert spec.at_fraction == pytest.approx(0.35)
        assert spec.darkness == pytest.approx(0.42)
        assert spec.border == 12

    def test_generated_spec_without_script(self):
        assert generated_thumbnail_spec(None).text == FALLBACK_TEXT

    def test_frame_time_at_least_one_second(self):
        spec = generated_thumbnail_spec("Hi.")
        assert spec.frame_time(100.0) == pytest.approx(35.0)
        assert spec.frame_time(2.0) == pytest.approx(1.0)

    def test_premade_labels(self):
        assert premade_label(1, 3) == "PART 1"
        assert premade_label(3, 3) == "FINAL PART"
        assert premade_label(2, None) == "PART 2"

    def test_premade_spec(self):
        spec = premade_thumbnail_spec("final part")
        assert spec.text == "FINAL PART"
        assert spec.font_size == 190
        assert spec.at_fraction == pytest.approx(0.20)
        assert spec.border == 14
