"""Property-based tests for caption tokenization and timing."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from clipline.services.captions import (
    CaptionStyle,
    WordTiming,
    chunk_one_word,
    format_ass_time,
    tokenize,
)
from conftest import alignment_for

pytestmark = pytest.mark.property

EPS = 1e-9


@st.composite
def generate_word_timings(draw):
    """Generate word timings with non-decreasing starts, possibly overlapping."""
    n = draw(st.integers(min_value=1, max_value=30))
    t = draw(st.floats(min_value=0.0, max_value=5.0))
    words = []
    for i in range(n):
        duration = draw(st.floats(min_value=0.0, max_value=1.5))
        words.append(WordTiming(f"w{i}", t, t + duration))
        t += draw(st.floats(min_value=0.0, max_value=1.0))
    return words


@st.composite
def generate_spoken_words(draw):
    """Generate words of letters with an optional punctuation suffix."""
    letters = st.text(alphabet="abcdefghijklmnopqrstuvwxyzABCXYZ'", min_size=1, max_size=8)
    suffix = st.text(alphabet=".,!?;:…", max_size=2)
    n = draw(st.integers(min_value=1, max_value=12))
    return [draw(letters) + draw(suffix) for _ in range(n)]


class TestCaptionTimingProperties:
    @given(words=generate_word_timings())
    @settings(max_examples=50, deadline=10000)
    def test_one_chunk_per_word(self, words):
        assert len(chunk_one_word(words)) == len(words)

    @given(words=generate_word_timings())
    @settings(max_examples=50, deadline=10000)
    def test_chunks_never_overlap(self, words):
        style = CaptionStyle()
        chunks = chunk_one_word(words, style)
        for prev, cur in zip(chunks, chunks[1:]):
            assert cur.start >= prev.end + style.min_gap_seconds - EPS

    @given(words=generate_word_timings())
    @settings(max_examples=50, deadline=10000)
    def test_chunks_have_positive_length_and_ascending_starts(self, words):
        chunks = chunk_one_word(words)
        for c in chunks:
            assert c.end >= c.start
        starts = [c.start for c in chunks]
        assert starts == sorted(starts)

    @given(words=generate_word_timings(), offset=st.floats(min_value=0.0, max_value=10.0))
    @settings(max_examples=50, deadline=10000)
    def test_offset_never_starts_before_offset(self, words, offset):
        chunks = chunk_one_word(words, offset_seconds=offset)
        assert chunks[0].start >= offset + words[0].start - EPS


class TestTokenizeProperties:
    @given(spoken=generate_spoken_words())
    @settings(max_examples=50, deadline=10000)
    def test_space_joined_words_round_trip(self, spoken):
        a = alignment_for(" ".join(spoken))
        words = tokenize(a["characters"], a["character_start_times_seconds"], a["character_end_times_seconds"])
        assert [w.word for w in words] == spoken

    @given(spoken=generate_spoken_words())
    @settings(max_examples=50, deadline=10000)
    def test_word_times_follow_character_order(self, spoken):
        a = alignment_for(" ".join(spoken))
        words = tokenize(a["characters"], a["character_start_times_seconds"], a["character_end_times_seconds"])
        for w in words:
            assert w.start <= w.end
        for prev, cur in zip(words, words[1:]):
            assert prev.end <= cur.start


class TestAssTimeProperties:
    @given(seconds=st.floats(min_value=0.0, max_value=36000.0))
    @settings(max_examples=50, deadline=10000)
    def test_formatted_time_within_a_centisecond(self, seconds):
        h, m, rest = format_ass_time(seconds).split(":")
        s, cs = rest.split(".")
        parsed = int(h) * 3600 + int(m) * 60 + int(s) + int(cs) / 100
        assert len(m) == 2 and len(s) == 2 and len(cs) == 2
        assert abs(parsed - seconds) <= 0.01 + 1e-6
