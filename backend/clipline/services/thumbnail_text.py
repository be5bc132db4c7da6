"""Thumbnail overlay text and sizing for generated and premade items."""
from __future__ import annotations

from dataclasses import dataclass

FALLBACK_TEXT = "CLIPLINE"
SENTENCE_END = ".!?"
MAX_SENTENCE_CHARS = 90

GENERATED_FONT_SIZES = (170, 150, 130, 115)
PREMADE_FONT_SIZES = (190, 170, 150, 130)


@dataclass(frozen=True)
class ThumbnailSpec:
    text: str
    font_size: int
    at_fraction: float
    darkness: float
    border: int

    def frame_time(self, duration_seconds: float) -> float:
        return max(1.0, duration_seconds * self.at_fraction)


def extract_first_sentence(text: str | None) -> str | None:
    if not text or not text.strip():
        return None
    text = text.replace("\r\n", "\n").strip()

    idx = min((i for i in (text.find(c) for c in SENTENCE_END) if i >= 0), default=-1)
    if idx >= 0:
        candidate = text[: idx + 1]
    else:
        candidate = text.split("\n", 1)[0]

    candidate = candidate.strip().strip("\"' ")
    if not candidate:
        return None
    if len(candidate) > MAX_SENTENCE_CHARS:
        candidate = candidate[:MAX_SENTENCE_CHARS].rstrip() + "…"
    return candidate


def stylize(text: str) -> str:
    return " ".join(text.split()).upper()


def one_word_per_line(text: str, max_lines: int = 4) -> str:
    words = text.split()
    if not words:
        return FALLBACK_TEXT
    clipped = len(words) > max_lines
    words = words[:max_lines]
    if clipped:
        words[-1] = words[-1].rstrip(".!?") + "…"
    return "\n".join(words)


def choose_font_size(text: str, sizes: tuple[int, int, int, int]) -> int:
    big, medium, small, tiny = sizes
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    longest = max((len(line) for line in lines), default=0)
    if longest <= 10:
        return big
    if longest <= 14:
        return medium
    if longest <= 18:
        return small
    return tiny


def generated_thumbnail_spec(script_text: str | None) -> ThumbnailSpec:
    raw = stylize(extract_first_sentence(script_text) or FALLBACK_TEXT)
    text = one_word_per_line(raw, max_lines=4)
    return ThumbnailSpec(
        text=text,
        font_size=choose_font_size(text, GENERATED_FONT_SIZES),
        at_fraction=0.35,
        darkness=0.42,
        border=12,
    )


def premade_label(series_index: int, series_count: int | None) -> str:
    if series_count is not None and series_index == series_count:
        return "FINAL PART"
    return f"PART {series_index}"


def premade_thumbnail_spec(label: str) -> ThumbnailSpec:
    text = stylize(label)
    return ThumbnailSpec(
        text=text,
        font_size=choose_font_size(text, PREMADE_FONT_SIZES),
        at_fraction=0.20,
        darkness=0.45,
        border=14,
    )
