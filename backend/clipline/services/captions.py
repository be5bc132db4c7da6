"""
Caption timing engine.

Turns per-character speech alignment into one-word caption intervals and
renders them as an ASS subtitle script for the render stage:

    alignment -> words (whitespace/punctuation tokenizer)
              -> chunks (end-hold, min-gap, overlap clamp, global offset)
              -> ASS events with karaoke duration tags

Pure functions only; no I/O beyond parsing the JSON text handed in.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from clipline.errors import CaptionDataError

OUTPUT_WIDTH = 1080
OUTPUT_HEIGHT = 1920

PUNCTUATION = frozenset(".,!?;:…")
MIN_CHUNK_SECONDS = 0.06


@dataclass(frozen=True)
class CaptionStyle:
    font_name: str = "BowlbyOne-Regular"
    font_size: int = 72
    # ASS colours are AABBGGRR
    primary_color: str = "&H008FFF34&"
    secondary_color: str = "&H0000FFFF&"
    outline_color: str = "&H00000000&"
    back_color: str = "&H00000000&"
    outline: int = 8
    shadow: int = 3
    min_gap_seconds: float = 0.02
    end_hold_seconds: float = 0.05
    preset: str = "capcut_green"


@dataclass(frozen=True)
class WordTiming:
    word: str
    start: float
    end: float


@dataclass(frozen=True)
class CaptionChunk:
    word: WordTiming
    start: float
    end: float


# ── Parsing ─────────────────────────────────────────────────

def _alignment_arrays(payload: Any) -> tuple[list[str], list[float], list[float]]:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise CaptionDataError("timestamps are not valid JSON", component="captions") from exc
    if not isinstance(payload, dict):
        raise CaptionDataError("timestamps must be a JSON object", component="captions")

    align = payload.get("alignment")
    if align is None:
        align = payload
    if not isinstance(align, dict):
        raise CaptionDataError("alignment must be an object", component="captions")

    chars = list(align.get("characters") or [])
    starts = [float(x) for x in align.get("character_start_times_seconds") or []]
    ends = [float(x) for x in align.get("character_end_times_seconds") or []]
    if not chars or len(chars) != len(starts) or len(chars) != len(ends):
        raise CaptionDataError(
            "invalid alignment: missing or mismatched arrays",
            component="captions",
            details={"characters": len(chars), "starts": len(starts), "ends": len(ends)},
        )
    return chars, starts, ends


def tokenize(chars: list[str], starts: list[float], ends: list[float]) -> list[WordTiming]:
    """Split characters into word tokens.

    A token ends at whitespace or right after a punctuation character; a
    token made only of punctuation is merged into the token before it.
    """
    words: list[WordTiming] = []
    current: list[str] = []
    word_start: float | None = None
    last_end: float | None = None

    def flush() -> None:
        nonlocal word_start, last_end
        if current and word_start is not None and last_end is not None:
            words.append(WordTiming("".join(current), word_start, last_end))
        current.clear()
        word_start = None
        last_end = None

    for raw, st, et in zip(chars, starts, ends):
        ch = raw[:1] if raw else ""
        if not ch or ch.isspace():
            flush()
            continue
        if word_start is None:
            word_start = st
        current.append(ch)
        last_end = et
        if ch in PUNCTUATION:
            flush()
    flush()

    merged: list[WordTiming] = []
    for w in words:
        if merged and all(c in PUNCTUATION for c in w.word):
            prev = merged[-1]
            merged[-1] = WordTiming(prev.word + w.word, prev.start, w.end)
        else:
            merged.append(w)
    return merged


def parse_words(timestamps: Any) -> list[WordTiming]:
    """Parse saved timestamps (JSON text or dict) into word timings."""
    chars, starts, ends = _alignment_arrays(timestamps)
    words = tokenize(chars, starts, ends)
    if not words:
        raise CaptionDataError("alignment produced no words", component="captions")
    return words


# ── Timing ──────────────────────────────────────────────────

def chunk_one_word(
    words: list[WordTiming],
    style: CaptionStyle | None = None,
    offset_seconds: float = 0.0,
) -> list[CaptionChunk]:
    style = style or CaptionStyle()
    chunks: list[CaptionChunk] = []

    for i, w in enumerate(words):
        start = w.start + offset_seconds
        end = w.end + offset_seconds
        if i < len(words) - 1:
            next_start = words[i + 1].start + offset_seconds
            end = min(end + style.end_hold_seconds, max(end, next_start - style.min_gap_seconds))
        else:
            end = end + style.end_hold_seconds
        chunks.append(CaptionChunk(w, start, end))

    for i in range(1, len(chunks)):
        prev = chunks[i - 1]
        cur = chunks[i]
        if cur.start < prev.end + style.min_gap_seconds:
            new_start = prev.end + style.min_gap_seconds
            new_end = max(cur.end, new_start + MIN_CHUNK_SECONDS)
            chunks[i] = CaptionChunk(cur.word, new_start, new_end)

    return chunks


# ── ASS output ──────────────────────────────────────────────

def format_ass_time(seconds: float) -> str:
    """Format seconds as H:MM:SS.cc, clamping negatives to zero."""
    t = max(0.0, seconds)
    hours = int(t // 3600)
    minutes = int((t % 3600) // 60)
    secs = int(t % 60)
    centis = min(99, int(round((t - int(t)) * 100)))
    return f"{hours}:{minutes:02d}:{secs:02d}.{centis:02d}"


def ass_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("{", "\\{").replace("}", "\\}")


def animation_tags(preset: str | None) -> str:
    preset = (preset or "capcut_green").lower()
    pos = "\\an5\\pos(540,620)"
    if preset in ("none", "off"):
        return "{" + pos + "}"
    if preset == "fade":
        return "{" + pos + "\\fad(60,80)}"
    return "{" + pos + "\\fad(35,70)\\t(0,80,\\fscx118\\fscy118)\\t(80,150,\\fscx100\\fscy100)}"


def karaoke_centiseconds(start: float, end: float) -> int:
    return max(1, int(round(max(0.01, end - start) * 100)))


def generate_ass(chunks: list[CaptionChunk], style: CaptionStyle | None = None) -> str:
    s = style or CaptionStyle()
    lines = [
        "[Script Info]",
        "ScriptType: v4.00+",
        "Collisions: Normal",
        f"PlayResX: {OUTPUT_WIDTH}",
        f"PlayResY: {OUTPUT_HEIGHT}",
        "WrapStyle: 2",
        "ScaledBorderAndShadow: yes",
        "",
        "[V4+ Styles]",
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, "
        "Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, "
        "Alignment, MarginL, MarginR, MarginV, Encoding",
        f"Style: Default,{s.font_name},{s.font_size},{s.primary_color},{s.secondary_color},"
        f"{s.outline_color},{s.back_color},-1,0,0,0,100,100,0,0,1,{s.outline},{s.shadow},5,10,10,0,1",
        "",
        "[Events]",
        "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text",
    ]
    anim = animation_tags(s.preset)
    for c in chunks:
        karaoke = "{\\k%d}%s" % (karaoke_centiseconds(c.start, c.end), ass_escape(c.word.word))
        lines.append(
            f"Dialogue: 0,{format_ass_time(c.start)},{format_ass_time(c.end)},Default,,0,0,0,,{anim}{karaoke}"
        )
    return "\n".join(lines) + "\n"


def build_ass_from_timestamps(
    timestamps: Any,
    *,
    offset_seconds: float = 0.0,
    style: CaptionStyle | None = None,
) -> str:
    """Full chain used by the render stage: timestamps -> ASS script."""
    style = style or CaptionStyle()
    words = parse_words(timestamps)
    return generate_ass(chunk_one_word(words, style, offset_seconds), style)
