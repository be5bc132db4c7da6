"""Background video selection and offset/loop planning for the render stage."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = {".mp4", ".mov", ".mkv", ".webm", ".m4v"}
DEFAULT_BACKGROUND_DIR = "default"


@dataclass(frozen=True)
class BackgroundWindow:
    offset_seconds: float
    loop: bool
    required_seconds: float


def plan_background_window(
    background_seconds: float,
    audio_seconds: float,
    *,
    lead_in_seconds: float,
    end_buffer_seconds: float,
    explicit_offset: float | None = None,
    rng: random.Random | None = None,
) -> BackgroundWindow:
    """Pick where in the background the render starts and whether it must loop.

    The background has to cover audio + lead-in + end buffer from the chosen
    offset; when it cannot, render from 0 with the background looped.
    """
    rng = rng or random.Random()
    required = audio_seconds + lead_in_seconds + end_buffer_seconds

    if explicit_offset is not None:
        if background_seconds > explicit_offset + required:
            return BackgroundWindow(explicit_offset, False, required)
        logger.warning(
            f"[render] background too short for explicit offset: bg={background_seconds:.2f}s "
            f"start={explicit_offset:.2f}s required={required:.2f}s, looping from 0"
        )
        return BackgroundWindow(0.0, True, required)

    max_start = background_seconds - required
    if max_start > 0:
        return BackgroundWindow(rng.random() * max_start, False, required)
    return BackgroundWindow(0.0, True, required)


def list_backgrounds(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() in VIDEO_EXTENSIONS
    )


def choose_background(
    backgrounds_root: str | Path,
    customer_id: str,
    rng: random.Random | None = None,
) -> Path | None:
    """Random background from the customer's folder, else from ``default/``."""
    rng = rng or random.Random()
    root = Path(backgrounds_root)
    candidates = list_backgrounds(root / customer_id)
    if not candidates:
        candidates = list_backgrounds(root / DEFAULT_BACKGROUND_DIR)
    if not candidates:
        return None
    return rng.choice(candidates)
