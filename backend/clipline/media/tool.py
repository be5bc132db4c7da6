from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from clipline.services.thumbnail_text import ThumbnailSpec


@dataclass(frozen=True)
class RenderJob:
    background: Path
    offset_seconds: float
    loop: bool
    audio: Path
    subtitles: Path
    duration_seconds: float
    audio_delay_seconds: float
    output: Path


@runtime_checkable
class MediaTool(Protocol):
    """Audio/video operations the stage workers delegate to."""

    async def probe_duration(self, path: Path) -> float: ...

    async def split(self, source: Path, segment_seconds: int, out_dir: Path) -> list[Path]: ...

    async def concat(self, parts: list[Path], output: Path) -> Path: ...

    async def render(self, job: RenderJob) -> Path: ...

    async def frame(self, source: Path, output: Path, at_seconds: float, spec: ThumbnailSpec) -> Path: ...
