from __future__ import annotations

import wave
from pathlib import Path


def write_pcm16_mono(path: Path, pcm: bytes, sample_rate: int) -> Path:
    """Wrap raw 16-bit little-endian mono PCM in a WAV container."""
    if sample_rate <= 0:
        raise ValueError(f"invalid sample rate: {sample_rate}")
    if not pcm:
        raise ValueError("PCM audio is empty")
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return path


def pcm16_mono_duration(pcm: bytes, sample_rate: int) -> float:
    return len(pcm) / (2.0 * sample_rate)
