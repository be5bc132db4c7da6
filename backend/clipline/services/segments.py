from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SegmentGroup:
    """Final segment ``index`` (1-based) built from ``parts`` of the raw split."""
    index: int
    parts: tuple[int, ...]
    duration: float


def plan_segment_merge(
    durations: list[float],
    segment_seconds: float,
    tolerance: float = 0.25,
) -> list[SegmentGroup]:
    """Fold a short trailing part into the one before it.

    ``durations`` are the raw split parts in order. The result is numbered
    contiguously from 1.
    """
    if not durations:
        return []
    groups = [[i] for i in range(len(durations))]
    if len(durations) >= 2 and durations[-1] < segment_seconds - tolerance:
        tail = groups.pop()
        groups[-1].extend(tail)
    return [
        SegmentGroup(index=n, parts=tuple(g), duration=sum(durations[i] for i in g))
        for n, g in enumerate(groups, start=1)
    ]
