"""Stack of array frames enclosing the node currently being walked."""

from __future__ import annotations

from extraction_engine.constants import ROOT_ROW_KEY_ID
from extraction_engine.domain.models import RowKeyFrame


class RowKeyTracker:
    """Push a frame when descending into an array element, pop it on the way back."""

    __slots__ = ("_frames",)

    def __init__(self) -> None:
        self._frames: list[RowKeyFrame] = []

    def push(self, frame: RowKeyFrame) -> None:
        self._frames.append(frame)

    def pop(self) -> RowKeyFrame:
        if not self._frames:
            raise IndexError("pop from empty row-key stack")
        return self._frames.pop()

    def get_row_key(self) -> tuple[RowKeyFrame, ...]:
        return tuple(self._frames)

    @property
    def depth(self) -> int:
        return len(self._frames)


def compute_row_key_id(row_key: tuple[RowKeyFrame, ...] | list[RowKeyFrame]) -> str:
    """Join frames as ``array_key#index|...``; ``root`` when no array encloses the value."""

    if not row_key:
        return ROOT_ROW_KEY_ID
    return "|".join(f"{frame.array_key}#{frame.index}" for frame in row_key)


__all__ = ["RowKeyTracker", "compute_row_key_id"]
