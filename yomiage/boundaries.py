"""Cumulative character offsets over a chunk sequence."""

import math

from yomiage.models import ChunkBoundary, ChunkPosition
from yomiage.segmenter import approx_chars_per_second


def build_boundaries(chunks: list[str]) -> tuple[list[ChunkBoundary], int]:
    """Prefix-sum chunk lengths into (start, end) offsets.

    Offsets address the plain concatenation of all chunks; no separators
    are counted. Returns the boundaries and the total character count.
    """
    boundaries = []
    cursor = 0
    for chunk in chunks:
        boundaries.append(ChunkBoundary(start=cursor, end=cursor + len(chunk)))
        cursor += len(chunk)
    return boundaries, cursor


class BoundaryIndex:
    """Maps between (chunk index, offset) and absolute character positions."""

    def __init__(self, chunks=()):
        boundaries, total = build_boundaries(list(chunks))
        self.boundaries = tuple(boundaries)
        self.total_chars = total

    def __len__(self):
        return len(self.boundaries)

    def locate(self, position: int) -> ChunkPosition:
        """Find the chunk containing an absolute position.

        The position is clamped to [0, total_chars]. Interval ends are
        inclusive, so a position exactly at a chunk end resolves to that
        chunk with offset == its length.
        """
        if not self.boundaries:
            return ChunkPosition(index=0, offset=0)
        clamped = max(0, min(int(position), self.total_chars))
        for index, boundary in enumerate(self.boundaries):
            if boundary.start <= clamped <= boundary.end:
                return ChunkPosition(index=index, offset=clamped - boundary.start)
        last = len(self.boundaries) - 1
        return ChunkPosition(index=last, offset=self.boundaries[last].length)

    def absolute(self, index: int, offset: int = 0) -> int:
        """Absolute position of `offset` within chunk `index`, clamped."""
        if not self.boundaries:
            return 0
        index = max(0, min(index, len(self.boundaries) - 1))
        boundary = self.boundaries[index]
        return boundary.start + max(0, min(offset, boundary.length))

    def played_chars(self, index: int, offset: int) -> int:
        return self.absolute(index, offset)

    def progress_percent(self, index: int, offset: int) -> int:
        if not self.total_chars:
            return 0
        return min(100, round(self.played_chars(index, offset) / self.total_chars * 100))

    def remaining_seconds(self, index: int, offset: int, rate: float) -> int | None:
        """Estimated seconds left at `rate`, or None when nothing is loaded."""
        if not self.total_chars:
            return None
        remaining = max(self.total_chars - self.played_chars(index, offset), 0)
        return math.ceil(remaining / approx_chars_per_second(rate))
