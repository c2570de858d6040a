"""Row ranges used to partition a table across workers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True, order=True)
class RowRange:
    """Half-open range ``[start, stop)`` of row positions.

    Example:
        >>> r = RowRange(0, 3)
        >>> len(r)
        3
        >>> list(r)
        [0, 1, 2]
    """

    start: int
    stop: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"start must be non-negative, got {self.start}")
        if self.stop < self.start:
            raise ValueError(f"stop ({self.stop}) must be >= start ({self.start})")

    def __len__(self) -> int:
        return self.stop - self.start

    def __iter__(self):
        return iter(range(self.start, self.stop))

    def __str__(self) -> str:
        return f"[{self.start}, {self.stop})"

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "stop": self.stop}

    @classmethod
    def from_dict(cls, data: dict[str, int]) -> RowRange:
        return cls(start=int(data["start"]), stop=int(data["stop"]))


def split_rows(num_rows: int, partitions: int) -> list[RowRange]:
    """Split ``num_rows`` rows into contiguous, non-overlapping ranges.

    The partition count is clamped to ``[1, max(1, num_rows)]`` so no range is
    empty unless the table itself is empty. Earlier ranges receive the
    remainder rows.

    Args:
        num_rows: Number of rows in the table
        partitions: Requested number of partitions

    Returns:
        Ranges in row order covering ``[0, num_rows)`` exactly.
    """
    if num_rows < 0:
        raise ValueError(f"num_rows must be non-negative, got {num_rows}")
    if partitions < 1:
        raise ValueError(f"partitions must be >= 1, got {partitions}")

    count = min(partitions, max(1, num_rows))
    base, extra = divmod(num_rows, count)

    ranges = []
    start = 0
    for i in range(count):
        size = base + (1 if i < extra else 0)
        ranges.append(RowRange(start, start + size))
        start += size
    return ranges
