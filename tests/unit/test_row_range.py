"""Unit tests for row ranges and partitioning."""

from __future__ import annotations

import pytest

from tabular_engine.domain.value_objects import RowRange, split_rows


@pytest.mark.unit
class TestRowRange:
    """Tests for RowRange."""

    def test_length_and_iteration(self) -> None:
        """A range covers [start, stop)."""
        r = RowRange(2, 5)

        assert len(r) == 3
        assert list(r) == [2, 3, 4]
        assert str(r) == "[2, 5)"

    def test_empty_range(self) -> None:
        """start == stop is an empty range."""
        assert len(RowRange(4, 4)) == 0

    def test_invalid_bounds(self) -> None:
        """stop < start and negative starts are rejected."""
        with pytest.raises(ValueError):
            RowRange(5, 2)
        with pytest.raises(ValueError):
            RowRange(-1, 2)

    def test_ordering(self) -> None:
        """Ranges order by start."""
        assert sorted([RowRange(3, 5), RowRange(0, 3)]) == [RowRange(0, 3), RowRange(3, 5)]

    def test_dict_form(self) -> None:
        """Ranges have a plain dict form."""
        r = RowRange(1, 4)

        assert r.to_dict() == {"start": 1, "stop": 4}
        assert RowRange.from_dict(r.to_dict()) == r


@pytest.mark.unit
class TestSplitRows:
    """Tests for split_rows."""

    @pytest.mark.parametrize("rows", [0, 1, 5, 17])
    @pytest.mark.parametrize("partitions", [1, 2, 3, 5, 8])
    def test_ranges_cover_rows_exactly(self, rows: int, partitions: int) -> None:
        """Ranges are contiguous, non-overlapping and covering."""
        ranges = split_rows(rows, partitions)

        assert ranges[0].start == 0
        assert ranges[-1].stop == rows
        for left, right in zip(ranges, ranges[1:]):
            assert left.stop == right.start
        assert sum(len(r) for r in ranges) == rows

    def test_remainder_goes_to_earlier_ranges(self) -> None:
        """Earlier ranges are at most one row longer."""
        assert split_rows(5, 2) == [RowRange(0, 3), RowRange(3, 5)]
        assert [len(r) for r in split_rows(10, 4)] == [3, 3, 2, 2]

    def test_partition_count_clamped_to_rows(self) -> None:
        """No range is empty when rows exist."""
        ranges = split_rows(3, 10)

        assert len(ranges) == 3
        assert all(len(r) == 1 for r in ranges)

    def test_empty_table(self) -> None:
        """An empty table yields one empty range."""
        assert split_rows(0, 4) == [RowRange(0, 0)]

    def test_invalid_partitions(self) -> None:
        """Partition count must be positive."""
        with pytest.raises(ValueError):
            split_rows(5, 0)
