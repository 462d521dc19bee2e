# tests/property/test_partition_properties.py
"""Property-based tests for partitioning and order preservation.

Properties:
- slice_bounds tiles [0, n) contiguously with near-equal slice sizes
- Piping through `cat` preserves every partition's elements and order,
  sequentially or on a worker pool
- Piping through `wc -l` yields one count per partition; the counts sum to
  the number of input elements
"""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from shardpipe.engine import LocalDataset, slice_bounds
from tests.conftest import requires_command
from tests.property.conftest import item_counts, partition_counts, text_lines
from tests.property.settings import STANDARD_SETTINGS, SUBPROCESS_SETTINGS


class TestSliceBoundsProperties:
    @given(length=item_counts, num_slices=partition_counts)
    @STANDARD_SETTINGS
    def test_slices_tile_the_range(self, length: int, num_slices: int) -> None:
        bounds = slice_bounds(length, num_slices)
        assert len(bounds) == num_slices
        assert bounds[0][0] == 0
        assert bounds[-1][1] == length
        for (_, end), (start, _) in zip(bounds, bounds[1:], strict=False):
            assert end == start

    @given(length=item_counts, num_slices=partition_counts)
    @STANDARD_SETTINGS
    def test_slice_sizes_differ_by_at_most_one(self, length: int, num_slices: int) -> None:
        sizes = [end - start for start, end in slice_bounds(length, num_slices)]
        assert max(sizes) - min(sizes) <= 1


@requires_command("cat")
class TestPipeOrderProperties:
    @given(
        lines=text_lines,
        num_partitions=st.integers(min_value=1, max_value=6),
        max_workers=st.sampled_from([1, 3]),
    )
    @SUBPROCESS_SETTINGS
    def test_cat_preserves_partitions(self, lines: list[str], num_partitions: int, max_workers: int) -> None:
        ds = LocalDataset.parallelize(lines, num_partitions=num_partitions, max_workers=max_workers)
        assert ds.pipe(["cat"]).glom() == ds.glom()


@requires_command("wc")
class TestPipeCountProperties:
    @given(lines=text_lines, num_partitions=st.integers(min_value=1, max_value=8))
    @SUBPROCESS_SETTINGS
    def test_line_counts_add_up_to_the_input(self, lines: list[str], num_partitions: int) -> None:
        ds = LocalDataset.parallelize(lines, num_partitions=num_partitions)
        counts = ds.pipe("wc -l").collect()
        assert len(counts) == num_partitions
        assert sum(int(count.strip()) for count in counts) == len(lines)
