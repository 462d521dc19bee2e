"""Local host harness for running pipe transforms over partitioned data."""

from shardpipe.engine.local import LocalDataset, slice_bounds

__all__ = [
    "LocalDataset",
    "slice_bounds",
]
