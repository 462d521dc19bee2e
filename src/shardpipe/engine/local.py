"""In-process partitioned dataset: the host for pipe transforms.

LocalDataset stands in for a distributed dataset model. It knows how to
split data into partitions, build per-partition TaskContexts and evaluate
partitions (optionally on a thread pool). It does not retry, schedule
across machines or track lineage beyond a chain of partition functions.

Evaluation is lazy: map_partitions() and pipe() only compose functions.
collect(), count() and glom() evaluate every partition.

Usage:
    ds = LocalDataset.parallelize([1, 2, 3, 4], num_partitions=2)
    ds.pipe("cat").collect()            # ["1", "2", "3", "4"]
    ds.pipe("wc -l").collect()          # ["2", "2"] (modulo padding)
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Generic, TypeVar

import structlog

from shardpipe.contracts.context import FileSplit, TaskContext
from shardpipe.contracts.enums import StderrMode, WorkingDirMode
from shardpipe.pipe.spec import DEFAULT_BUFFER_SIZE, PipeSpec, PostHook, PreHook
from shardpipe.pipe.transform import PipeTransform
from shardpipe.plugins.serializers.base import SerializationStrategy
from shardpipe.plugins.serializers.text import TextLineSerializer

logger = structlog.get_logger(__name__)

T = TypeVar("T")
U = TypeVar("U")

PartitionFn = Callable[[TaskContext], Iterator[Any]]
"""Produces one partition's elements for a given task."""

# Stage ids are unique per host process; TaskContext.working_dir_name() adds the pid.
_stage_ids = itertools.count()
_stage_ids_lock = threading.Lock()


def _next_stage_id() -> int:
    with _stage_ids_lock:
        return next(_stage_ids)


def slice_bounds(length: int, num_slices: int) -> list[tuple[int, int]]:
    """Contiguous [start, end) bounds splitting `length` items into `num_slices`.

    Slice i covers items[i * length // num_slices : (i + 1) * length // num_slices],
    so slice sizes differ by at most one and empty slices are allowed.
    """
    if num_slices < 1:
        raise ValueError(f"num_slices must be >= 1, got {num_slices}")
    return [(i * length // num_slices, (i + 1) * length // num_slices) for i in range(num_slices)]


def _read_lines(path: Path) -> Iterator[str]:
    with path.open(encoding="utf-8", newline=None) as f:
        for line in f:
            yield line[:-1] if line.endswith("\n") else line


class LocalDataset(Generic[T]):
    """A lazily evaluated, partitioned collection.

    Args:
        partitions: One function per partition producing its elements
        splits: File split per partition (None where not file-backed)
        staged_files: Files symlinked into isolated working directories
        max_workers: Partitions evaluated concurrently (1 = sequential)
    """

    def __init__(
        self,
        partitions: Sequence[PartitionFn],
        *,
        splits: Sequence[FileSplit | None] | None = None,
        staged_files: Iterable[Path] = (),
        max_workers: int = 1,
    ) -> None:
        if splits is not None and len(splits) != len(partitions):
            raise ValueError(f"Got {len(splits)} splits for {len(partitions)} partitions")
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._partitions = list(partitions)
        self._splits: list[FileSplit | None] = list(splits) if splits is not None else [None] * len(self._partitions)
        self._staged_files = tuple(Path(p) for p in staged_files)
        self._max_workers = max_workers

    # === Construction ===

    @classmethod
    def parallelize(
        cls,
        items: Iterable[T],
        num_partitions: int = 1,
        *,
        staged_files: Iterable[Path] = (),
        max_workers: int = 1,
    ) -> LocalDataset[T]:
        """Split items into contiguous partitions (see slice_bounds)."""
        data = list(items)

        def make(start: int, end: int) -> PartitionFn:
            return lambda ctx: iter(data[start:end])

        partitions = [make(start, end) for start, end in slice_bounds(len(data), num_partitions)]
        return cls(partitions, staged_files=staged_files, max_workers=max_workers)

    @classmethod
    def text_file(
        cls,
        *paths: str | Path,
        staged_files: Iterable[Path] = (),
        max_workers: int = 1,
    ) -> LocalDataset[str]:
        """One partition per file; elements are lines without terminators.

        Each partition carries a FileSplit, so pipes over it export the
        file path to the subprocess environment.
        """
        resolved = [Path(p) for p in paths]

        def make(path: Path) -> PartitionFn:
            return lambda ctx: _read_lines(path)

        return LocalDataset(
            [make(p) for p in resolved],
            splits=[FileSplit(path=str(p)) for p in resolved],
            staged_files=staged_files,
            max_workers=max_workers,
        )

    def _derive(self, partitions: Sequence[PartitionFn]) -> LocalDataset[Any]:
        return LocalDataset(
            partitions,
            splits=self._splits,
            staged_files=self._staged_files,
            max_workers=self._max_workers,
        )

    @property
    def num_partitions(self) -> int:
        return len(self._partitions)

    # === Transformations ===

    def map_partitions(self, fn: Callable[[int, Iterator[T]], Iterable[U]]) -> LocalDataset[U]:
        """Apply fn(partition_index, elements) to every partition."""

        def make(parent: PartitionFn) -> PartitionFn:
            return lambda ctx: iter(fn(ctx.partition_id, parent(ctx)))

        return self._derive([make(p) for p in self._partitions])

    def pipe(
        self,
        command: str | Sequence[str],
        env: Mapping[str, str] | None = None,
        pre_hook: PreHook | None = None,
        post_hook: PostHook | None = None,
        *,
        separate_working_dir: bool = False,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        encoding: str = "utf-8",
        serializer: SerializationStrategy | None = None,
        stderr: StderrMode = StderrMode.INHERIT,
        working_dir_root: Path | None = None,
        cleanup_working_dir: bool = False,
    ) -> LocalDataset[Any]:
        """Pipe every partition through an external command.

        A string command is tokenized on whitespace. See PipeSpec for the
        meaning of each option.
        """
        spec_kwargs: dict[str, Any] = {}
        if working_dir_root is not None:
            spec_kwargs["working_dir_root"] = working_dir_root
        spec = PipeSpec(
            command=command,  # type: ignore[arg-type]
            env=dict(env or {}),
            working_dir=WorkingDirMode.ISOLATED if separate_working_dir else WorkingDirMode.INHERIT,
            encoding=encoding,
            buffer_size=buffer_size,
            pre_hook=pre_hook,
            post_hook=post_hook,
            serializer=serializer if serializer is not None else TextLineSerializer(),
            stderr=stderr,
            cleanup_working_dir=cleanup_working_dir,
            **spec_kwargs,
        )
        return self.pipe_spec(spec)

    def pipe_spec(self, spec: PipeSpec) -> LocalDataset[Any]:
        """Pipe every partition through the command described by spec."""

        def make(parent: PartitionFn) -> PartitionFn:
            def run(ctx: TaskContext) -> Iterator[Any]:
                transform = PipeTransform(spec, parent(ctx), ctx)
                ctx.add_completion_callback(transform.close)
                return transform

            return run

        return self._derive([make(p) for p in self._partitions])

    # === Actions ===

    def _context(self, partition_id: int, stage_id: int) -> TaskContext:
        return TaskContext(
            partition_id=partition_id,
            stage_id=stage_id,
            split=self._splits[partition_id],
            staged_files=self._staged_files,
        )

    def compute(self, partition_id: int, context: TaskContext | None = None) -> Iterator[T]:
        """Elements of one partition, lazily.

        Pipes opened for the partition stay open until context.mark_completed().
        """
        if context is None:
            context = self._context(partition_id, _next_stage_id())
        iterator: Iterator[T] = self._partitions[partition_id](context)
        return iterator

    def _evaluate(self, partition_id: int, stage_id: int) -> list[T]:
        context = self._context(partition_id, stage_id)
        try:
            return list(self.compute(partition_id, context))
        finally:
            # Releases every pipe of the partition, including ones hidden
            # behind map_partitions or consumed only partly
            context.mark_completed()

    def glom(self) -> list[list[T]]:
        """Evaluate every partition; one list per partition, in order.

        Raises:
            The first failing partition's exception (in partition order)
        """
        stage_id = _next_stage_id()
        ids = range(len(self._partitions))
        if self._max_workers == 1 or len(self._partitions) <= 1:
            return [self._evaluate(i, stage_id) for i in ids]

        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix=f"stage-{stage_id}") as pool:
            futures = [pool.submit(self._evaluate, i, stage_id) for i in ids]
            # future.result() re-raises the partition's exception
            return [future.result() for future in futures]

    def collect(self) -> list[T]:
        """Evaluate every partition and concatenate in partition order."""
        return [element for partition in self.glom() for element in partition]

    def count(self) -> int:
        return sum(len(partition) for partition in self.glom())
