"""Partitioned external-process pipe engine.

Per partition: a ProcessSession launches the command, an InputFeeder thread
writes the partition's elements to its stdin, and an OutputDecoder yields
elements parsed from its stdout. PipeTransform wires the three together.
"""

from shardpipe.pipe.decoder import OutputDecoder
from shardpipe.pipe.feeder import InputFeeder
from shardpipe.pipe.session import (
    ProcessHandle,
    ProcessSession,
    compose_environment,
    prepare_isolated_working_dir,
)
from shardpipe.pipe.spec import EmitFn, PipeSpec, PostHook, PreHook, tokenize_command
from shardpipe.pipe.transform import PipeTransform

__all__ = [
    "EmitFn",
    "InputFeeder",
    "OutputDecoder",
    "PipeSpec",
    "PipeTransform",
    "PostHook",
    "PreHook",
    "ProcessHandle",
    "ProcessSession",
    "compose_environment",
    "prepare_isolated_working_dir",
    "tokenize_command",
]
