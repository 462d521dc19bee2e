"""
shardpipe: Partitioned external-process pipes.

Streams each partition of a dataset through an external command and reads
the command's output back as the partition's new elements.
"""

__version__ = "0.1.0"
