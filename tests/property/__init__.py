# tests/property/__init__.py
"""Property-based tests for shardpipe.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of.

Test categories:
- test_framing_properties: raw frame and text line framing
- test_partition_properties: slicing and order preservation through pipes
"""
