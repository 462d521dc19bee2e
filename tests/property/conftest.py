# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Strategy Categories:
- Raw frames (key/value byte pairs)
- Text lines that survive newline-delimited framing
- Partition layouts (item counts and partition counts)

Usage:
    from tests.property.conftest import key_value_pairs, text_lines

    @given(pairs=key_value_pairs)
    def test_frames_decode(pairs: list[tuple[bytes, bytes]]) -> None:
        ...
"""

# =============================================================================
# Hypothesis Settings
# =============================================================================
#
# For standardized @settings decorators, import from tests.property.settings:
#   from tests.property.settings import STANDARD_SETTINGS, SUBPROCESS_SETTINGS
# =============================================================================

from __future__ import annotations

from hypothesis import strategies as st

# =============================================================================
# Raw frames
# =============================================================================

key_value_pair = st.tuples(st.binary(max_size=64), st.binary(max_size=256))

key_value_pairs = st.lists(key_value_pair, max_size=20)

# =============================================================================
# Text lines
# =============================================================================

# Universal-newline reading splits on both of these
_LINE_BREAKS = "\n\r"

text_line = st.text(
    alphabet=st.characters(exclude_categories=("Cs",), exclude_characters=_LINE_BREAKS),
    max_size=40,
)

text_lines = st.lists(text_line, max_size=30)

# =============================================================================
# Partition layouts
# =============================================================================

item_counts = st.integers(min_value=0, max_value=200)

partition_counts = st.integers(min_value=1, max_value=32)
