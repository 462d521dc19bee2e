# tests/property/settings.py
"""Standardized Hypothesis settings profiles for property tests.

Provides consistent test intensity across all property test modules.
Import these instead of using inline @settings(max_examples=...).

Usage:
    from tests.property.settings import STANDARD_SETTINGS

    @given(pairs=key_value_pairs)
    @STANDARD_SETTINGS
    def test_something(pairs):
        ...

Tiers:
- STANDARD_SETTINGS: 100 examples - Regular property tests
- SUBPROCESS_SETTINGS: 25 examples - Tests that launch real processes
- QUICK_SETTINGS: 20 examples - Fast validation tests (simple rejection)
"""

from hypothesis import HealthCheck, settings

# Standard property tests - good balance of coverage and speed
STANDARD_SETTINGS = settings(max_examples=100)

# Every example forks a process; keep the count low and the clock off
SUBPROCESS_SETTINGS = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

# Quick validation tests - simple input rejection
QUICK_SETTINGS = settings(max_examples=20)
