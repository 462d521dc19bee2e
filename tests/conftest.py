"""Shared test fixtures and helpers.

Helpers:
- requires_command: skip a test when a POSIX utility is not on PATH
- make_spec: PipeSpec factory with test-friendly defaults

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Iterator
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from shardpipe.pipe.spec import PipeSpec
from shardpipe.plugins.manager import SerializerManager

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Command availability
# =============================================================================


def requires_command(*names: str) -> pytest.MarkDecorator:
    """Skip unless every named executable is on PATH."""
    missing = [name for name in names if shutil.which(name) is None]
    return pytest.mark.skipif(bool(missing), reason=f"command(s) not available: {', '.join(missing)}")


def make_spec(command: str | list[str], **kwargs: Any) -> PipeSpec:
    """Build a PipeSpec; a string command is tokenized on whitespace."""
    return PipeSpec(command=command, **kwargs)  # type: ignore[arg-type]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def serializer_manager() -> SerializerManager:
    """Serializer manager with built-in strategies registered."""
    manager = SerializerManager()
    manager.register_builtin_plugins()
    return manager


@pytest.fixture
def in_tmp_cwd(tmp_path: Any, monkeypatch: pytest.MonkeyPatch) -> Iterator[Any]:
    """Run the test with tmp_path as the current directory.

    Isolated working directories default to ./tasks, so tests using them
    must not write into the repository checkout.
    """
    monkeypatch.chdir(tmp_path)
    yield tmp_path
