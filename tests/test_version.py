"""Tests for package version resolution.

``profundus_ledger.__version__`` comes from the installed package metadata,
whose single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

import re
from importlib.metadata import version

import pytest

import profundus_ledger

_SEMVER_RE = re.compile(
    r"^\d+\.\d+\.\d+"  # major.minor.patch
    r"(-[A-Za-z0-9]+(\.[A-Za-z0-9]+)*)?$"  # optional pre-release
)


@pytest.mark.unit
class TestVersionAttribute:
    """Verify the ``profundus_ledger.__version__`` package attribute."""

    def test_version_is_a_string(self) -> None:
        assert isinstance(profundus_ledger.__version__, str)
        assert profundus_ledger.__version__

    def test_version_matches_semver(self) -> None:
        assert _SEMVER_RE.match(profundus_ledger.__version__), (
            f"__version__ {profundus_ledger.__version__!r} does not match "
            f"expected semver pattern (major.minor.patch[-prerelease])"
        )

    def test_version_matches_metadata(self) -> None:
        """The attribute must agree with the installed distribution."""
        assert profundus_ledger.__version__ == version("profundus-ledger")
