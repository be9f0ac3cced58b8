"""Profundus Ledger: persistent balances and keyed entity tables.

A small storage layer for the Profundus game server. It keeps named integer
balances ("money records") and a handful of generalized entity tables behind
one shared database connection with explicit commit/rollback control.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("profundus-ledger")
except PackageNotFoundError:
    __version__ = "0.1.0"
