"""Pytest configuration for test isolation.

The CLI reads and writes a JSON record store whose default location is
project-relative (``./.finance_flow/store.json``). When tests run in the same
working tree, a store written by one test would make later tests skip their
records as already-seen duplicates.

To keep tests hermetic, we redirect the store and rules paths to the test's
own temporary directory via an autouse fixture.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `finance_flow` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR)] if p not in sys.path]


@pytest.fixture(autouse=True)
def _isolate_store_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Force a per-test store location so tests don't share on-disk state."""

    store_dir = tmp_path / "store"
    store_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("FINANCE_FLOW_STORE_PATH", os.fspath(store_dir / "store.json"))
    monkeypatch.delenv("FINANCE_FLOW_RULES_PATH", raising=False)
