import os
import sys
from pathlib import Path

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'layercake' and tests/ importable for 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from helpers.cache_utils import reset_layercake_caches


@pytest.fixture(autouse=True)
def _isolate_layercake_state(monkeypatch: pytest.MonkeyPatch):
    """Fresh caches and no LAYERCAKE_* environment leaking into each test."""
    for key in list(os.environ):
        if key.startswith("LAYERCAKE_"):
            monkeypatch.delenv(key, raising=False)
    reset_layercake_caches()
    yield
    reset_layercake_caches()


@pytest.fixture
def call_log() -> list:
    """Shared observable log for layers that record call order."""
    return []
