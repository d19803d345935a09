import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def scratch_dir(tmp_path, monkeypatch):
    """Set up a temporary scratch root."""
    path = tmp_path / "scratch"
    path.mkdir()
    monkeypatch.setenv("CODE_RUNNER_SCRATCH_DIR", str(path))
    return path
