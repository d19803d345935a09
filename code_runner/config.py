from __future__ import annotations

from pathlib import Path

from code_runner.settings import get_settings


def scratch_root(path: str | Path | None = None) -> Path:
    """Root directory holding per-execution scratch subdirs."""
    root = Path(path or get_settings().scratch_dir).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root
