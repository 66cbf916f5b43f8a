"""Pytest hooks and fixtures."""

import os
import sys
from pathlib import Path

import pytest

FAKE_WORKER = Path(__file__).with_name("fake_worker.py")


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line(
        "markers",
        "subprocess: spawns the fake worker process",
    )


@pytest.fixture
def worker_command() -> list[str]:
    """argv that runs the stand-in worker with the current interpreter."""
    return [sys.executable, "-u", str(FAKE_WORKER)]


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point ~ at a temp dir and drop cached config so nothing touches the real ~/.postwhale."""
    from postwhale.config.access import clear_config_cache

    monkeypatch.setenv("HOME", str(tmp_path))
    for key in [k for k in os.environ if k.startswith("POSTWHALE_")]:
        monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield tmp_path
    clear_config_cache()
