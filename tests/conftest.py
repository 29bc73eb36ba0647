import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.append(str(Path(__file__).resolve().parents[1]))
sys.path.append(str(Path(__file__).resolve().parent))

from core.job_registry import JobRegistry


@pytest.fixture
def registry():
    return JobRegistry()


@pytest.fixture
def downloads_dir(tmp_path):
    path = tmp_path / "downloads"
    path.mkdir()
    return path
