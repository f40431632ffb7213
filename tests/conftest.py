import os
import shutil
import sys
from pathlib import Path
import pytest

# Ensure we can import modules from src/
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture()
def sandbox(tmp_path, monkeypatch):
    # Work in an isolated temp directory
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PIPESH_TEST_SANDBOX", "1")
    return tmp_path


@pytest.fixture()
def session(sandbox):
    from command import ShellSession
    return ShellSession(report_status=False)


@pytest.fixture()
def which():
    """Absolute path of a system program; pipesh does no PATH search itself."""
    def lookup(name: str) -> str:
        path = shutil.which(name)
        if path is None:
            pytest.skip(f"{name} not available")
        return os.path.abspath(path)
    return lookup
