"""
Shared pytest configuration and fixtures.

On Windows CI runners, a spurious KeyboardInterrupt is delivered to the
main thread during long-running tests. The workaround: ignore SIGINT
entirely on Windows CI.
"""

import os
import signal

import pytest

from meld.bin import Bin

_WINDOWS_CI = os.name == "nt" and os.environ.get("CI") == "true"


def pytest_configure(config):
    """Ignore SIGINT on Windows CI to prevent spurious KeyboardInterrupt."""
    if _WINDOWS_CI:
        try:
            signal.signal(signal.SIGINT, signal.SIG_IGN)
        except (OSError, ValueError):
            pass


@pytest.fixture
def meld_bin(tmp_path):
    """A freshly initialized bin."""
    b = Bin.init(tmp_path / "bin")
    yield b
    b.close()


@pytest.fixture
def work(tmp_path):
    """A directory holding the files under version control."""
    w = tmp_path / "work"
    w.mkdir()
    return w
