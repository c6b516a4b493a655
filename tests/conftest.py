"""
Shared fixtures: a harness configuration pointed at the stand-in
repeater on free ports, so nothing depends on node or on 8125/9125
being available.
"""
import socket
import sys
from pathlib import Path

import pytest

from core.config import ConfigManager

FAKE_REPEATER = Path(__file__).resolve().parent / "support" / "fake_repeater.py"


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


@pytest.fixture
def config(tmp_path: Path) -> ConfigManager:
    config = ConfigManager(tmp_path / "harness.yml")
    config.config["repeater"]["command"] = [sys.executable, str(FAKE_REPEATER)]
    config.config["repeater"]["port"] = find_free_port()
    config.config["repeater"]["launch_timeout_seconds"] = 5.0
    config.config["collector"]["bind_host"] = "127.0.0.1"
    config.config["collector"]["port"] = find_free_port()
    return config


@pytest.fixture
def repeater_mode(monkeypatch):
    """Selects the stand-in repeater's behaviour for this test."""
    def _set(mode: str):
        monkeypatch.setenv("FAKE_REPEATER_MODE", mode)
    _set("normal")
    return _set
