import platform

import pytest
import pathlib
from typing import Callable

from binary_builders import write_binary


@pytest.fixture
def make_binary(tmp_path: pathlib.Path) -> Callable[[bytes, str], pathlib.Path]:
    """Writes synthetic binary data into tmp_path and returns its path."""

    def _make(data: bytes, name: str = "binary.bin") -> pathlib.Path:
        return write_binary(tmp_path / name, data)

    return _make


@pytest.fixture
def host_machine(monkeypatch: pytest.MonkeyPatch) -> Callable[[str], None]:
    """Overrides platform.machine() for host architecture selection.

    Usage:
        def test_x(host_machine):
            host_machine("aarch64")
    """

    def _set(machine: str) -> None:
        monkeypatch.setattr(platform, "machine", lambda: machine)

    return _set
