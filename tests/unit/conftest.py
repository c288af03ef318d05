"""Shared fixtures for cbuild unit tests.

The FakeToolchain stands in for gcc, ar, the kernel linker and objcopy: it
records every command, creates the output file each tool would write, and can
be told to fail or warn for commands containing a given substring. Each output
it writes has unique content.
"""

import itertools
import logging
import subprocess
import threading
from pathlib import Path
from typing import Dict, List

import pytest


class FakeToolchain:
    """Callable replacement for safe_run() in the compile and link modules."""

    def __init__(self):
        self.calls: List[List[str]] = []
        self.fail_on: Dict[str, str] = {}
        self.warn_on: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._serial = itertools.count(1)

    def __call__(self, cmd, **kwargs):
        cmd = [str(arg) for arg in cmd]
        with self._lock:
            self.calls.append(cmd)
            serial = next(self._serial)

        joined = " ".join(cmd)
        for needle, stderr in self.fail_on.items():
            if needle in joined:
                return subprocess.CompletedProcess(cmd, 1, stdout="", stderr=stderr)

        self._touch_output(cmd, serial)

        stderr = ""
        for needle, warning in self.warn_on.items():
            if needle in joined:
                stderr = warning
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr=stderr)

    @staticmethod
    def _touch_output(cmd: List[str], serial: int) -> None:
        if "-o" in cmd:
            output = Path(cmd[cmd.index("-o") + 1])
        elif cmd[0].endswith("objcopy"):
            output = Path(cmd[-1])
        else:
            archives = [arg for arg in cmd if arg.endswith(".a")]
            if not archives:
                return
            output = Path(archives[0])
        output.parent.mkdir(parents=True, exist_ok=True)
        # Every run of a tool writes different bytes, like a real re-link would
        output.write_bytes(f"\x7fELF fake {serial}".encode())

    def compiled_sources(self) -> List[str]:
        """Source paths of every compile command, in call order."""
        with self._lock:
            return [cmd[cmd.index("-c") + 1] for cmd in self.calls if "-c" in cmd]

    def compiled_names(self) -> List[str]:
        return sorted(Path(source).name for source in self.compiled_sources())

    def link_calls(self) -> List[List[str]]:
        with self._lock:
            return [cmd for cmd in self.calls if "-c" not in cmd]

    def reset(self) -> None:
        with self._lock:
            self.calls.clear()


@pytest.fixture
def fake_toolchain(monkeypatch):
    """Patch every tool invocation of the build engine with a FakeToolchain."""
    toolchain = FakeToolchain()
    monkeypatch.setattr("cbuild.build.compiler.safe_run", toolchain)
    monkeypatch.setattr("cbuild.build.archive_creator.safe_run", toolchain)
    monkeypatch.setattr("cbuild.build.linker.safe_run", toolchain)
    return toolchain


@pytest.fixture(autouse=True)
def reset_cbuild_logger():
    """Undo setup_logging() so caplog sees records from every test."""
    yield
    logger = logging.getLogger("cbuild")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
