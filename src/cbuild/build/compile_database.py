"""Compile-command database (compile_commands.json) for editor tooling.

Records are collected while targets are built and written once at the end.
The build never reads the file back.
"""

import json
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Sequence

from ..subprocess_utils import format_command


@dataclass
class CompileCommand:
    """One entry of compile_commands.json."""

    directory: str
    command: str
    file: str


class CompileDatabase:
    """Thread-safe collector of compile commands."""

    def __init__(self, directory: Path):
        """
        Args:
            directory: Working directory the commands are run from
        """
        self.directory = Path(directory)
        self._entries: List[CompileCommand] = []
        self._lock = threading.Lock()

    def add(self, source: Path, cmd: Sequence[str]) -> None:
        entry = CompileCommand(
            directory=str(self.directory),
            command=format_command(cmd),
            file=str(source),
        )
        with self._lock:
            self._entries.append(entry)

    @property
    def entries(self) -> List[CompileCommand]:
        with self._lock:
            return list(self._entries)

    def write(self, output_path: Path) -> Path:
        """Write all entries as a JSON array, overwriting the file."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump([asdict(entry) for entry in self.entries], f, indent=2)
            f.write("\n")
        return output_path
