"""Archive Creator.

This module handles creating static library archives (.a files) from compiled
object files using the archiver tool (ar by default).

Design:
    - Builds the archiver command as an argument vector
    - Archiver and its flags come from the target's `archive` override
    - Recreates the archive so members of deleted sources don't linger
    - Surfaces archiver stderr verbatim on failure
"""

import logging
from pathlib import Path
from typing import List, Sequence

from ..errors import LinkError
from ..subprocess_utils import format_command, handle_keyboard_interrupt_properly, safe_run
from .flag_builder import FlagBuilder

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVER = "ar rcs"


class ArchiveError(LinkError):
    """Raised when archive creation operations fail."""
    pass


class ArchiveCreator:
    """Creates static library archives from object files.

    The command is:
        <archiver...> [ldflags] <archive> <objects...>
    """

    def __init__(self, archiver: str = DEFAULT_ARCHIVER):
        """Initialize archive creator.

        Args:
            archiver: Archiver command with its flags (e.g. "ar rcs")
        """
        self.archiver = archiver or DEFAULT_ARCHIVER

    def build_command(
        self,
        archive_path: Path,
        object_files: Sequence[Path],
        ldflags: str = "",
    ) -> List[str]:
        cmd = FlagBuilder.parse_flag_string(self.archiver)
        cmd.extend(FlagBuilder.parse_flag_string(ldflags))
        cmd.append(str(archive_path))
        cmd.extend(str(obj) for obj in object_files)
        return cmd

    def create_archive(
        self,
        archive_path: Path,
        object_files: Sequence[Path],
        ldflags: str = "",
    ) -> Path:
        """Create static library archive from object files.

        Args:
            archive_path: Path for output .a file
            object_files: Object file paths to archive
            ldflags: Extra archiver arguments from the target

        Returns:
            Path to generated archive file

        Raises:
            ArchiveError: If archive creation fails
        """
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        if archive_path.exists():
            archive_path.unlink()

        cmd = self.build_command(archive_path, object_files, ldflags)
        logger.info(f"Creating {archive_path.name} from {len(object_files)} object files")
        logger.debug(f"  Command: {format_command(cmd)}")

        try:
            result = safe_run(cmd)
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)
            raise  # Never reached, but satisfies type checker
        except OSError as e:
            raise ArchiveError(
                f"Failed to create archive {archive_path.name}: {e}\n"
                f"Command: {format_command(cmd)}"
            ) from e

        if result.returncode != 0:
            raise ArchiveError(
                f"Archive creation failed for {archive_path.name}\n"
                f"Command: {format_command(cmd)}\n"
                f"{result.stderr}"
            )

        return archive_path
