"""Compiler command construction and execution.

This module builds the argument vector for compiling one source file and
runs it. Deciding *whether* to compile and running many compiles in
parallel live in rebuild.py and compilation_executor.py.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..config.target_config import TargetConfig, TargetKind
from ..subprocess_utils import format_command, safe_run
from .flag_builder import FlagBuilder
from .source_scanner import SourceFile

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    """Result of a compilation operation."""
    success: bool
    object_file: Optional[Path]
    stdout: str
    stderr: str
    returncode: int
    command: List[str] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return self.success and bool(self.stderr.strip())


class Compiler:
    """Builds and runs compiler invocations for a project.

    The command for a source is:
        <compiler> [os cflags] [target cflags] -I<own include dirs> -o <obj>
        -I<dependency include dirs> -I<package include dirs> -c <src> [-fPIC]
    """

    def __init__(self, compiler: str, os_cflags: Optional[List[str]] = None):
        """Initialize compiler.

        Args:
            compiler: Compiler executable, possibly with a cross prefix or wrapper
            os_cflags: Flags derived from the [os] section (kernel builds)
        """
        self.compiler = compiler
        self.os_cflags = list(os_cflags or [])

    @property
    def compiler_argv(self) -> List[str]:
        return FlagBuilder.parse_flag_string(self.compiler)

    def build_command(
        self,
        target: TargetConfig,
        source: SourceFile,
        dep_targets: Sequence[TargetConfig] = (),
        package_targets: Sequence[TargetConfig] = (),
    ) -> List[str]:
        """Argument vector that compiles one source of a target.

        Args:
            target: Owning target
            source: Source to compile
            dep_targets: Targets this target depends on
            package_targets: Library targets of all vendored packages

        Returns:
            Command as a list of strings
        """
        cmd = self.compiler_argv
        cmd.extend(self.os_cflags)
        cmd.extend(FlagBuilder.parse_flag_string(target.cflags))
        cmd.extend(f"-I{include_dir}" for include_dir in target.include_dirs)
        cmd.extend(["-o", str(source.object_path)])

        # Headers of dependencies are visible without re-declaring them
        for dep in list(dep_targets) + list(package_targets):
            cmd.extend(f"-I{include_dir}" for include_dir in dep.include_dirs)

        cmd.extend(["-c", str(source.path)])

        if target.kind is TargetKind.DLL:
            cmd.append("-fPIC")

        return cmd

    def compile(self, source: SourceFile, cmd: List[str]) -> CompileResult:
        """Run a compile command.

        Args:
            source: Source being compiled (for the object path)
            cmd: Command from build_command()

        Returns:
            CompileResult; a non-zero exit is reported, not raised
        """
        source.object_path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug(f"Building: {source.name}")
        logger.debug(f"  Command: {format_command(cmd)}")

        try:
            result = safe_run(cmd)
        except FileNotFoundError as e:
            return CompileResult(
                success=False,
                object_file=None,
                stdout="",
                stderr=f"Compiler not found: {cmd[0]} ({e})",
                returncode=127,
                command=cmd,
            )

        success = result.returncode == 0
        if success and result.stdout:
            logger.debug(f"  Stdout: {result.stdout}")

        return CompileResult(
            success=success,
            object_file=source.object_path if success else None,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            returncode=result.returncode,
            command=cmd,
        )
