"""
Linker wrapper for producing target artifacts.

This module builds and runs the link step of every target kind:
- static:  archiver (see archive_creator.py)
- object:  partial link of this target's objects with dependency objects
- dll:     shared library with -l/-L/rpath for dependencies and packages
- exe:     hosted executable, or a freestanding kernel image linked against
           the prebuilt C library and platform runtime, followed by an
           objcopy step that extracts a raw bootable binary
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..config.target_config import OSConfig, TargetConfig, TargetKind
from ..errors import LinkError
from ..subprocess_utils import format_command, handle_keyboard_interrupt_properly, safe_run
from .archive_creator import ArchiveCreator
from .build_layout import BuildLayout
from .flag_builder import FlagBuilder

logger = logging.getLogger(__name__)

DEFAULT_KERNEL_LINKER = "rust-lld -flavor gnu"
OBJCOPY = "rust-objcopy"
RPATH_FLAG = "-Wl,-rpath,$ORIGIN"


@dataclass
class LinkResult:
    """Result of linking operation."""

    success: bool
    output_path: Path
    command: List[str]
    elf_path: Optional[Path] = None
    bin_path: Optional[Path] = None
    linked_dependencies: List[Path] = field(default_factory=list)
    stdout: str = ""
    stderr: str = ""


class Linker:
    """
    Links one target's objects into its final artifact.

    Commands are argument vectors; nothing goes through a shell, so the
    $ORIGIN in the rpath flag reaches the linker literally.
    """

    def __init__(self, compiler: str, layout: BuildLayout, os_config: Optional[OSConfig] = None):
        """
        Initialize linker.

        Args:
            compiler: Compiler driver used for dll/object/hosted exe links
            layout: Build layout (bin dir, runtime archives)
            os_config: The project's [os] section; enables kernel links for exe
        """
        self.compiler = compiler
        self.layout = layout
        self.os_config = os_config or OSConfig()
        self.flag_builder = FlagBuilder(self.os_config, layout)

    @property
    def is_kernel(self) -> bool:
        return self.os_config.enabled

    def output_path(self, target: TargetConfig) -> Path:
        if target.kind is TargetKind.EXE and self.is_kernel:
            return self.layout.kernel_image_paths(target)[1]
        return self.layout.artifact_path(target)

    @staticmethod
    def _extra_packages(
        dep_targets: Sequence[TargetConfig],
        package_targets: Sequence[TargetConfig],
    ) -> List[TargetConfig]:
        """Package targets not already named as direct dependencies."""
        dep_names = {dep.name for dep in dep_targets}
        return [pkg for pkg in package_targets if pkg.name not in dep_names]

    def link_inputs(
        self,
        target: TargetConfig,
        dep_targets: Sequence[TargetConfig],
        package_targets: Sequence[TargetConfig] = (),
    ) -> List[TargetConfig]:
        """Targets whose artifacts a link of `target` consumes.

        Shared libraries and executables link every package library on top
        of their declared dependencies.
        """
        inputs = list(dep_targets)
        if target.kind in (TargetKind.DLL, TargetKind.EXE):
            inputs.extend(self._extra_packages(dep_targets, package_targets))
        return inputs

    @staticmethod
    def _library_flags(lib: TargetConfig) -> List[str]:
        flags = [f"-I{include_dir}" for include_dir in lib.include_dirs]
        flags.append(f"-l{lib.link_name}")
        return flags

    def _search_path_flags(self) -> List[str]:
        return [f"-L{self.layout.bin_dir}", RPATH_FLAG]

    def build_object_command(
        self,
        target: TargetConfig,
        objects: Sequence[Path],
        dep_targets: Sequence[TargetConfig],
    ) -> List[str]:
        """compiler [ldflags] -o <out.o> <objects> <dependency artifacts>"""
        cmd = FlagBuilder.parse_flag_string(self.compiler)
        cmd.extend(FlagBuilder.parse_flag_string(target.ldflags))
        cmd.extend(["-o", str(self.layout.artifact_path(target))])
        cmd.extend(str(obj) for obj in objects)
        cmd.extend(str(self.layout.artifact_path(dep)) for dep in dep_targets)
        return cmd

    def build_shared_command(
        self,
        target: TargetConfig,
        objects: Sequence[Path],
        dep_targets: Sequence[TargetConfig],
        package_targets: Sequence[TargetConfig] = (),
    ) -> List[str]:
        """compiler -shared -o <out.so> <objects> [cflags] -I/-l per lib [-L -rpath] [ldflags]"""
        cmd = FlagBuilder.parse_flag_string(self.compiler)
        cmd.extend(["-shared", "-o", str(self.layout.artifact_path(target))])
        cmd.extend(str(obj) for obj in objects)
        cmd.extend(FlagBuilder.parse_flag_string(target.cflags))

        packages = self._extra_packages(dep_targets, package_targets)
        for lib in list(dep_targets) + packages:
            cmd.extend(self._library_flags(lib))

        if dep_targets or packages:
            cmd.extend(self._search_path_flags())

        cmd.extend(FlagBuilder.parse_flag_string(target.ldflags))
        return cmd

    def build_hosted_exe_command(
        self,
        target: TargetConfig,
        objects: Sequence[Path],
        dep_targets: Sequence[TargetConfig],
        package_targets: Sequence[TargetConfig] = (),
    ) -> List[str]:
        """compiler -o <exe> <objects> [cflags] <object deps> -I/-l per lib [-L -rpath] [ldflags]"""
        cmd = FlagBuilder.parse_flag_string(self.compiler)
        cmd.extend(["-o", str(self.layout.artifact_path(target))])
        cmd.extend(str(obj) for obj in objects)
        cmd.extend(FlagBuilder.parse_flag_string(target.cflags))

        needs_search_path = False
        for dep in dep_targets:
            if dep.kind is TargetKind.OBJECT:
                cmd.append(str(self.layout.artifact_path(dep)))
            else:
                cmd.extend(self._library_flags(dep))
                needs_search_path = True

        for pkg in self._extra_packages(dep_targets, package_targets):
            cmd.extend(self._library_flags(pkg))
            needs_search_path = True

        if needs_search_path:
            cmd.extend(self._search_path_flags())

        cmd.extend(FlagBuilder.parse_flag_string(target.ldflags))
        return cmd

    def build_kernel_exe_command(
        self,
        target: TargetConfig,
        objects: Sequence[Path],
        dep_targets: Sequence[TargetConfig],
        package_targets: Sequence[TargetConfig] = (),
    ) -> List[str]:
        """<linker> [ldflags] <os ldflags> libc.a libaxlibc.a <objects> <deps> <packages> -o <name>.elf"""
        elf_path, _ = self.layout.kernel_image_paths(target)

        cmd = FlagBuilder.parse_flag_string(target.linker or DEFAULT_KERNEL_LINKER)
        cmd.extend(FlagBuilder.parse_flag_string(target.ldflags))
        cmd.extend(self.flag_builder.build_os_ldflags())
        cmd.append(str(self.layout.c_lib))
        cmd.append(str(self.layout.runtime_lib(self.os_config)))
        cmd.extend(str(obj) for obj in objects)
        cmd.extend(str(self.layout.artifact_path(dep)) for dep in dep_targets)
        cmd.extend(
            str(self.layout.artifact_path(pkg))
            for pkg in self._extra_packages(dep_targets, package_targets)
        )
        cmd.extend(["-o", str(elf_path)])
        return cmd

    def build_objcopy_command(self, target: TargetConfig) -> List[str]:
        """rust-objcopy --binary-architecture=<arch> <elf> --strip-all -O binary <bin>"""
        elf_path, bin_path = self.layout.kernel_image_paths(target)
        return [
            OBJCOPY,
            f"--binary-architecture={self.os_config.platform.arch}",
            str(elf_path),
            "--strip-all",
            "-O",
            "binary",
            str(bin_path),
        ]

    def link(
        self,
        target: TargetConfig,
        objects: Sequence[Path],
        dep_targets: Sequence[TargetConfig] = (),
        package_targets: Sequence[TargetConfig] = (),
    ) -> LinkResult:
        """
        Link a target.

        Args:
            target: Target to link
            objects: All object files of the target (fresh and rebuilt)
            dep_targets: Direct dependencies, already linked
            package_targets: Library targets of all vendored packages

        Returns:
            LinkResult describing the produced artifact

        Raises:
            LinkError: If the archiver, linker or objcopy exits non-zero
        """
        self.layout.bin_dir.mkdir(parents=True, exist_ok=True)
        linked = [self.layout.artifact_path(dep) for dep in dep_targets]

        logger.info(f"Linking target: {target.name}")

        if target.kind is TargetKind.STATIC:
            archiver = ArchiveCreator(target.archive)
            cmd = archiver.build_command(self.layout.artifact_path(target), objects, target.ldflags)
            output = archiver.create_archive(self.layout.artifact_path(target), objects, target.ldflags)
            self._log_linked(target, linked)
            return LinkResult(success=True, output_path=output, command=cmd, linked_dependencies=linked)

        if target.kind is TargetKind.OBJECT:
            cmd = self.build_object_command(target, objects, dep_targets)
        elif target.kind is TargetKind.DLL:
            cmd = self.build_shared_command(target, objects, dep_targets, package_targets)
        elif self.is_kernel:
            cmd = self.build_kernel_exe_command(target, objects, dep_targets, package_targets)
        else:
            cmd = self.build_hosted_exe_command(target, objects, dep_targets, package_targets)

        result = self._run(cmd, f"Linking target {target.name}")

        elf_path = None
        bin_path = None
        if target.kind is TargetKind.EXE and self.is_kernel:
            elf_path, bin_path = self.layout.kernel_image_paths(target)
            self._run(self.build_objcopy_command(target), f"Generating {bin_path.name}")
            logger.debug(f" Bin_path: {bin_path}")
            logger.debug(f" Elf_path: {elf_path}")

        self._log_linked(target, linked)
        return LinkResult(
            success=True,
            output_path=self.output_path(target),
            command=cmd,
            elf_path=elf_path,
            bin_path=bin_path,
            linked_dependencies=linked,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

    @staticmethod
    def _log_linked(target: TargetConfig, linked: List[Path]) -> None:
        for path in linked:
            logger.debug(f"  {target.name} linked {path}")

    @staticmethod
    def _run(cmd: List[str], action: str):
        logger.debug(f"  Command: {format_command(cmd)}")
        try:
            result = safe_run(cmd)
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)
            raise  # Never reached, but satisfies type checker
        except OSError as e:
            raise LinkError(
                f"{action} failed: {e}\nCommand: {format_command(cmd)}"
            ) from e

        if result.returncode != 0:
            raise LinkError(
                f"{action} failed\n"
                f"Command: {format_command(cmd)}\n"
                f"{result.stderr}"
            )
        return result
