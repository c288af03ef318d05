"""Build directory layout.

All output locations are fields of a single BuildLayout value that is passed
explicitly through the pipeline, so nested package builds or several
invocations in one process never share hidden path state.

Layout Structure:
    cbuild_bld/
    ├── bin/                        # Linked artifacts (.a, .so, .o, exe, .elf/.bin)
    ├── obj_linux/
│   │   └── {target}/               # Object files: <stem>.o
    ├── sources/
    │   └── {package_name}/         # Cloned package working copies
    ├── target/
    │   └── {rust_target}/{mode}/   # Prebuilt platform runtime (libaxlibc.a)
    ├── {target}.linux.hash         # Content hash store per target
    └── os_config.hash              # Fingerprint of the last [os] section
"""

import os
from pathlib import Path
from typing import Optional, Tuple

from ..config.target_config import OSConfig, TargetConfig, TargetKind

BUILD_DIR_ENV = "CBUILD_BUILD_DIR"
OS_ROOT_ENV = "CBUILD_OS_ROOT"

PLATFORM_TAG = "linux"
C_LIB = "libc.a"
RUNTIME_LIB = "libaxlibc.a"

ARTIFACT_SUFFIXES = {
    TargetKind.DLL: ".so",
    TargetKind.STATIC: ".a",
    TargetKind.OBJECT: ".o",
}


class BuildLayout:
    """Resolves every path the build engine reads or writes.

    The build root lives in the project directory (cbuild_bld/) unless the
    CBUILD_BUILD_DIR environment variable points elsewhere.
    """

    def __init__(self, project_dir: Optional[Path] = None, build_root: Optional[Path] = None):
        """Initialize the layout.

        Args:
            project_dir: Project directory. If None, uses current directory.
            build_root: Explicit build root, overrides the environment
        """
        if project_dir is None:
            project_dir = Path.cwd()

        self.project_dir = Path(project_dir).resolve()

        if build_root is not None:
            self.build_root = Path(build_root).resolve()
        else:
            build_env = os.environ.get(BUILD_DIR_ENV)
            if build_env:
                self.build_root = Path(build_env).resolve()
            else:
                self.build_root = self.project_dir / "cbuild_bld"

    @property
    def bin_dir(self) -> Path:
        """Directory for linked artifacts."""
        return self.build_root / "bin"

    @property
    def obj_dir(self) -> Path:
        """Directory for compiled object files."""
        return self.build_root / f"obj_{PLATFORM_TAG}"

    @property
    def sources_dir(self) -> Path:
        """Directory holding cloned package working copies."""
        return self.build_root / "sources"

    @property
    def target_dir(self) -> Path:
        """Directory holding the prebuilt platform runtime."""
        return self.build_root / "target"

    @property
    def os_config_hash_file(self) -> Path:
        return self.build_root / "os_config.hash"

    @property
    def compile_commands_file(self) -> Path:
        return self.project_dir / "compile_commands.json"

    @property
    def c_lib(self) -> Path:
        """Prebuilt C library archive linked into kernel images."""
        return self.bin_dir / C_LIB

    def hash_file(self, target_name: str) -> Path:
        """Content hash store for a target."""
        return self.build_root / f"{target_name}.{PLATFORM_TAG}.hash"

    def package_dir(self, package_name: str) -> Path:
        return self.sources_dir / package_name

    def object_path(self, target_name: str, source: Path) -> Path:
        """Object file for a source: <obj_dir>/<target>/<stem>.o

        The stem is the file name up to its first dot, so the name is a pure
        function of the target name and source file name.
        """
        stem = Path(source).name.split(".", 1)[0]
        return self.obj_dir / target_name / f"{stem}.o"

    def artifact_path(self, target: TargetConfig) -> Path:
        """Final artifact of a target (the raw image for kernel executables)."""
        suffix = ARTIFACT_SUFFIXES.get(target.kind, "")
        return self.bin_dir / f"{target.name}{suffix}"

    def kernel_image_paths(self, target: TargetConfig) -> Tuple[Path, Path]:
        """(elf, bin) paths for a kernel executable."""
        return (
            self.bin_dir / f"{target.name}.elf",
            self.bin_dir / f"{target.name}.bin",
        )

    def runtime_lib(self, os_config: OSConfig) -> Path:
        """Platform runtime archive: target/<rust target>/<mode>/libaxlibc.a"""
        return (
            self.target_dir
            / os_config.platform.rust_target
            / os_config.platform.mode
            / RUNTIME_LIB
        )

    def os_root(self, os_config: OSConfig) -> Path:
        """Checkout of the OS sources (C library headers, linker scripts)."""
        env_root = os.environ.get(OS_ROOT_ENV)
        if env_root:
            return Path(env_root)
        return Path.home() / os_config.name

    def ulib_include_dir(self, os_config: OSConfig) -> Path:
        return self.os_root(os_config) / "ulib" / "axlibc" / "include"

    def linker_script(self, os_config: OSConfig) -> Path:
        return (
            self.os_root(os_config)
            / "modules"
            / "axhal"
            / f"linker_{os_config.platform.name}.lds"
        )

    def ensure_build_directories(self) -> None:
        """Create the bin and object directories if they don't exist."""
        for directory in [self.build_root, self.bin_dir, self.obj_dir]:
            directory.mkdir(parents=True, exist_ok=True)
