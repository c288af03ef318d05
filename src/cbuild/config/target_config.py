"""
Target descriptors and project configuration.

This module defines the in-memory shape of a cbuild project: the [build]
section, the optional [os] kernel configuration, and the list of targets.
The parser produces these objects; the build engine only consumes them.

Design:
    - Targets live in a flat list addressed by name (no parent references)
    - Dependency edges are plain name lists
    - Static validation happens before any filesystem walk or package fetch
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..errors import ConfigurationError

# Services that map onto C library features (-DAX_CONFIG_<FEAT>)
LIB_FEATURES = {
    "fp_simd", "alloc", "multitask", "fs", "net", "fd", "pipe",
    "select", "poll", "epoll", "random-hw", "signal",
}

# Services that need the file-descriptor layer
FD_SERVICES = {"fs", "net", "pipe", "select", "poll", "epoll"}

LOG_LEVELS = ("off", "error", "warn", "info", "debug", "trace")

RUST_TARGETS = {
    "x86_64": "x86_64-unknown-none",
    "riscv64": "riscv64gc-unknown-none-elf",
    "aarch64": "aarch64-unknown-none-softfloat",
}

LIBRARY_PREFIX = "lib"


class TargetKind(str, Enum):
    """Kind of artifact a target produces."""

    EXE = "exe"
    DLL = "dll"
    STATIC = "static"
    OBJECT = "object"

    @property
    def is_library(self) -> bool:
        return self is not TargetKind.EXE

    @classmethod
    def parse(cls, value: str, target_name: str = "") -> "TargetKind":
        try:
            return cls(value)
        except ValueError as e:
            raise ConfigurationError(
                f"Target '{target_name}': type must be exe, dll, static or object (got '{value}')"
            ) from e


@dataclass
class TargetConfig:
    """One buildable unit of the project."""

    name: str
    kind: TargetKind
    src: Optional[Path]
    include_dirs: List[Path] = field(default_factory=list)
    src_only: List[str] = field(default_factory=list)
    src_exclude: List[str] = field(default_factory=list)
    cflags: str = ""
    ldflags: str = ""
    archive: str = ""
    linker: str = ""
    deps: List[str] = field(default_factory=list)

    @property
    def link_name(self) -> str:
        """Name used with -l (library prefix stripped)."""
        if self.name.startswith(LIBRARY_PREFIX):
            return self.name[len(LIBRARY_PREFIX):]
        return self.name


@dataclass
class PlatformConfig:
    """[os.platform] section: target board and build mode."""

    name: str = "x86_64-qemu-q35"
    smp: str = "1"
    mode: str = ""
    log: str = "warn"

    @property
    def arch(self) -> str:
        return self.name.split("-", 1)[0]

    @property
    def rust_target(self) -> str:
        return RUST_TARGETS[self.arch]

    @property
    def cross_compile(self) -> str:
        return f"{self.arch}-linux-musl-"

    @property
    def smp_count(self) -> int:
        try:
            return int(self.smp)
        except ValueError:
            return 1


@dataclass
class OSConfig:
    """[os] section. An empty name means a hosted (non-kernel) build."""

    name: str = ""
    services: List[str] = field(default_factory=list)
    ulib: str = ""
    platform: PlatformConfig = field(default_factory=PlatformConfig)

    @property
    def enabled(self) -> bool:
        return bool(self.name)

    @property
    def features(self) -> List[str]:
        """Declared services plus the ones they imply."""
        features = list(self.services)
        if any(feat in FD_SERVICES for feat in features) and "fd" not in features:
            features.append("fd")
        return features

    def lib_features(self) -> List[str]:
        """Features that are forwarded to the C library as config macros."""
        feats = []
        if self.platform.smp_count > 1:
            feats.append("smp")
        feats.extend(feat for feat in self.features if feat in LIB_FEATURES)
        return feats

    def fingerprint(self) -> str:
        """Stable text form used to detect OS configuration changes."""
        return "\n".join([
            f"name={self.name}",
            f"ulib={self.ulib}",
            f"services={','.join(self.services)}",
            f"platform={self.platform.name}",
            f"smp={self.platform.smp}",
            f"mode={self.platform.mode}",
            f"log={self.platform.log}",
        ])

    def validate(self) -> None:
        if not self.enabled:
            return
        if self.platform.arch not in RUST_TARGETS:
            raise ConfigurationError(
                f"Unsupported architecture '{self.platform.arch}' in platform "
                f"'{self.platform.name}'. Must be one of: {', '.join(RUST_TARGETS)}"
            )
        if self.platform.log not in LOG_LEVELS:
            raise ConfigurationError(
                f"Log level must be one of {', '.join(LOG_LEVELS)} (got '{self.platform.log}')"
            )


@dataclass
class BuildConfig:
    """[build] section."""

    compiler: str = "gcc"
    packages: List[str] = field(default_factory=list)


@dataclass
class ProjectConfig:
    """A parsed config file: build settings, OS settings and targets."""

    project_dir: Path
    build: BuildConfig
    os: OSConfig
    targets: List[TargetConfig]

    @property
    def compiler(self) -> str:
        """Compiler with the cross prefix applied for kernel builds."""
        compiler = self.build.compiler
        if self.os.enabled and not compiler.startswith(self.os.platform.cross_compile):
            return f"{self.os.platform.cross_compile}{compiler}"
        return compiler

    def get_target(self, name: str) -> Optional[TargetConfig]:
        for target in self.targets:
            if target.name == name:
                return target
        return None

    def validate_structure(self) -> None:
        """Checks that need nothing but this file's own targets.

        Raises:
            ConfigurationError: On empty or duplicate names or too many executables
        """
        if not self.targets:
            raise ConfigurationError("No targets found")

        seen = set()
        for target in self.targets:
            if not target.name:
                raise ConfigurationError("Target name must not be empty")
            if target.name in seen:
                raise ConfigurationError(f"Duplicate target names found: {target.name}")
            seen.add(target.name)

        executables = [t.name for t in self.targets if t.kind is TargetKind.EXE]
        if len(executables) > 1:
            raise ConfigurationError(
                f"Only one exe target is allowed per project, found: {', '.join(executables)}"
            )

        self.os.validate()

    def validate(self, package_targets: Sequence[TargetConfig] = ()) -> None:
        """Full static validation, including dependency resolution and cycles.

        Args:
            package_targets: Library targets contributed by vendored packages

        Raises:
            ConfigurationError: If any check fails
        """
        from ..build.dependency_graph import DependencyGraph

        self.validate_structure()

        known: Dict[str, TargetConfig] = {t.name: t for t in package_targets}
        for target in self.targets:
            if target.name in known:
                raise ConfigurationError(
                    f"Target '{target.name}' clashes with a package target of the same name"
                )
            known[target.name] = target

        for target in self.targets:
            for dep_name in target.deps:
                dep = known.get(dep_name)
                if dep is None:
                    raise ConfigurationError(
                        f"Target '{target.name}' depends on unknown target '{dep_name}'. "
                        f"Known targets: {', '.join(known) or 'none'}"
                    )
                if not dep.kind.is_library:
                    raise ConfigurationError(
                        f"Target '{target.name}' depends on '{dep_name}', which is a "
                        f"{dep.kind.value} and not a dll, static or object library"
                    )
                if not dep_name.startswith(LIBRARY_PREFIX):
                    raise ConfigurationError(
                        f"Dependency '{dep_name}' of target '{target.name}' must start "
                        f"with '{LIBRARY_PREFIX}'"
                    )

        # Raises on cycles
        DependencyGraph(list(package_targets) + list(self.targets)).build_order()
