"""
Build orchestration for cbuild projects.

This module coordinates the entire build process, from parsing
config_linux.toml to linking the last target. It integrates all build
system components:
- Configuration parsing and static validation
- Package resolution (clone or reuse, recursive)
- Dependency ordering of project and package targets
- Per-target compile and link (see target_builder.py)
- compile_commands.json generation
It also implements the clean, update and restore commands.
"""

import hashlib
import logging
import shutil
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from ..config.config_parser import load_project
from ..config.target_config import OSConfig, ProjectConfig, TargetConfig, TargetKind
from ..errors import CBuildError, PackageError
from ..packages.package import Package
from ..packages.package_manager import PackageManager
from .build_layout import BuildLayout
from .compile_database import CompileDatabase
from .compiler import Compiler
from .dependency_graph import DependencyGraph
from .flag_builder import FlagBuilder
from .linker import Linker
from .target_builder import TargetBuilder, TargetBuildResult

logger = logging.getLogger(__name__)


class CleanScope(str, Enum):
    """What the clean command removes."""

    APP_BINS = "App_bins"
    OBJ = "Obj"
    PACKAGES = "Packages"
    OS = "OS"
    ALL = "All"


@dataclass
class BuildResult:
    """Result of a complete build operation."""

    success: bool
    artifacts: List[Path] = field(default_factory=list)
    targets: List[TargetBuildResult] = field(default_factory=list)
    build_time: float = 0.0
    message: str = ""


class BuildOrchestrator:
    """
    Orchestrates the complete build of a cbuild project.

    This class coordinates all phases of the build:
    1. Parse config_linux.toml (duplicate names and bad kinds fail here)
    2. Resolve packages and validate dependencies and cycles
    3. Order project and package targets
    4. Detect changes of the [os] configuration
    5. Build every target in order, re-linking dependents of re-linked targets
    6. Record the [os] fingerprint and write compile_commands.json if asked

    Example usage:
        orchestrator = BuildOrchestrator()
        result = orchestrator.build(Path("config_linux.toml"))
        if result.success:
            for artifact in result.artifacts:
                print(artifact)
    """

    def __init__(
        self,
        layout: Optional[BuildLayout] = None,
        show_progress: bool = True,
        max_workers: Optional[int] = None,
    ):
        """
        Initialize build orchestrator.

        Args:
            layout: Build layout (default: derived from the config's directory)
            show_progress: Show a progress bar while compiling
            max_workers: Parallel compile limit (default: CPU count)
        """
        self.layout = layout
        self.show_progress = show_progress
        self.max_workers = max_workers

    def _layout_for(self, config: ProjectConfig) -> BuildLayout:
        if self.layout is None:
            return BuildLayout(config.project_dir)
        return self.layout

    def build(self, config_path: Path, gen_cc: bool = False) -> BuildResult:
        """
        Execute complete build process.

        Args:
            config_path: Path to config_linux.toml
            gen_cc: Also write compile_commands.json to the project directory

        Returns:
            BuildResult with build status and artifact paths; failures are
            reported through success=False and message
        """
        start_time = time.time()

        try:
            config = load_project(Path(config_path))
            layout = self._layout_for(config)
            logger.debug(f"Build root: {layout.build_root}")

            packages = PackageManager(layout, config.compiler).resolve(config.build)
            package_targets = PackageManager.library_targets(packages)
            config.validate(package_targets)

            results = self._build_targets(config, layout, package_targets, gen_cc)

            build_time = time.time() - start_time
            linked = sum(1 for result in results if result.linked)
            logger.info(f"Built {len(results)} targets ({linked} linked) in {build_time:.2f}s")

            return BuildResult(
                success=True,
                artifacts=[result.output_path for result in results],
                targets=results,
                build_time=build_time,
                message="Build successful",
            )

        except CBuildError as e:
            return BuildResult(
                success=False,
                build_time=time.time() - start_time,
                message=str(e),
            )
        except Exception as e:
            logger.debug("Unexpected build failure", exc_info=True)
            return BuildResult(
                success=False,
                build_time=time.time() - start_time,
                message=f"Unexpected error: {e}",
            )

    def _build_targets(
        self,
        config: ProjectConfig,
        layout: BuildLayout,
        package_targets: List[TargetConfig],
        gen_cc: bool,
    ) -> List[TargetBuildResult]:
        graph = DependencyGraph(list(package_targets) + list(config.targets))
        package_names = {target.name for target in package_targets}
        # Project targets compile against package headers and link package libraries
        for target in config.targets:
            for pkg in package_targets:
                graph.add_edge(pkg.name, target.name)
        order = graph.build_order()
        logger.debug(f"Build order: {', '.join(order)}")

        os_changed = self.os_config_changed(config.os, layout)
        if os_changed:
            logger.info("OS configuration changed, executables will be re-linked")

        flag_builder = FlagBuilder(config.os, layout)
        compiler = Compiler(config.compiler, flag_builder.build_os_cflags())
        linker = Linker(config.compiler, layout, config.os)
        compile_db = CompileDatabase(layout.project_dir) if gen_cc else None

        results: List[TargetBuildResult] = []
        rebuilt: Set[str] = set()
        for name in order:
            target = graph.get(name)
            dep_targets = graph.dependencies_of(name)

            # Package targets only see their own dependencies
            visible_packages = [] if name in package_names else package_targets

            link_inputs = linker.link_inputs(target, dep_targets, visible_packages)
            force_link = any(dep.name in rebuilt for dep in link_inputs)
            if os_changed and target.kind is TargetKind.EXE:
                force_link = True

            builder = TargetBuilder(
                target,
                layout,
                compiler,
                linker,
                dep_targets=dep_targets,
                package_targets=visible_packages,
                max_workers=self.max_workers,
                show_progress=self.show_progress,
                compile_db=compile_db,
            )
            result = builder.build(force_link=force_link)
            if result.linked:
                rebuilt.add(name)
            results.append(result)

        self.record_os_config(config.os, layout)

        if compile_db is not None:
            output = compile_db.write(layout.compile_commands_file)
            logger.info(f"Generated {output}")

        return results

    @staticmethod
    def os_config_digest(os_config: OSConfig) -> str:
        return hashlib.sha1(os_config.fingerprint().encode("utf-8")).hexdigest()

    @classmethod
    def os_config_changed(cls, os_config: OSConfig, layout: BuildLayout) -> bool:
        """True if the [os] section differs from the one of the last successful build.

        A project that has never been built counts as unchanged; its
        executable is linked anyway because the artifact is missing.
        """
        hash_file = layout.os_config_hash_file
        if not hash_file.exists():
            return False
        try:
            stored = hash_file.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.warning(f"Could not read {hash_file}: {e}")
            return True
        return stored != cls.os_config_digest(os_config)

    @classmethod
    def record_os_config(cls, os_config: OSConfig, layout: BuildLayout) -> None:
        hash_file = layout.os_config_hash_file
        hash_file.parent.mkdir(parents=True, exist_ok=True)
        hash_file.write_text(cls.os_config_digest(os_config) + "\n", encoding="utf-8")

    def clean(self, config_path: Path, scopes: Iterable[CleanScope]) -> List[Path]:
        """
        Remove build outputs.

        Args:
            config_path: Path to config_linux.toml
            scopes: What to remove; ALL removes the whole build root

        Returns:
            Paths that were removed

        Raises:
            ConfigurationError: If the config cannot be parsed
            PackageError: If a local package config is malformed
        """
        config = load_project(Path(config_path))
        layout = self._layout_for(config)
        scopes = set(scopes)
        everything = CleanScope.ALL in scopes
        removed: List[Path] = []

        if everything or CleanScope.OS in scopes:
            self._remove(layout.target_dir, removed)
            self._remove(layout.os_config_hash_file, removed)

        if everything or CleanScope.APP_BINS in scopes:
            # Only packages that were already cloned; cleaning never fetches
            packages = PackageManager(layout, config.compiler).resolve(config.build, fetch=False)
            targets = list(config.targets) + PackageManager.library_targets(packages)
            linker = Linker(config.compiler, layout, config.os)
            for target in targets:
                self._remove(layout.hash_file(target.name), removed)
                for path in self._artifact_paths(target, layout, linker):
                    self._remove(path, removed)

        if everything or CleanScope.OBJ in scopes:
            self._remove(layout.obj_dir, removed)

        if everything or CleanScope.PACKAGES in scopes:
            self._remove(layout.sources_dir, removed)

        if everything:
            self._remove(layout.build_root, removed)

        return removed

    @staticmethod
    def _artifact_paths(target: TargetConfig, layout: BuildLayout, linker: Linker) -> List[Path]:
        paths = [layout.artifact_path(target)]
        if target.kind is TargetKind.EXE:
            paths.extend(layout.kernel_image_paths(target))
        if linker.output_path(target) not in paths:
            paths.append(linker.output_path(target))
        return paths

    @staticmethod
    def _remove(path: Path, removed: List[Path]) -> None:
        if not path.exists():
            return
        try:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            logger.error(f"Could not remove '{path}': {e}")
            return
        logger.info(f"Cleaning: {path}")
        removed.append(path)

    def resolve_packages(
        self,
        config_path: Path,
        name: Optional[str] = None,
    ) -> Tuple[PackageManager, List[Package]]:
        """
        Resolve a project's packages, optionally narrowed to one by name.

        Returns:
            (manager, packages) tuple

        Raises:
            PackageError: If the named package is not declared by the project
        """
        config = load_project(Path(config_path))
        manager = PackageManager(self._layout_for(config), config.compiler)
        packages = manager.resolve(config.build)
        if name is None:
            return manager, packages

        selected = [package for package in packages if package.name == name]
        if not selected:
            known = ", ".join(package.name for package in packages) or "none"
            raise PackageError(f"Unknown package '{name}'. Known packages: {known}")
        return manager, selected

    def update_packages(self, config_path: Path, name: Optional[str] = None) -> List[Package]:
        """Pull the latest commits of the project's packages."""
        manager, packages = self.resolve_packages(config_path, name)
        for package in packages:
            manager.update(package)
        return packages

    def restore_packages(self, config_path: Path, name: Optional[str] = None) -> List[Package]:
        """Discard local changes in the project's packages."""
        manager, packages = self.resolve_packages(config_path, name)
        for package in packages:
            manager.restore(package)
        return packages
