"""Package vendoring.

This module clones external cbuild projects from GitHub and turns their
library targets into dependency targets of the consuming project.

Design:
    - Working copies live under <build root>/sources/<name> and are reused
    - Each package's own config_linux.toml is parsed with the normal parser,
      so its src and include_dir paths are rooted in the working copy
    - Nested packages are resolved recursively, dependencies first
    - Packages are de-duplicated by name across the whole resolution
    - Only library targets (dll, static, object) are kept
    - Everything runs sequentially
"""

import logging
import shutil
from pathlib import Path
from typing import List, Optional, Set

from ..build.build_layout import BuildLayout
from ..config.config_parser import DEFAULT_CONFIG_NAME, ConfigParser
from ..config.target_config import BuildConfig, TargetConfig
from ..errors import ConfigurationError, PackageError
from ..subprocess_utils import format_command, handle_keyboard_interrupt_properly, safe_run
from .github_utils import GitHubRepo
from .package import Package, PackageSpec

logger = logging.getLogger(__name__)


class PackageManager:
    """Resolves, clones, updates and restores packages.

    Example usage:
        manager = PackageManager(layout, compiler="gcc")
        packages = manager.resolve(config.build)
        package_targets = PackageManager.library_targets(packages)
    """

    def __init__(self, layout: BuildLayout, compiler: Optional[str] = None):
        """Initialize package manager.

        Args:
            layout: Build layout (sources directory)
            compiler: Compiler of the consuming project; packages inherit it
        """
        self.layout = layout
        self.compiler = compiler

    @staticmethod
    def library_targets(packages: List[Package]) -> List[TargetConfig]:
        """All library targets of the given packages, in resolution order."""
        targets = []
        for package in packages:
            targets.extend(package.target_configs)
        return targets

    def resolve(self, build_config: BuildConfig, fetch: bool = True) -> List[Package]:
        """Resolve every package declared by a project, recursively.

        Args:
            build_config: [build] section of the consuming project
            fetch: Clone missing packages; when False they are skipped

        Returns:
            Packages ordered so nested packages precede the packages using them

        Raises:
            PackageError: On clone failures or malformed package configs
        """
        return self._resolve(build_config, set(), fetch)

    def _resolve(self, build_config: BuildConfig, seen: Set[str], fetch: bool) -> List[Package]:
        packages: List[Package] = []
        for entry in build_config.packages:
            spec = PackageSpec.parse(entry)
            if spec.name in seen:
                logger.debug(f"Package {spec.name} already resolved")
                continue
            seen.add(spec.name)

            source_dir = self.layout.package_dir(spec.name)
            if fetch:
                branch = spec.branch or GitHubRepo.detect_default_branch(spec.repo)
                self.ensure_clone(spec.repo, branch, source_dir)
            elif source_dir.is_dir():
                branch = spec.branch or ""
            else:
                logger.debug(f"Package {spec.name} has no working copy, skipping")
                continue

            pkg_config_path = source_dir / DEFAULT_CONFIG_NAME
            try:
                pkg_config = ConfigParser(pkg_config_path).parse()
            except ConfigurationError as e:
                raise PackageError(f"Invalid config in package {spec.name}: {e}") from e
            logger.info(f"Parsed {pkg_config_path}")

            packages.extend(self._resolve(pkg_config.build, seen, fetch))

            pkg_build = BuildConfig(
                compiler=self.compiler or pkg_config.build.compiler,
                packages=list(pkg_config.build.packages),
            )
            library_targets = [t for t in pkg_config.targets if t.kind.is_library]
            skipped = len(pkg_config.targets) - len(library_targets)
            if skipped:
                logger.debug(f"Package {spec.name}: ignoring {skipped} non-library targets")

            packages.append(Package(
                name=spec.name,
                repo=spec.repo,
                branch=branch,
                source_dir=source_dir,
                build_config=pkg_build,
                target_configs=library_targets,
            ))

        return packages

    def ensure_clone(self, repo: str, branch: str, source_dir: Path) -> Path:
        """Clone a repository unless a working copy already exists.

        Raises:
            PackageError: If git clone fails
        """
        if source_dir.is_dir() and any(source_dir.iterdir()):
            logger.debug(f"Reusing {source_dir}")
            return source_dir

        source_dir.parent.mkdir(parents=True, exist_ok=True)
        url = GitHubRepo.clone_url(repo)
        cmd = ["git", "clone", "--branch", branch, url, str(source_dir)]
        logger.info(f"Cloning {repo} into {source_dir}")

        try:
            self._git(cmd, f"Failed to clone {repo} branch {branch} into {source_dir}")
        except PackageError:
            # A half-written clone would be mistaken for a working copy next time
            if source_dir.exists():
                shutil.rmtree(source_dir, ignore_errors=True)
            raise
        return source_dir

    def update(self, package: Package) -> str:
        """Pull the latest commit of the package's branch.

        Returns:
            git output

        Raises:
            PackageError: If git pull fails
        """
        logger.info(f"Updating package: {package.name}")
        output = self._git(
            ["git", "pull", "origin", package.branch],
            f"Failed to update package {package.name}",
            cwd=package.source_dir,
        )
        logger.info(f"Successfully updated package: {package.name}")
        return output

    def restore(self, package: Package) -> str:
        """Reset the working copy to the package's branch.

        Returns:
            git output

        Raises:
            PackageError: If git reset fails
        """
        logger.info(f"Restoring package: {package.name}")
        output = self._git(
            ["git", "reset", "--hard", package.branch],
            f"Failed to restore package {package.name}",
            cwd=package.source_dir,
        )
        logger.info(f"Successfully restored package: {package.name}")
        return output

    @staticmethod
    def _git(cmd: List[str], failure: str, cwd: Optional[Path] = None) -> str:
        logger.debug(f"  Command: {format_command(cmd)}")
        try:
            result = safe_run(cmd, cwd=cwd)
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)
            raise  # Never reached, but satisfies type checker
        except OSError as e:
            raise PackageError(f"{failure}: {e}") from e

        if result.returncode != 0:
            raise PackageError(f"{failure}\nCommand: {format_command(cmd)}\n{result.stderr}")
        return (result.stdout or "").strip()
