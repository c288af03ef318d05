"""Package descriptors.

A package is an external cbuild project cloned from GitHub whose library
targets are built as ordinary dependency targets of the consuming project.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config.target_config import BuildConfig, TargetConfig
from ..errors import PackageError
from .github_utils import GitHubRepo


@dataclass
class PackageSpec:
    """A parsed `packages = ["owner/repo, branch"]` entry."""

    repo: str
    branch: Optional[str]

    @property
    def name(self) -> str:
        return self.repo.rsplit("/", 1)[-1]

    @classmethod
    def parse(cls, spec: str) -> "PackageSpec":
        """Parse "owner/repo, branch" (the branch may be omitted).

        Raises:
            PackageError: If the entry is malformed
        """
        parts = spec.replace(",", " ").split()
        if not parts or len(parts) > 2:
            raise PackageError(
                f"Packages must be in the form of \"<owner>/<repo>, <branch>\" (got '{spec}')"
            )

        repo = GitHubRepo.normalize(parts[0])
        if repo.count("/") != 1 or not all(repo.split("/")):
            raise PackageError(f"Invalid package repository '{parts[0]}' in '{spec}'")

        branch = parts[1] if len(parts) == 2 else None
        return cls(repo=repo, branch=branch)


@dataclass
class Package:
    """A resolved package: its working copy and its library targets."""

    name: str
    repo: str
    branch: str
    source_dir: Path
    build_config: BuildConfig
    target_configs: List[TargetConfig] = field(default_factory=list)
