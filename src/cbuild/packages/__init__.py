"""Package management for cbuild.

Packages are other cbuild projects hosted on GitHub. They are cloned into the
build root and their library targets are built alongside the project.
"""

from .github_utils import GitHubRepo
from .package import Package, PackageSpec
from .package_manager import PackageManager

__all__ = [
    'GitHubRepo',
    'Package',
    'PackageSpec',
    'PackageManager',
]
