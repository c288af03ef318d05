"""GitHub repository utilities for cbuild packages.

Packages are declared as "owner/repo, branch" and cloned from GitHub. This
module normalizes repository references and, when a package omits its
branch, detects the repository's default branch.
"""

import logging
from urllib.parse import urlparse

import requests

from ..subprocess_utils import handle_keyboard_interrupt_properly

logger = logging.getLogger(__name__)

GITHUB_BASE_URL = "https://github.com"


class GitHubRepo:
    """Helpers for GitHub repository references."""

    @staticmethod
    def is_github_url(url: str) -> bool:
        """Check if a URL is a GitHub repository URL.

        Args:
            url: The URL to check

        Returns:
            True if the URL is a GitHub repository
        """
        parsed = urlparse(url)
        return parsed.netloc.lower() in ("github.com", "www.github.com")

    @classmethod
    def normalize(cls, reference: str) -> str:
        """Reduce a repository reference to "owner/repo".

        Accepts "owner/repo", "https://github.com/owner/repo" and the same
        with a trailing slash or ".git" suffix.
        """
        reference = reference.strip().rstrip("/")
        if cls.is_github_url(reference):
            reference = urlparse(reference).path.strip("/")
        if reference.endswith(".git"):
            reference = reference[:-4]
        return reference

    @staticmethod
    def clone_url(repo: str) -> str:
        return f"{GITHUB_BASE_URL}/{repo}"

    @classmethod
    def detect_default_branch(cls, repo: str) -> str:
        """Detect the default branch name for a GitHub repository.

        Makes HEAD requests to determine if the repo uses 'main' or 'master'.

        Args:
            repo: Repository as "owner/repo"

        Returns:
            Default branch name ('main' or 'master')
        """
        url = cls.clone_url(repo)
        try:
            for branch in ("main", "master"):
                test_url = f"{url}/archive/refs/heads/{branch}.zip"
                response = requests.head(test_url, timeout=5, allow_redirects=True)
                if response.status_code == 200:
                    return branch
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)
            raise  # Never reached, but satisfies type checker
        except requests.RequestException as e:
            logger.warning(f"Could not detect default branch of {repo}: {e}")

        return "main"
