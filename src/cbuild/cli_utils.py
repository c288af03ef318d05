"""CLI utility functions for cbuild.

This module provides common utilities used across CLI commands including:
- Config file lookup in a project directory
- Clean scope parsing
- Error handling and formatting
"""

import sys
from pathlib import Path
from typing import List, Optional, Sequence

from cbuild.build.orchestrator import CleanScope
from cbuild.config import DEFAULT_CONFIG_NAME
from cbuild.errors import CBuildError, ConfigurationError


class ConfigLocator:
    """Finds the config file a command operates on."""

    @staticmethod
    def locate_config(project_dir: Path, config: Optional[Path] = None) -> Path:
        """Resolve the config file path.

        Args:
            project_dir: Project directory
            config: Optional explicit config file, relative to project_dir

        Returns:
            Path to the config file

        Raises:
            FileNotFoundError: If the config file doesn't exist
        """
        config_path = project_dir / (config or DEFAULT_CONFIG_NAME)
        if not config_path.is_file():
            raise FileNotFoundError(f"{config_path.name} not found in {config_path.parent}")
        return config_path


class CleanScopeParser:
    """Parses clean scopes from command-line values."""

    @staticmethod
    def parse_scopes(values: Optional[Sequence[str]]) -> List[CleanScope]:
        """Parse scope names case-insensitively; no value means everything.

        Raises:
            ConfigurationError: On an unknown scope name
        """
        if not values:
            return [CleanScope.ALL]

        by_name = {scope.value.lower(): scope for scope in CleanScope}
        scopes = []
        for value in values:
            scope = by_name.get(value.lower())
            if scope is None:
                raise ConfigurationError(
                    f"Unknown clean scope '{value}'. "
                    f"Choose from: {', '.join(s.value for s in CleanScope)}"
                )
            scopes.append(scope)
        return scopes


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "File not found", "Build failed")
            message: Error message details
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        print()
        print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_file_not_found(error: FileNotFoundError) -> None:
        """Handle FileNotFoundError with standard formatting.

        Args:
            error: The FileNotFoundError to handle
        """
        ErrorFormatter.print_error("Error: File not found", str(error))
        print(
            f"Make sure you're in a cbuild project directory with a {DEFAULT_CONFIG_NAME} file."
        )
        sys.exit(1)

    @staticmethod
    def handle_permission_error(error: PermissionError) -> None:
        ErrorFormatter.print_error("Error: Permission denied", str(error))
        sys.exit(1)

    @staticmethod
    def handle_cbuild_error(title: str, error: CBuildError) -> None:
        """Report a build engine error verbatim and exit with status 1."""
        ErrorFormatter.print_error(title, str(error))
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Build interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(1)


class PathValidator:
    """Validates project paths and directories."""

    @staticmethod
    def validate_project_dir(project_dir: Path) -> None:
        """Validate that project directory exists and is a directory.

        Args:
            project_dir: Path to validate

        Raises:
            SystemExit: If path doesn't exist or isn't a directory
        """
        if not project_dir.exists():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path does not exist: {project_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(1)
        if not project_dir.is_dir():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path is not a directory: {project_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(1)
