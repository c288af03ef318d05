"""
Command-line interface for cbuild.

This module provides the `cbuild` CLI tool for building C/C++ projects and
kernel images.
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from cbuild import __version__
from cbuild.build.orchestrator import BuildOrchestrator
from cbuild.cli_utils import (
    CleanScopeParser,
    ConfigLocator,
    ErrorFormatter,
    PathValidator,
)
from cbuild.errors import CBuildError
from cbuild.log_utils import setup_logging


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    project_dir: Path
    config: Optional[Path] = None
    gen_cc: bool = False
    jobs: Optional[int] = None
    verbose: bool = False


@dataclass
class CleanArgs:
    """Arguments for the clean command."""

    project_dir: Path
    config: Optional[Path] = None
    scopes: List[str] = field(default_factory=list)
    verbose: bool = False


@dataclass
class PackageArgs:
    """Arguments for the update and restore commands."""

    project_dir: Path
    config: Optional[Path] = None
    package: Optional[str] = None
    verbose: bool = False


def build_command(args: BuildArgs) -> None:
    """Build all targets of a project.

    Examples:
        cbuild build                   # Build the project in the current directory
        cbuild build apps/redis        # Build a specific project
        cbuild build --gen-cc          # Also write compile_commands.json
        cbuild build -j 4              # Limit parallel compiles
        cbuild build --verbose         # Verbose output
    """
    # Print header
    print(f"cbuild Build System v{__version__}")
    print()

    try:
        config_path = ConfigLocator.locate_config(args.project_dir, args.config)

        if args.verbose:
            print(f"Building project: {args.project_dir}")
            print(f"Config: {config_path}")
            print()

        orchestrator = BuildOrchestrator(
            show_progress=sys.stderr.isatty(),
            max_workers=args.jobs,
        )
        result = orchestrator.build(config_path, gen_cc=args.gen_cc)

        if result.success:
            ErrorFormatter.print_success("Build successful!")
            print()
            for artifact in result.artifacts:
                print(f"Artifact: {artifact}")
            print(f"Build time: {result.build_time:.2f}s")
            sys.exit(0)
        else:
            ErrorFormatter.print_error("Build failed!", result.message)
            sys.exit(1)

    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def clean_command(args: CleanArgs) -> None:
    """Remove build outputs.

    Examples:
        cbuild clean                   # Remove the whole build directory
        cbuild clean --choices Obj     # Remove object files only
        cbuild clean --choices App_bins Packages
    """
    try:
        config_path = ConfigLocator.locate_config(args.project_dir, args.config)
        scopes = CleanScopeParser.parse_scopes(args.scopes)

        removed = BuildOrchestrator().clean(config_path, scopes)

        ErrorFormatter.print_success(f"Cleaned {len(removed)} paths")
        sys.exit(0)

    except CBuildError as e:
        ErrorFormatter.handle_cbuild_error("Clean failed!", e)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def package_command(args: PackageArgs, action: str) -> None:
    """Update (git pull) or restore (git reset --hard) the project's packages.

    Examples:
        cbuild update                  # Update every package
        cbuild update -p redis         # Update one package
        cbuild restore                 # Discard local changes in every package
    """
    try:
        config_path = ConfigLocator.locate_config(args.project_dir, args.config)
        orchestrator = BuildOrchestrator()

        if action == "update":
            packages = orchestrator.update_packages(config_path, args.package)
        else:
            packages = orchestrator.restore_packages(config_path, args.package)

        if not packages:
            ErrorFormatter.print_warning("No packages declared")
        else:
            names = ", ".join(package.name for package in packages)
            ErrorFormatter.print_success(f"{action.capitalize()}d: {names}")
        sys.exit(0)

    except CBuildError as e:
        ErrorFormatter.handle_cbuild_error(f"{action.capitalize()} failed!", e)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Config file relative to the project directory (default: config_linux.toml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    """cbuild - incremental build engine for C/C++ projects."""
    parser = argparse.ArgumentParser(
        prog="cbuild",
        description="cbuild - incremental build engine for C/C++ projects and kernel images",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Build all targets of the project",
    )
    _add_common_arguments(build_parser)
    build_parser.add_argument(
        "--gen-cc",
        action="store_true",
        help="Write compile_commands.json to the project directory",
    )
    build_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Parallel compile jobs (default: CPU count)",
    )

    # Clean command
    clean_parser = subparsers.add_parser(
        "clean",
        help="Remove build outputs",
    )
    _add_common_arguments(clean_parser)
    clean_parser.add_argument(
        "--choices",
        nargs="+",
        default=[],
        help="What to remove: App_bins, Obj, Packages, OS, All (default: All)",
    )

    # Package commands
    for action, help_text in (
        ("update", "Pull the latest commits of the project's packages"),
        ("restore", "Discard local changes in the project's packages"),
    ):
        package_parser = subparsers.add_parser(action, help=help_text)
        _add_common_arguments(package_parser)
        package_parser.add_argument(
            "-p",
            "--package",
            default=None,
            help="Only this package (default: all packages)",
        )

    # Parse arguments
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    setup_logging(verbose=parsed_args.verbose)

    # Validate project directory exists
    PathValidator.validate_project_dir(parsed_args.project_dir)

    # Execute command
    if parsed_args.command == "build":
        build_args = BuildArgs(
            project_dir=parsed_args.project_dir,
            config=parsed_args.config,
            gen_cc=parsed_args.gen_cc,
            jobs=parsed_args.jobs,
            verbose=parsed_args.verbose,
        )
        build_command(build_args)
    elif parsed_args.command == "clean":
        clean_args = CleanArgs(
            project_dir=parsed_args.project_dir,
            config=parsed_args.config,
            scopes=parsed_args.choices,
            verbose=parsed_args.verbose,
        )
        clean_command(clean_args)
    else:
        package_args = PackageArgs(
            project_dir=parsed_args.project_dir,
            config=parsed_args.config,
            package=parsed_args.package,
            verbose=parsed_args.verbose,
        )
        package_command(package_args, parsed_args.command)


if __name__ == "__main__":
    main()
