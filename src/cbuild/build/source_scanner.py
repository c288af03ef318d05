"""
Source file discovery and local include resolution.

This module handles:
- Walking a target's source tree with exclude and allow-list filters
- Keeping only compilable C/C++ files
- Resolving quoted (#include "...") headers transitively per source
- Deriving the object path of each source
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from ..config.target_config import TargetConfig
from ..errors import DiscoveryError
from .build_layout import BuildLayout

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = {".c", ".cc", ".cpp", ".cxx"}

INCLUDE_RE = re.compile(r'^\s*#\s*include\s*"([^"]+)"')

# Directories never walked for sources
SKIPPED_DIRS = {".git", "__pycache__"}

# Memo of header path -> everything it transitively includes
IncludeMemo = Dict[Path, FrozenSet[Path]]


@dataclass(frozen=True)
class SourceFile:
    """A compilable source of one target, computed fresh for each build."""

    target_name: str
    path: Path
    object_path: Path
    includes: FrozenSet[Path]

    @property
    def name(self) -> str:
        return self.path.name


class IncludeResolver:
    """
    Resolves local includes of a file against a target's include directories.

    Only quoted includes are followed; angle-bracket includes are system
    headers and never tracked. The memo is passed in explicitly so callers
    decide its lifetime (one per target scan).
    """

    def __init__(self, include_dirs: Iterable[Path]):
        self.include_dirs = [Path(d) for d in include_dirs]

    @staticmethod
    def read_include_names(path: Path) -> List[str]:
        """Return the quoted include names of a file, in order.

        Raises:
            OSError: If the file cannot be read
        """
        names = []
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                match = INCLUDE_RE.match(line)
                if match:
                    names.append(match.group(1))
        return names

    def locate(self, name: str, including_file: Path) -> Optional[Path]:
        """Find an included header: include dirs in order, then beside the includer."""
        for include_dir in self.include_dirs:
            candidate = include_dir / name
            if candidate.is_file():
                return candidate
        candidate = including_file.parent / name
        if candidate.is_file():
            return candidate
        return None

    def resolve_source(self, source: Path, memo: IncludeMemo) -> FrozenSet[Path]:
        """Transitive local includes of a primary source.

        Raises:
            DiscoveryError: If the source itself cannot be read
        """
        try:
            names = self.read_include_names(source)
        except OSError as e:
            raise DiscoveryError(f"Failed to read source file {source}: {e}") from e
        found, _ = self._resolve_names(source, names, memo, {source})
        return found

    def resolve_header(
        self,
        header: Path,
        memo: IncludeMemo,
        in_progress: Optional[Set[Path]] = None,
    ) -> FrozenSet[Path]:
        """Transitive local includes of a header (the header itself excluded
        unless it sits on an include cycle).

        An unreadable header is a dead end: logged, never fatal.
        """
        found, _ = self._resolve_header(header, memo, set(in_progress or ()))
        return found

    def _resolve_header(
        self,
        header: Path,
        memo: IncludeMemo,
        in_progress: Set[Path],
    ) -> Tuple[FrozenSet[Path], FrozenSet[Path]]:
        """Returns (includes, cut) where cut holds the headers of the current
        chain that the walk stopped at. Only uncut results are memoized: a
        header reached in the middle of a cycle has not seen the whole cycle yet.
        """
        if header in memo:
            return memo[header], frozenset()

        try:
            names = self.read_include_names(header)
        except OSError as e:
            logger.warning(f"Failed to get include substrings for file: {header} ({e})")
            memo[header] = frozenset()
            return memo[header], frozenset()

        found, cut = self._resolve_names(header, names, memo, in_progress | {header})
        cut = cut - {header}
        if not cut:
            memo[header] = found
        return found, cut

    def _resolve_names(
        self,
        including_file: Path,
        names: List[str],
        memo: IncludeMemo,
        in_progress: Set[Path],
    ) -> Tuple[FrozenSet[Path], FrozenSet[Path]]:
        found: Set[Path] = set()
        cut: Set[Path] = set()
        for name in names:
            header = self.locate(name, including_file)
            if header is None:
                logger.warning(f"Could not resolve include \"{name}\" from {including_file}")
                continue
            found.add(header)
            # Include cycles stop at a header already on the current chain
            if header in in_progress:
                cut.add(header)
                continue
            included, header_cut = self._resolve_header(header, memo, in_progress)
            found.update(included)
            cut.update(header_cut)
        return frozenset(found), frozenset(cut)


class SourceScanner:
    """
    Discovers the compilable sources of a target.

    The scanner:
    1. Walks the target's src root, pruning excluded directories
    2. Drops excluded files and, if src_only is set, files outside the allow-list
    3. Keeps only .c/.cc/.cpp/.cxx files
    4. Resolves each source's transitive local includes
    5. Rejects two sources that would share an object file
    """

    def __init__(self, layout: BuildLayout):
        """
        Initialize source scanner.

        Args:
            layout: Build layout used to derive object paths
        """
        self.layout = layout

    def _match_path(self, path: Path, root: Path, is_dir: bool = False) -> str:
        """Path string that filter patterns are matched against."""
        for base in (self.layout.project_dir, root):
            try:
                text = path.resolve().relative_to(base.resolve()).as_posix()
                break
            except ValueError:
                continue
        else:
            text = path.as_posix()
        return f"{text}/" if is_dir else text

    @staticmethod
    def is_excluded_dir(dir_text: str, patterns: Iterable[str]) -> bool:
        """A directory is excluded when its path contains any pattern."""
        return any(pattern and pattern in dir_text for pattern in patterns)

    @staticmethod
    def is_excluded_file(file_text: str, patterns: Iterable[str]) -> bool:
        """A file is excluded when its path ends with any pattern."""
        return any(pattern and file_text.endswith(pattern) for pattern in patterns)

    @staticmethod
    def is_allowed(path_text: str, patterns: List[str]) -> bool:
        if not patterns:
            return True
        return any(pattern in path_text for pattern in patterns)

    def find_source_paths(self, target: TargetConfig) -> List[Path]:
        """Walk the target's source root and return the filtered, sorted source paths.

        Raises:
            DiscoveryError: If the source root does not exist
        """
        if target.src is None:
            return []

        root = Path(target.src)
        if not root.is_dir():
            raise DiscoveryError(f"Could not read directory: {root} (target '{target.name}')")

        build_root = self.layout.build_root.resolve()
        sources = []
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)

            kept_dirs = []
            for dirname in sorted(dirnames):
                if dirname in SKIPPED_DIRS or (current / dirname).resolve() == build_root:
                    continue
                dir_text = self._match_path(current / dirname, root, is_dir=True)
                if self.is_excluded_dir(dir_text, target.src_exclude):
                    logger.debug(f"Skipping directory: {current / dirname}")
                    continue
                kept_dirs.append(dirname)
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                path = current / filename
                if path.suffix.lower() not in SOURCE_EXTENSIONS:
                    continue
                file_text = self._match_path(path, root)
                if self.is_excluded_file(file_text, target.src_exclude):
                    logger.debug(f"Skipping file: {path}")
                    continue
                if not self.is_allowed(file_text, target.src_only):
                    continue
                sources.append(path)

        return sorted(sources)

    def scan(self, target: TargetConfig) -> List[SourceFile]:
        """
        Discover all sources of a target with their include sets.

        Args:
            target: Target to scan

        Returns:
            SourceFile list sorted by path

        Raises:
            DiscoveryError: On unreadable sources or duplicate object names
        """
        resolver = IncludeResolver(target.include_dirs)
        memo: IncludeMemo = {}

        source_files = []
        seen_objects: Dict[Path, Path] = {}
        for path in self.find_source_paths(target):
            object_path = self.layout.object_path(target.name, path)
            if object_path in seen_objects:
                raise DiscoveryError(
                    f"Duplicate source files in target '{target.name}': "
                    f"{seen_objects[object_path]} and {path} both compile to {object_path.name}"
                )
            seen_objects[object_path] = path

            includes = resolver.resolve_source(path, memo)
            source_files.append(SourceFile(
                target_name=target.name,
                path=path,
                object_path=object_path,
                includes=includes,
            ))

        logger.debug(f"Target {target.name}: discovered {len(source_files)} source files")
        return source_files
