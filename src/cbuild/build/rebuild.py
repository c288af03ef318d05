"""Rebuild Decision.

A source must be recompiled iff its object file is missing, the source
changed, or any header in its transitive include set changed. The check only
reads the hash store, so it can run for every source independently.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

from .hash_store import HashStore
from .source_scanner import SourceFile

logger = logging.getLogger(__name__)


def needs_rebuild(source: SourceFile, hashes: HashStore) -> Tuple[bool, str]:
    """
    Decide whether a source is stale.

    Args:
        source: Source file with its resolved includes
        hashes: Hash store of the owning target

    Returns:
        (stale, reason) tuple; reason is a human-readable explanation
    """
    if not source.object_path.exists():
        return True, f"Object file does not exist: {source.object_path}"

    if hashes.is_changed(source.path):
        return True, f"Source file has changed: {source.path}"

    for include in sorted(source.includes):
        if hashes.is_changed(include):
            return True, f"Source file {source.path} depends on changed include file: {include}"

    return False, f"Source file {source.path} does not need to be built"


@dataclass
class RebuildPlan:
    """Partition of a target's sources into stale and fresh."""

    stale: List[SourceFile]
    fresh: List[SourceFile]

    @property
    def total(self) -> int:
        return len(self.stale) + len(self.fresh)


def plan_rebuild(sources: List[SourceFile], hashes: HashStore) -> RebuildPlan:
    """Split sources into those that need compiling and those that don't."""
    stale = []
    fresh = []
    for source in sources:
        is_stale, reason = needs_rebuild(source, hashes)
        if is_stale:
            logger.debug(reason)
        (stale if is_stale else fresh).append(source)
    return RebuildPlan(stale=stale, fresh=fresh)
