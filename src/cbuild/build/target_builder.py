"""
Per-target build: discover, decide, compile, link, persist.

A TargetBuilder runs the pipeline for exactly one target. The orchestrator
calls it once per target in dependency order and tells it whether a
dependency was re-linked in this run.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..config.target_config import TargetConfig
from .build_layout import BuildLayout
from .compilation_executor import CompilationExecutor
from .compile_database import CompileDatabase
from .compiler import Compiler
from .hash_store import HashStore
from .linker import Linker, LinkResult
from .rebuild import plan_rebuild
from .source_scanner import SourceScanner

logger = logging.getLogger(__name__)


@dataclass
class TargetBuildResult:
    """What happened to one target during a build."""

    name: str
    total_sources: int
    compiled: int
    linked: bool
    output_path: Path
    warnings: List[str] = field(default_factory=list)
    link_result: Optional[LinkResult] = None


class TargetBuilder:
    """
    Builds a single target.

    Steps:
    1. Load the target's hash store
    2. Discover sources and their include sets
    3. Split them into stale and fresh
    4. Compile stale sources in parallel
    5. Link if anything was compiled, a dependency was re-linked (in this
       run, or since this target last linked), or the artifact does not exist yet
    6. Record the linked artifacts and persist the hash store after a
       successful link
    """

    def __init__(
        self,
        target: TargetConfig,
        layout: BuildLayout,
        compiler: Compiler,
        linker: Linker,
        dep_targets: Sequence[TargetConfig] = (),
        package_targets: Sequence[TargetConfig] = (),
        max_workers: Optional[int] = None,
        show_progress: bool = True,
        compile_db: Optional[CompileDatabase] = None,
    ):
        """
        Args:
            target: Target to build
            layout: Build layout
            compiler: Compiler for this project
            linker: Linker for this project
            dep_targets: Direct dependencies (already built)
            package_targets: Library targets of vendored packages
            max_workers: Parallel compile limit (default: CPU count)
            show_progress: Show a progress bar while compiling
            compile_db: Collector for compile_commands.json entries
        """
        self.target = target
        self.layout = layout
        self.compiler = compiler
        self.linker = linker
        self.dep_targets = list(dep_targets)
        self.package_targets = list(package_targets)
        self.max_workers = max_workers
        self.show_progress = show_progress
        self.compile_db = compile_db

    def build(self, force_link: bool = False) -> TargetBuildResult:
        """
        Build the target.

        Args:
            force_link: Re-link even if no source is stale (a dependency
                was re-linked or the OS configuration changed)

        Returns:
            TargetBuildResult

        Raises:
            DiscoveryError: If a source cannot be read
            CompileError: If a compile fails
            LinkError: If the link fails
        """
        target = self.target
        hash_file = self.layout.hash_file(target.name)
        hashes = HashStore.load(hash_file)

        sources = SourceScanner(self.layout).scan(target)
        plan = plan_rebuild(sources, hashes)

        stale = set(plan.stale)
        jobs = []
        for source in sources:
            cmd = self.compiler.build_command(
                target, source, self.dep_targets, self.package_targets
            )
            if self.compile_db is not None:
                self.compile_db.add(source.path, cmd)
            if source in stale:
                jobs.append((source, cmd))

        # Artifacts of linked targets are hashed too, so a dependency re-linked in
        # an earlier run whose dependent then failed to link is still noticed
        input_artifacts = [
            self.layout.artifact_path(dep)
            for dep in self.linker.link_inputs(target, self.dep_targets, self.package_targets)
        ]
        changed_inputs = [path for path in input_artifacts if hashes.is_changed(path)]
        if changed_inputs:
            logger.debug(f"Target {target.name}: linked artifacts changed: {changed_inputs}")

        output_path = self.linker.output_path(target)
        needs_link = (
            bool(plan.stale)
            or force_link
            or bool(changed_inputs)
            or (not output_path.exists() and (bool(sources) or bool(target.deps)))
        )

        if not needs_link:
            logger.info(f"Target: {target.name} is up to date")
            return TargetBuildResult(
                name=target.name,
                total_sources=plan.total,
                compiled=0,
                linked=False,
                output_path=output_path,
            )

        logger.info(f"Compiling Target: {target.name}")
        logger.info(f"\t {len(plan.stale)} of {plan.total} source files have to be compiled")

        self.layout.ensure_build_directories()
        executor = CompilationExecutor(
            self.compiler,
            max_workers=self.max_workers,
            show_progress=self.show_progress,
        )
        batch = executor.compile_all(target.name, jobs, hashes)

        objects = [source.object_path for source in sources]
        link_result = self.linker.link(target, objects, self.dep_targets, self.package_targets)

        for path in input_artifacts:
            hashes.update(path)

        # Store and artifact only ever move together
        hashes.persist(hash_file)

        return TargetBuildResult(
            name=target.name,
            total_sources=plan.total,
            compiled=len(batch.compiled),
            linked=True,
            output_path=link_result.output_path,
            warnings=batch.warnings,
            link_result=link_result,
        )
