"""Compilation Executor.

This module compiles the stale sources of one target in parallel.

Design:
    - Fan-out/fan-in over a thread pool sized by the CPU count
    - Compiles block on the compiler process, never on shared locks
    - Shared state (hash store, warnings, completed counter) is lock-guarded
    - No cancellation: the whole batch drains, then the first failure is raised
    - Warnings (zero exit with stderr output) are reported once, after the batch
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import psutil
from tqdm import tqdm

from ..errors import CompileError
from ..subprocess_utils import format_command
from .compiler import CompileResult, Compiler
from .hash_store import HashStore
from .source_scanner import SourceFile

logger = logging.getLogger(__name__)

CompileJob = Tuple[SourceFile, List[str]]


def default_worker_count() -> int:
    """Number of parallel compiles: logical CPU count, at least one."""
    return psutil.cpu_count(logical=True) or 1


@dataclass
class CompileBatchResult:
    """Outcome of compiling one target's stale sources."""

    compiled: List[SourceFile] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    results: List[CompileResult] = field(default_factory=list)


class CompilationExecutor:
    """Runs a batch of compile jobs on a bounded worker pool.

    This class handles:
    - Running compiler subprocesses concurrently
    - Recording hashes of compiled sources and their includes
    - Aggregating warnings and failures
    - Progress display
    """

    def __init__(
        self,
        compiler: Compiler,
        max_workers: Optional[int] = None,
        show_progress: bool = True,
    ):
        """Initialize compilation executor.

        Args:
            compiler: Compiler used to run each command
            max_workers: Worker count (default: CPU count)
            show_progress: Whether to show a progress bar
        """
        self.compiler = compiler
        self.max_workers = max_workers or default_worker_count()
        self.show_progress = show_progress

        self._hash_lock = threading.Lock()
        self._warnings_lock = threading.Lock()
        self._counter_lock = threading.Lock()
        self.completed = 0

    def compile_all(
        self,
        target_name: str,
        jobs: Sequence[CompileJob],
        hashes: HashStore,
    ) -> CompileBatchResult:
        """Compile every job concurrently.

        Args:
            target_name: Owning target (for messages)
            jobs: (source, command) pairs of stale sources
            hashes: Target hash store, updated in memory after each success

        Returns:
            CompileBatchResult with compiled sources and collected warnings

        Raises:
            CompileError: If any compile exited non-zero (after all jobs finish)
        """
        batch = CompileBatchResult()
        if not jobs:
            return batch

        self.completed = 0
        failures: List[Tuple[SourceFile, CompileResult]] = []
        failures_lock = threading.Lock()

        progress = tqdm(
            total=len(jobs),
            desc=f"Compiling {target_name}",
            unit="file",
            disable=not self.show_progress,
            leave=False,
        )

        def run(job: CompileJob) -> CompileResult:
            source, cmd = job
            result = self.compiler.compile(source, cmd)

            if result.success:
                with self._hash_lock:
                    hashes.update(source.path)
                    for include in source.includes:
                        hashes.update(include)
                    batch.compiled.append(source)
                if result.has_warnings:
                    with self._warnings_lock:
                        batch.warnings.append(f"{source.path}:\n{result.stderr.rstrip()}")
            else:
                with failures_lock:
                    failures.append((source, result))

            with self._counter_lock:
                self.completed += 1
                progress.update(1)
            return result

        workers = min(self.max_workers, len(jobs))
        logger.debug(f"Compiling {len(jobs)} sources of {target_name} with {workers} workers")

        pool = ThreadPoolExecutor(max_workers=workers)
        try:
            futures = [pool.submit(run, job) for job in jobs]
            for future in as_completed(futures):
                batch.results.append(future.result())
        except KeyboardInterrupt:
            pool.shutdown(wait=False, cancel_futures=True)
            progress.close()
            raise
        pool.shutdown(wait=True)
        progress.close()

        for warning in batch.warnings:
            logger.warning(warning)

        if failures:
            source, first = failures[0]
            raise CompileError(
                f"Compilation failed for {source.path}"
                f" ({len(failures)} of {len(jobs)} sources failed in target '{target_name}')\n"
                f"Command: {format_command(first.command)}\n"
                f"{first.stderr.rstrip()}"
            )

        return batch
