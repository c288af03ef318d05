"""
Build system components for cbuild.

This module provides the build engine implementation including:
- Content hashing and rebuild decisions
- Source discovery and include resolution
- Target dependency ordering
- Parallel compilation
- Linking (archives, shared libraries, executables, kernel images)
- Per-target builds (orchestration lives in orchestrator.py)
"""

from .build_layout import BuildLayout
from .compilation_executor import CompilationExecutor, CompileBatchResult
from .compiler import CompileResult, Compiler
from .dependency_graph import DependencyGraph
from .flag_builder import FlagBuilder
from .hash_store import HashStore, digest_file
from .linker import LinkResult, Linker
from .rebuild import RebuildPlan, needs_rebuild, plan_rebuild
from .source_scanner import IncludeResolver, SourceFile, SourceScanner
from .target_builder import TargetBuilder, TargetBuildResult

__all__ = [
    'BuildLayout',
    'CompilationExecutor',
    'CompileBatchResult',
    'CompileResult',
    'Compiler',
    'DependencyGraph',
    'FlagBuilder',
    'HashStore',
    'digest_file',
    'LinkResult',
    'Linker',
    'RebuildPlan',
    'needs_rebuild',
    'plan_rebuild',
    'IncludeResolver',
    'SourceFile',
    'SourceScanner',
    'TargetBuilder',
    'TargetBuildResult',
]
