"""Subprocess utilities for running external build tools.

Every compiler, archiver, linker, objcopy and git invocation goes through
safe_run(), which takes an argument vector (never a shell string) and
captures text output so failures can be surfaced verbatim.
"""

import _thread
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Any, List, Sequence, Union

CommandArg = Union[str, Path]


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def to_argv(cmd: Sequence[CommandArg]) -> List[str]:
    """Convert a command of strings and paths into a plain argument list."""
    return [str(arg) for arg in cmd]


def format_command(cmd: Sequence[CommandArg]) -> str:
    """Render an argument vector as a copy-pasteable shell line.

    Args:
        cmd: Command and arguments

    Returns:
        Shell-quoted command line for logs and error messages
    """
    return shlex.join(to_argv(cmd))


def safe_run(cmd: Sequence[CommandArg], **kwargs: Any) -> subprocess.CompletedProcess:
    """Execute subprocess.run without a shell and with captured text output.

    Automatically applies:
    - stdin=DEVNULL (tools never read from the terminal)
    - capture_output=True, text=True unless overridden
    - CREATE_NO_WINDOW on Windows

    No timeout is imposed: a hung tool hangs the build.

    Args:
        cmd: Command and arguments
        **kwargs: Additional arguments passed to subprocess.run

    Returns:
        CompletedProcess result from subprocess.run
    """
    default_flags = get_subprocess_creation_flags()

    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    if "stdin" not in kwargs:
        kwargs["stdin"] = subprocess.DEVNULL
    if "stdout" not in kwargs and "stderr" not in kwargs:
        kwargs.setdefault("capture_output", True)
    kwargs.setdefault("text", True)

    return subprocess.run(to_argv(cmd), **kwargs)


def handle_keyboard_interrupt_properly(ke: KeyboardInterrupt) -> None:
    """Handle KeyboardInterrupt by propagating it to the main thread.

    Worker threads of the compile pool cannot stop the interpreter on their
    own, so the interrupt is forwarded to the main thread before re-raising.

    Usage:
        try:
            # Some code that might be interrupted
            pass
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)

    Args:
        ke: The KeyboardInterrupt exception to handle

    Raises:
        KeyboardInterrupt: Always re-raises the exception after handling
    """
    _thread.interrupt_main()
    raise ke
