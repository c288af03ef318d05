"""cbuild - incremental build engine for C/C++ projects and kernel targets."""

__version__ = "0.1.0"
