"""Exception hierarchy for cbuild.

Every fatal condition raised by the build engine derives from CBuildError so
the CLI can report it once and exit with a non-zero status.
"""


class CBuildError(Exception):
    """Base class for all cbuild errors."""
    pass


class ConfigurationError(CBuildError):
    """Raised for invalid project configuration (cycles, duplicates, bad kinds)."""
    pass


class DiscoveryError(CBuildError):
    """Raised when a primary source file cannot be discovered or read."""
    pass


class CompileError(CBuildError):
    """Raised when the compiler exits with a non-zero status."""
    pass


class LinkError(CBuildError):
    """Raised when the linker, archiver or objcopy step fails."""
    pass


class PackageError(CBuildError):
    """Raised when a package cannot be fetched or its config is malformed."""
    pass
