"""Exception hierarchy for routedoc.

Structural and router-level failures are recoverable: the pipeline logs them
and skips the offending unit. Schema, write and config failures abort the run.
"""


class RouteDocError(Exception):
    """Base class for all routedoc errors."""


class StructuralParseError(RouteDocError):
    """Source text does not match an expected call/delimiter shape."""


class RouterResolutionError(RouteDocError):
    """A mounted router has no local definition and no resolvable import."""

    def __init__(self, router: str, file_path):
        self.router = router
        self.file_path = file_path
        super().__init__(f"router '{router}' not found in {file_path} or its imports")


class SchemaNotFound(RouteDocError):
    """Raised by schema providers when a module or export is missing."""


class SchemaResolutionError(RouteDocError):
    """A referenced schema could not be loaded. Fatal for the run."""

    def __init__(self, module: str, export: str, reason: str = ""):
        self.module = module
        self.export = export
        message = f"cannot resolve schema {module}.{export}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DocumentWriteError(RouteDocError):
    """The generated document could not be persisted."""


class ConfigError(RouteDocError):
    """Configuration file is missing or invalid."""
