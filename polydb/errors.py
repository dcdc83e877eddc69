"""
Error types raised by polydb adapters.

Every driver failure is re-raised as one of these, chained to the
original exception (``raise ... from e``) and carrying the driver's own
error code when it has one. Nothing here retries or recovers.

    DatabaseError
    ├── ConfigError
    │   └── DriverNotFoundError   (also an ImportError)
    ├── DatabaseConnectionError
    └── QueryError
"""


class DatabaseError(Exception):
    """Base class for every polydb error."""

    def __init__(self, message, code=None, cause=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.cause = cause

    def __str__(self):
        if self.code is None:
            return self.message
        return f"[{self.code}] {self.message}"


class ConfigError(DatabaseError):
    """Bad constructor arguments, URL or config file."""


class DriverNotFoundError(ConfigError, ImportError):
    """The native client library for a backend is not installed."""

    def __init__(self, module, package=None):
        message = f"Driver module '{module}' not found."
        if package:
            message += f" Install it:\n  pip install {package}"
        super().__init__(message)
        self.module = module
        self.package = package


class DatabaseConnectionError(DatabaseError):
    """The driver could not open the connection."""


class QueryError(DatabaseError):
    """The driver rejected a statement (prepare, bind or execute)."""
