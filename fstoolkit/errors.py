from __future__ import annotations


class ToolkitError(Exception):
    """Base class for every failure raised inside the toolkit services."""


class InvalidPath(ToolkitError, ValueError):
    pass


class SecurityViolation(ToolkitError, PermissionError):
    pass


class NotFound(ToolkitError, FileNotFoundError):
    pass


class IOFailure(ToolkitError, OSError):
    pass


class PatternError(ToolkitError, ValueError):
    pass
