"""Exceptions for lifecycle-metadata."""


class LifecycleError(Exception):
    """Base exception for lifecycle metadata errors."""
    pass


class MarkerError(LifecycleError):
    """Exception raised when a marker is applied where it is not allowed."""
    pass


class TypeResolutionError(LifecycleError):
    """Exception raised when a type referenced by a class cannot be resolved."""

    def __init__(self, cls: type, message: str):
        super().__init__(message)
        self.cls = cls


class HandleUnavailableError(LifecycleError):
    """Exception raised when a member cannot be bound to a direct handle."""
    pass


class InvocationError(LifecycleError):
    """Exception raised when the invocation machinery itself fails."""
    pass


class InvocationTargetError(LifecycleError):
    """
    Exception raised when an invoked hook raises.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, member, target, message: str):
        super().__init__(message)
        self.member = member
        self.target = target


class MetadataCacheError(LifecycleError):
    """Exception raised when metadata for a class cannot be computed."""

    def __init__(self, cls: type, message: str):
        super().__init__(message)
        self.cls = cls
