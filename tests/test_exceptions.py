"""Tests for lifecycle_metadata.exceptions module."""

import pytest

from lifecycle_metadata.exceptions import (
    HandleUnavailableError,
    InvocationError,
    InvocationTargetError,
    LifecycleError,
    MarkerError,
    MetadataCacheError,
    TypeResolutionError,
)


class TestExceptions:
    """Test exception classes."""

    def test_lifecycle_error(self):
        """Test LifecycleError exception."""
        with pytest.raises(LifecycleError, match="test error"):
            raise LifecycleError("test error")

        assert issubclass(LifecycleError, Exception)

    @pytest.mark.parametrize("error_class", [
        MarkerError,
        HandleUnavailableError,
        InvocationError,
    ])
    def test_simple_subclasses(self, error_class):
        """Test exceptions without extra attributes."""
        with pytest.raises(LifecycleError, match="failed"):
            raise error_class("failed")

    def test_type_resolution_error(self):
        """Test TypeResolutionError exception."""
        error = TypeResolutionError(int, "cannot resolve")
        assert error.cls is int
        assert str(error) == "cannot resolve"
        assert isinstance(error, LifecycleError)

    def test_invocation_target_error(self):
        """Test InvocationTargetError exception."""
        target = object()
        error = InvocationTargetError("member", target, "hook failed")
        assert error.member == "member"
        assert error.target is target
        assert not isinstance(error, InvocationError)

    def test_metadata_cache_error(self):
        """Test MetadataCacheError exception."""
        error = MetadataCacheError(str, "cache failed")
        assert error.cls is str
        assert isinstance(error, LifecycleError)

    def test_exception_catching(self):
        """Specific exceptions can be caught as LifecycleError."""
        try:
            raise TypeResolutionError(int, "test")
        except LifecycleError:
            pass

        try:
            raise MetadataCacheError(int, "test")
        except LifecycleError:
            pass
