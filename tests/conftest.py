"""Pytest configuration and fixtures for lifecycle_metadata tests."""

import pytest

from lifecycle_metadata import (
    HandleFactory,
    InvocationHandleCache,
    MetadataCache,
    MetadataExtractor,
)
from lifecycle_metadata.exceptions import HandleUnavailableError


class DenyingHandleFactory(HandleFactory):
    """Factory that refuses every binding, forcing the reflective path."""

    def __init__(self):
        self.method_requests = []
        self.field_requests = []

    def method_handle(self, ref):
        self.method_requests.append(ref)
        raise HandleUnavailableError(f"denied {ref.qualname}")

    def field_handle(self, ref):
        self.field_requests.append(ref)
        raise HandleUnavailableError(f"denied {ref.qualname}")


@pytest.fixture
def handle_cache():
    """Fresh handle cache, isolated from the process-wide one."""
    return InvocationHandleCache()


@pytest.fixture
def denying_factory():
    return DenyingHandleFactory()


@pytest.fixture
def denying_handle_cache(denying_factory):
    """Handle cache in which every member is UNAVAILABLE."""
    return InvocationHandleCache(factory=denying_factory)


@pytest.fixture
def extractor(handle_cache):
    return MetadataExtractor(handle_cache)


@pytest.fixture
def metadata_cache(handle_cache):
    return MetadataCache(handle_cache=handle_cache)
