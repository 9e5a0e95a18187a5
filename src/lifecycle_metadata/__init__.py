"""
lifecycle-metadata: Reflective lifecycle metadata for Python classes.

This package discovers which fields, methods and class declarations of a
class carry lifecycle markers (post-construct, pre-destroy, warm-up,
resource and configuration markers), caches that discovery per class and
provides a fast path for invoking the discovered hooks and accessing the
discovered fields.
"""

__version__ = "0.1.0"

from .markers import (
    MarkerKind,
    MarkerTarget,
    Marker,
    PreConfiguration,
    PostConstruct,
    PreDestroy,
    WarmUp,
    Resource,
    Resources,
    Configuration,
    ConfigurationVariable,
    Constraint,
    NotNone,
    Range,
    pre_configuration,
    post_construct,
    pre_destroy,
    warm_up,
    resource,
    resources,
    configuration,
    configuration_variable,
)
from .discovery import FieldRef, MethodRef, MethodKind
from .handles import (
    UNAVAILABLE,
    FieldHandle,
    HandleFactory,
    InvocationHandleCache,
    MethodHandle,
    default_handle_cache,
)
from .core import LifecycleMetadata, MetadataExtractor, invoke, get_field, set_field
from .cache import CacheConfig, MetadataCache, default_metadata_cache, lifecycle_metadata_for
from .exceptions import (
    LifecycleError,
    MarkerError,
    TypeResolutionError,
    HandleUnavailableError,
    InvocationError,
    InvocationTargetError,
    MetadataCacheError,
)

__all__ = [
    # Markers
    "MarkerKind",
    "MarkerTarget",
    "Marker",
    "PreConfiguration",
    "PostConstruct",
    "PreDestroy",
    "WarmUp",
    "Resource",
    "Resources",
    "Configuration",
    "ConfigurationVariable",
    "Constraint",
    "NotNone",
    "Range",
    "pre_configuration",
    "post_construct",
    "pre_destroy",
    "warm_up",
    "resource",
    "resources",
    "configuration",
    "configuration_variable",
    # Members
    "FieldRef",
    "MethodRef",
    "MethodKind",
    # Handles
    "UNAVAILABLE",
    "FieldHandle",
    "HandleFactory",
    "InvocationHandleCache",
    "MethodHandle",
    "default_handle_cache",
    # Metadata
    "LifecycleMetadata",
    "MetadataExtractor",
    "invoke",
    "get_field",
    "set_field",
    # Cache
    "CacheConfig",
    "MetadataCache",
    "default_metadata_cache",
    "lifecycle_metadata_for",
    # Exceptions
    "LifecycleError",
    "MarkerError",
    "TypeResolutionError",
    "HandleUnavailableError",
    "InvocationError",
    "InvocationTargetError",
    "MetadataCacheError",
]
