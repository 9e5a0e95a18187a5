"""
Recognized lifecycle markers.

Markers are small frozen value objects. Every marker is also a decorator:
applying it to a function, ``staticmethod``/``classmethod`` or class attaches
it to that object. Field markers are declared with ``typing.Annotated``:

    @resource(name="cache")
    class CatalogService:
        endpoint: Annotated[str, configuration("catalog.endpoint")] = "localhost"
        pool: Annotated[Pool, resource(name="pool"), NotNone()]

        @post_construct
        def start(self):
            ...

        @pre_destroy
        def stop(self):
            ...

The set of marker kinds is closed. Where a marker may legally appear is part
of its kind (see ``MarkerKind.targets``).
"""

import functools
import logging
from dataclasses import dataclass
from enum import Enum, Flag, auto
from typing import Annotated, Any, ClassVar, Optional, Tuple, get_args, get_origin

from .exceptions import MarkerError

logger = logging.getLogger(__name__)

# Attribute under which markers are stored on functions and classes
MARKERS_ATTR = '__lifecycle_markers__'


class MarkerTarget(Flag):
    """Places a marker may be attached to."""
    METHOD = auto()
    FIELD = auto()
    CLASS = auto()


class MarkerKind(Enum):
    """Closed set of marker kinds, each with the targets it applies to."""

    PRE_CONFIGURATION = ('pre_configuration', MarkerTarget.METHOD)
    POST_CONSTRUCT = ('post_construct', MarkerTarget.METHOD)
    PRE_DESTROY = ('pre_destroy', MarkerTarget.METHOD)
    WARM_UP = ('warm_up', MarkerTarget.METHOD)
    RESOURCE = ('resource', MarkerTarget.METHOD | MarkerTarget.FIELD | MarkerTarget.CLASS)
    RESOURCES = ('resources', MarkerTarget.METHOD | MarkerTarget.FIELD | MarkerTarget.CLASS)
    CONFIGURATION = ('configuration', MarkerTarget.FIELD)
    CONFIGURATION_VARIABLE = ('configuration_variable', MarkerTarget.FIELD)

    def __init__(self, label: str, targets: MarkerTarget):
        self.label = label
        self.targets = targets

    def applies_to(self, target: MarkerTarget) -> bool:
        return bool(self.targets & target)

    @property
    def is_resource(self) -> bool:
        return self in (MarkerKind.RESOURCE, MarkerKind.RESOURCES)


# Iteration order used during extraction
METHOD_MARKERS: Tuple[MarkerKind, ...] = (
    MarkerKind.PRE_CONFIGURATION,
    MarkerKind.POST_CONSTRUCT,
    MarkerKind.PRE_DESTROY,
    MarkerKind.RESOURCE,
    MarkerKind.RESOURCES,
    MarkerKind.WARM_UP,
)
FIELD_MARKERS: Tuple[MarkerKind, ...] = (
    MarkerKind.CONFIGURATION,
    MarkerKind.RESOURCE,
    MarkerKind.RESOURCES,
    MarkerKind.CONFIGURATION_VARIABLE,
)
CLASS_MARKERS: Tuple[MarkerKind, ...] = (
    MarkerKind.RESOURCE,
    MarkerKind.RESOURCES,
)


@dataclass(frozen=True)
class Marker:
    """Base class for all markers. Subclasses set ``kind``."""

    kind: ClassVar[MarkerKind]

    def __call__(self, target):
        """Attach this marker to a function, static/class method or class."""
        if isinstance(target, type):
            self._check_target(MarkerTarget.CLASS, target)
            # Only the class's own __dict__ counts, never an inherited tuple
            existing = target.__dict__.get(MARKERS_ATTR, ())
            setattr(target, MARKERS_ATTR, existing + (self,))
            return target

        func = target.__func__ if isinstance(target, (staticmethod, classmethod)) else target
        if not (callable(func) or isinstance(func, functools.partialmethod)):
            raise MarkerError(
                f"{type(self).__name__} can only decorate functions or classes, "
                f"got {type(target).__name__}"
            )
        self._check_target(MarkerTarget.METHOD, func)
        existing = getattr(func, MARKERS_ATTR, ())
        try:
            setattr(func, MARKERS_ATTR, existing + (self,))
        except (AttributeError, TypeError) as e:
            raise MarkerError(f"Cannot attach {type(self).__name__} to {func!r}: {e}") from e
        return target

    def _check_target(self, where: MarkerTarget, obj) -> None:
        if not self.kind.applies_to(where):
            raise MarkerError(
                f"{type(self).__name__} cannot be applied to {where.name.lower()} "
                f"{getattr(obj, '__qualname__', obj)!r}"
            )


@dataclass(frozen=True)
class PreConfiguration(Marker):
    """Method run before configuration values are bound."""
    kind = MarkerKind.PRE_CONFIGURATION


@dataclass(frozen=True)
class PostConstruct(Marker):
    """Method run once construction and injection are complete."""
    kind = MarkerKind.POST_CONSTRUCT


@dataclass(frozen=True)
class PreDestroy(Marker):
    """Method run when the instance is torn down."""
    kind = MarkerKind.PRE_DESTROY


@dataclass(frozen=True)
class WarmUp(Marker):
    """Method run during the warm-up phase."""
    kind = MarkerKind.WARM_UP


@dataclass(frozen=True)
class Resource(Marker):
    """
    Resource injection point.

    Attributes:
        name: JNDI-style resource name; empty means "derive from the member"
        type: Expected resource type, ``object`` when unspecified
        shareable: Whether the resource may be shared between components
        description: Free-form description for documentation
    """
    kind = MarkerKind.RESOURCE

    name: str = ""
    type: Any = object
    shareable: bool = True
    description: str = ""


@dataclass(frozen=True)
class Resources(Marker):
    """Group of resource declarations."""
    kind = MarkerKind.RESOURCES

    values: Tuple[Resource, ...] = ()


@dataclass(frozen=True)
class Configuration(Marker):
    """
    Field bound to a configuration value.

    Attributes:
        value: Configuration key
        documentation: Human-readable description of the setting
        ignore_type_mismatch: Keep the field default if the value has the wrong type
    """
    kind = MarkerKind.CONFIGURATION

    value: str = ""
    documentation: str = ""
    ignore_type_mismatch: bool = False


@dataclass(frozen=True)
class ConfigurationVariable(Marker):
    """Field whose value is substituted into configuration keys."""
    kind = MarkerKind.CONFIGURATION_VARIABLE

    name: str = ""


@dataclass(frozen=True)
class Constraint:
    """
    Validation marker.

    The engine never validates anything; a field carrying a constraint only
    means the orchestrator has lifecycle work to do for the class.
    """
    message: str = ""


@dataclass(frozen=True)
class NotNone(Constraint):
    message: str = "must not be None"


@dataclass(frozen=True)
class Range(Constraint):
    min: Optional[float] = None
    max: Optional[float] = None
    message: str = "out of range"


# Ready-made decorators and factories

pre_configuration = PreConfiguration()
post_construct = PostConstruct()
pre_destroy = PreDestroy()
warm_up = WarmUp()


def resource(name: str = "", type: Any = object, shareable: bool = True,
             description: str = "") -> Resource:
    return Resource(name=name, type=type, shareable=shareable, description=description)


def resources(*values: Resource) -> Resources:
    return Resources(values=tuple(values))


def configuration(value: str, documentation: str = "",
                  ignore_type_mismatch: bool = False) -> Configuration:
    return Configuration(
        value=value,
        documentation=documentation,
        ignore_type_mismatch=ignore_type_mismatch,
    )


def configuration_variable(name: str) -> ConfigurationVariable:
    return ConfigurationVariable(name=name)


# Query helpers

def method_markers(obj) -> Tuple[Marker, ...]:
    """Markers attached to a function (or static/class method wrapper)."""
    func = obj.__func__ if isinstance(obj, (staticmethod, classmethod)) else obj
    try:
        markers = getattr(func, MARKERS_ATTR, ())
    except Exception as e:
        # Proxies and other exotic objects may raise on attribute access
        logger.debug(f"Could not read markers from {obj!r}: {e}")
        return ()
    return markers if isinstance(markers, tuple) else ()


def class_markers(cls: type) -> Tuple[Marker, ...]:
    """Markers declared directly on ``cls`` (not inherited)."""
    return cls.__dict__.get(MARKERS_ATTR, ())


def _peel(annotation) -> Tuple[Any, Tuple[Any, ...], bool]:
    """Strip ``Annotated`` and ``ClassVar`` layers from an annotation.

    Returns the bare type, the collected ``Annotated`` metadata and whether a
    ``ClassVar`` layer was present.
    """
    metadata = ()
    is_static = False
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            args = get_args(annotation)
            metadata += tuple(args[1:])
            annotation = args[0]
        elif origin is ClassVar or annotation is ClassVar:
            is_static = True
            args = get_args(annotation)
            if not args:
                return Any, metadata, is_static
            annotation = args[0]
        else:
            return annotation, metadata, is_static


def field_markers(annotation) -> Tuple[Marker, ...]:
    """Field-applicable markers carried by an annotation."""
    _, metadata, _ = _peel(annotation)
    return tuple(
        m for m in metadata
        if isinstance(m, Marker) and m.kind.applies_to(MarkerTarget.FIELD)
    )


def has_constraint(annotation) -> bool:
    """True if the annotation carries a validation marker."""
    _, metadata, _ = _peel(annotation)
    return any(isinstance(m, Constraint) for m in metadata)


def is_class_var(annotation) -> bool:
    _, _, is_static = _peel(annotation)
    return is_static


def bare_type(annotation):
    bare, _, _ = _peel(annotation)
    return bare
