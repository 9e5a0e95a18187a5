"""
Lifecycle metadata extraction and invocation.

MetadataExtractor walks a class's type closure, most-derived type first:

1. class-level markers declared directly on the current type are recorded
2. declared fields are checked against every field marker kind
3. declared methods are checked against every method marker kind
4. the walk continues into the superclass, then into each further base;
   built-in types such as ``object`` and ``dict`` are not walked

Within a marker kind the first member seen with a given name wins, so a
subclass declaration shadows a same-named declaration further up. Fields and
methods share one name set per kind, and fields are visited first on each
level, so a field and a method with the same name never both appear under
one kind. Deduplication looks at the name only: two methods named ``start``
marked the same way at different levels collide even if their signatures
differ.

If the members of one type cannot be enumerated (typically an annotation that
names a type that cannot be resolved), that type contributes nothing and the
walk carries on with its bases.

Every recorded member gets its invocation handle requested from the handle
cache while extracting, so ``invoke``, ``get_field`` and ``set_field`` find it
ready. Those helpers try the direct handle first and fall back to reflective
access when the handle is ``UNAVAILABLE``; both paths behave identically.
"""

import inspect
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Type

from .discovery import (
    FieldRef,
    MethodKind,
    MethodRef,
    declared_fields,
    declared_methods,
    direct_supertypes,
    is_resolution_failure,
)
from .exceptions import InvocationError, InvocationTargetError
from .handles import UNAVAILABLE, InvocationHandleCache, default_handle_cache
from .markers import (
    CLASS_MARKERS,
    FIELD_MARKERS,
    METHOD_MARKERS,
    Marker,
    MarkerKind,
    class_markers,
    field_markers,
    has_constraint,
    method_markers,
)

logger = logging.getLogger(__name__)

_EMPTY: Tuple = ()


@dataclass(frozen=True, eq=False, slots=True)
class LifecycleMetadata:
    """
    Immutable lifecycle metadata of one class.

    Attributes:
        cls: The class the metadata describes
        methods: Marker kind -> methods, most-derived type first
        fields: Marker kind -> fields, most-derived type first
        classes: Marker kind -> class-level marker declarations
        has_lifecycle_work: Any method or field marker, or any validated field
        has_resource_work: Any resource marker on a class, field or method
    """
    cls: Type
    methods: Mapping[MarkerKind, Tuple[MethodRef, ...]]
    fields: Mapping[MarkerKind, Tuple[FieldRef, ...]]
    classes: Mapping[MarkerKind, Tuple[Marker, ...]]
    has_lifecycle_work: bool
    has_resource_work: bool
    handle_cache: Optional[InvocationHandleCache] = field(default=None, repr=False)

    def annotated_methods(self, kind: MarkerKind) -> Tuple[MethodRef, ...]:
        return self.methods.get(kind, _EMPTY)

    def annotated_fields(self, kind: MarkerKind) -> Tuple[FieldRef, ...]:
        return self.fields.get(kind, _EMPTY)

    def class_annotations(self, kind: MarkerKind) -> Tuple[Marker, ...]:
        return self.classes.get(kind, _EMPTY)

    @property
    def method_kinds(self) -> Tuple[MarkerKind, ...]:
        return tuple(self.methods)

    @property
    def field_kinds(self) -> Tuple[MarkerKind, ...]:
        return tuple(self.fields)

    def invoke_methods(self, kind: MarkerKind, target: Any) -> None:
        """Invoke every method marked with ``kind`` on ``target``, in order."""
        for method in self.annotated_methods(kind):
            invoke(method, target, handle_cache=self.handle_cache)


class _MetadataBuilder:
    """Accumulates markers for one extraction; not thread-safe, not reused."""

    def __init__(self, cls: Type, handle_cache: InvocationHandleCache):
        self._cls = cls
        self._handle_cache = handle_cache
        self._methods: Dict[MarkerKind, List[MethodRef]] = {}
        self._fields: Dict[MarkerKind, List[FieldRef]] = {}
        self._classes: Dict[MarkerKind, List[Marker]] = {kind: [] for kind in CLASS_MARKERS}
        self._used_names: Dict[MarkerKind, Set[str]] = {}
        self._has_validations = False
        self._visited: Set[Type] = set()

    def walk(self, cls: Optional[Type]) -> None:
        # Built-in types (object, dict, ...) cannot carry markers
        if cls is None or cls.__module__ == 'builtins' or cls in self._visited:
            return
        self._visited.add(cls)

        for marker in class_markers(cls):
            if marker.kind in self._classes:
                self._classes[marker.kind].append(marker)

        for field_ref in self._declared(cls, declared_fields, 'fields'):
            if not self._has_validations and has_constraint(field_ref.annotation):
                self._has_validations = True
            present = {marker.kind for marker in field_markers(field_ref.annotation)}
            for kind in FIELD_MARKERS:
                if kind in present:
                    self._add_field(kind, field_ref)

        for method_ref in self._declared(cls, declared_methods, 'methods'):
            present = {marker.kind for marker in method_markers(method_ref.member)}
            for kind in METHOD_MARKERS:
                if kind in present:
                    self._add_method(kind, method_ref)

        superclass, interfaces = direct_supertypes(cls)
        self.walk(superclass)
        for interface in interfaces:
            self.walk(interface)

    @staticmethod
    def _declared(cls: Type, enumerate_members, what: str) -> list:
        try:
            return enumerate_members(cls)
        except Exception as e:
            if is_resolution_failure(e):
                logger.debug(
                    f"Class {cls.__module__}.{cls.__qualname__} could not be resolved; "
                    f"skipping its {what}: {e}"
                )
            else:
                logger.warning(
                    f"Failed to enumerate {what} of {cls.__module__}.{cls.__qualname__}; "
                    f"skipping them: {e}"
                )
            return []

    def _add_field(self, kind: MarkerKind, field_ref: FieldRef) -> None:
        used = self._used_names.setdefault(kind, set())
        if field_ref.name in used:
            return
        used.add(field_ref.name)
        self._fields.setdefault(kind, []).append(field_ref)
        self._handle_cache.field_handle(field_ref)

    def _add_method(self, kind: MarkerKind, method_ref: MethodRef) -> None:
        used = self._used_names.setdefault(kind, set())
        if method_ref.name in used:
            return
        used.add(method_ref.name)
        self._methods.setdefault(kind, []).append(method_ref)
        self._handle_cache.method_handle(method_ref)

    def build(self) -> LifecycleMetadata:
        has_resource_work = any(
            self._fields.get(kind) or self._methods.get(kind) or self._classes.get(kind)
            for kind in CLASS_MARKERS
        )
        has_lifecycle_work = self._has_validations or bool(self._methods) or bool(self._fields)
        return LifecycleMetadata(
            cls=self._cls,
            methods=_freeze(self._methods),
            fields=_freeze(self._fields),
            classes=_freeze(self._classes),
            has_lifecycle_work=has_lifecycle_work,
            has_resource_work=has_resource_work,
            handle_cache=self._handle_cache,
        )


def _freeze(mapping: Dict[MarkerKind, list]) -> Mapping[MarkerKind, tuple]:
    return MappingProxyType({kind: tuple(values) for kind, values in mapping.items()})


class MetadataExtractor:
    """
    Produces LifecycleMetadata for a class, bypassing any caching.

    Args:
        handle_cache: Handle cache populated while extracting; the process-wide
                      cache when omitted
    """

    def __init__(self, handle_cache: Optional[InvocationHandleCache] = None):
        self.handle_cache = handle_cache if handle_cache is not None else default_handle_cache()

    def extract(self, cls: Type) -> LifecycleMetadata:
        if not isinstance(cls, type):
            raise TypeError(f"Expected a class, got {type(cls).__name__}")

        builder = _MetadataBuilder(cls, self.handle_cache)
        builder.walk(cls)
        metadata = builder.build()
        logger.debug(
            f"Extracted lifecycle metadata for {cls.__qualname__}: "
            f"methods={[k.label for k in metadata.methods]}, "
            f"fields={[k.label for k in metadata.fields]}, "
            f"lifecycle={metadata.has_lifecycle_work}, resources={metadata.has_resource_work}"
        )
        return metadata

    __call__ = extract


# Invocation helpers

def invoke(method: MethodRef, target: Any = None,
           handle_cache: Optional[InvocationHandleCache] = None) -> Any:
    """
    Invoke a discovered method.

    Static and class methods ignore ``target``. The method declared on
    ``method.owner`` is the one called, even if ``target``'s class overrides it.

    Raises:
        InvocationError: If ``target`` is missing or of the wrong type
        InvocationTargetError: If the method itself raises
    """
    cache = handle_cache if handle_cache is not None else default_handle_cache()
    if method.kind is MethodKind.INSTANCE:
        _check_target(method, target)

    handle = cache.method_handle(method)
    if handle is not UNAVAILABLE:
        call = handle.bind(target)
    else:
        call = _reflective_bind(method, target)

    try:
        return call()
    except Exception as e:
        raise InvocationTargetError(
            method, target, f"{method.qualname} raised {type(e).__name__}: {e} (target={target!r})"
        ) from e


def _reflective_bind(method: MethodRef, target: Any):
    try:
        member = inspect.getattr_static(method.owner, method.name)
    except AttributeError as e:
        raise InvocationError(f"{method.qualname} no longer exists") from e

    receiver = target if method.kind is MethodKind.INSTANCE else None
    descriptor_get = getattr(type(member), '__get__', None)
    if descriptor_get is None:
        return member
    return descriptor_get(member, receiver, method.owner)


def get_field(field_ref: FieldRef, target: Any = None,
              handle_cache: Optional[InvocationHandleCache] = None) -> Any:
    """Return the current value of a discovered field. Static fields ignore ``target``."""
    cache = handle_cache if handle_cache is not None else default_handle_cache()
    receiver = _field_receiver(field_ref, target)
    handle = cache.field_handle(field_ref)
    if handle is not UNAVAILABLE:
        return handle.getter(receiver)
    return getattr(receiver, field_ref.name)


def set_field(field_ref: FieldRef, target: Any, value: Any,
              handle_cache: Optional[InvocationHandleCache] = None) -> None:
    """Write a discovered field. Static fields ignore ``target`` and write the owner."""
    cache = handle_cache if handle_cache is not None else default_handle_cache()
    receiver = _field_receiver(field_ref, target)
    handle = cache.field_handle(field_ref)
    if handle is not UNAVAILABLE:
        handle.setter(receiver, value)
    else:
        setattr(receiver, field_ref.name, value)


def _field_receiver(field_ref: FieldRef, target: Any) -> Any:
    if field_ref.is_static:
        return field_ref.owner
    _check_target(field_ref, target)
    return target


def _check_target(member, target: Any) -> None:
    if target is None:
        raise InvocationError(f"{member.qualname} is an instance member and requires a target")
    if not isinstance(target, member.owner):
        raise InvocationError(
            f"{member.qualname} cannot be applied to {type(target).__qualname__} instance"
        )
