"""
Precompiled invocation handles and their process-wide cache.

A handle lets the engine call a discovered method, or get/set a discovered
field, without looking the member up again on every call:

- MethodHandle: the plain function plus its calling convention; the receiver
  is passed explicitly, so no attribute lookup or descriptor binding happens.
- FieldHandle: a precompiled ``operator.attrgetter`` and matching setter.

When a member cannot be bound (for instance a method whose declared object is
not a plain Python function), the cache stores ``UNAVAILABLE`` for it and the
invocation helpers use reflective access instead. A failed binding is never
retried.
"""

import functools
import inspect
import logging
import operator
import threading
import types
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from .discovery import FieldRef, MethodKind, MethodRef
from .exceptions import HandleUnavailableError

logger = logging.getLogger(__name__)


class Unavailable:
    """Sentinel type: no direct handle exists for a member."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'UNAVAILABLE'

    def __reduce__(self):
        return (Unavailable, ())


UNAVAILABLE = Unavailable()


@dataclass(frozen=True)
class MethodHandle:
    """Direct handle for a method: plain function plus calling convention."""
    function: Callable
    kind: MethodKind
    owner: type

    def bind(self, target: Any) -> Callable[[], Any]:
        """Return a zero-argument callable invoking the method on ``target``."""
        if self.kind is MethodKind.STATIC:
            return self.function
        if self.kind is MethodKind.CLASS:
            return functools.partial(self.function, self.owner)
        return functools.partial(self.function, target)


@dataclass(frozen=True)
class FieldHandle:
    """Direct handle for a field: precompiled getter and setter."""
    getter: Callable[[Any], Any]
    setter: Callable[[Any, Any], None]


Handle = Union[MethodHandle, FieldHandle, Unavailable]


def _make_setter(name: str) -> Callable[[Any, Any], None]:
    def setter(obj: Any, value: Any) -> None:
        setattr(obj, name, value)
    return setter


class HandleFactory:
    """
    Binds members to direct handles.

    Methods are denied when their declared object is not a plain function;
    fields are denied when a property or slot descriptor backs them. Raises
    HandleUnavailableError on denial; subclasses may deny more members, the
    cache treats any denial the same way.
    """

    def method_handle(self, ref: MethodRef) -> MethodHandle:
        func = ref.function
        if not isinstance(func, types.FunctionType):
            raise HandleUnavailableError(
                f"{ref.qualname} is a {type(func).__name__}, not a plain function"
            )
        return MethodHandle(function=func, kind=ref.kind, owner=ref.owner)

    def field_handle(self, ref: FieldRef) -> FieldHandle:
        if not ref.name.isidentifier():
            raise HandleUnavailableError(f"{ref.qualname} is not addressable by name")
        backing = inspect.getattr_static(ref.owner, ref.name, None)
        if isinstance(backing, (property, types.MemberDescriptorType)):
            raise HandleUnavailableError(
                f"{ref.qualname} is backed by a {type(backing).__name__}"
            )
        return FieldHandle(
            getter=operator.attrgetter(ref.name),
            setter=_make_setter(ref.name),
        )


class InvocationHandleCache:
    """
    Memoizes one handle (or ``UNAVAILABLE``) per member.

    Methods and fields are kept in separate tables. Each entry is computed at
    most once, even when several threads ask for the same member at the same
    time, and is never overwritten afterwards. Entries are not evicted; a
    member lives as long as its declaring class.
    """

    def __init__(self, factory: Optional[HandleFactory] = None):
        self._factory = factory if factory is not None else HandleFactory()
        self._methods: Dict[MethodRef, Handle] = {}
        self._fields: Dict[FieldRef, Handle] = {}
        self._lock = threading.Lock()

    def handle_for(self, member: Union[MethodRef, FieldRef]) -> Handle:
        if isinstance(member, MethodRef):
            return self.method_handle(member)
        if isinstance(member, FieldRef):
            return self.field_handle(member)
        raise TypeError(f"Expected MethodRef or FieldRef, got {type(member).__name__}")

    def method_handle(self, ref: MethodRef) -> Handle:
        return self._lookup(self._methods, ref, self._factory.method_handle)

    def field_handle(self, ref: FieldRef) -> Handle:
        return self._lookup(self._fields, ref, self._factory.field_handle)

    def peek(self, member: Union[MethodRef, FieldRef]) -> Optional[Handle]:
        """Return the cached entry for ``member`` without computing one."""
        table = self._methods if isinstance(member, MethodRef) else self._fields
        return table.get(member)

    def _lookup(self, table: Dict, key, compute: Callable) -> Handle:
        handle = table.get(key)
        if handle is not None:
            return handle

        with self._lock:
            handle = table.get(key)
            if handle is None:
                handle = self._compute(key, compute)
                table[key] = handle
        return handle

    @staticmethod
    def _compute(key, compute: Callable) -> Handle:
        try:
            return compute(key)
        except HandleUnavailableError as e:
            logger.debug(f"No direct handle for {key}, using reflective access: {e}")
        except Exception as e:
            logger.warning(f"Failed to bind {key}, using reflective access: {e}")
        return UNAVAILABLE

    def __contains__(self, member) -> bool:
        return self.peek(member) is not None

    def __len__(self) -> int:
        return len(self._methods) + len(self._fields)

    def clear(self) -> None:
        with self._lock:
            self._methods.clear()
            self._fields.clear()


_default_handle_cache = None
_default_lock = threading.Lock()


def default_handle_cache() -> InvocationHandleCache:
    """Process-wide handle cache used when none is passed explicitly."""
    global _default_handle_cache
    if _default_handle_cache is None:
        with _default_lock:
            if _default_handle_cache is None:
                _default_handle_cache = InvocationHandleCache()
    return _default_handle_cache
