"""
Declared-member discovery for a single class.

This is the type-loading layer of the engine: it enumerates the fields and
methods a class declares itself (not inherited ones) and names the class's
direct supertypes. Anything that cannot be resolved while doing so, such as a
forward reference in an annotation naming a type that does not exist, is
reported as ``TypeResolutionError`` so callers can inspect failures by kind.

Fields are the entries of the class's own annotations; methods are the
functions, static methods and class methods in the class's own ``__dict__``.
Dunder names are treated as interpreter-synthesized and never reported.
"""

import functools
import inspect
import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple, Type

from .exceptions import TypeResolutionError
from .markers import is_class_var

logger = logging.getLogger(__name__)

# Exception kinds meaning "a referenced type could not be loaded"
RESOLUTION_ERRORS = (TypeResolutionError, NameError, ImportError)

# Signatures are rendered from annotations as written, never evaluated
if sys.version_info >= (3, 14):
    from annotationlib import Format
    _SIGNATURE_OPTIONS = {'annotation_format': Format.FORWARDREF}
else:
    _SIGNATURE_OPTIONS = {}


class MethodKind(Enum):
    """Calling convention of a declared method."""
    INSTANCE = 'instance'
    STATIC = 'static'
    CLASS = 'class'


@dataclass(frozen=True)
class FieldRef:
    """
    Identity of a field declared on a class.

    Attributes:
        owner: Declaring class
        name: Attribute name as stored (name-mangled for ``__private`` fields)
        annotation: Evaluated annotation, markers included
        is_static: True for ``ClassVar`` fields, which live on the owner
    """
    owner: Type
    name: str
    annotation: Any = field(default=None, compare=False, repr=False)
    is_static: bool = False

    @property
    def qualname(self) -> str:
        return f"{self.owner.__qualname__}.{self.name}"

    def __str__(self) -> str:
        return self.qualname


@dataclass(frozen=True)
class MethodRef:
    """
    Identity of a method declared on a class.

    Attributes:
        owner: Declaring class
        name: Attribute name as stored in ``owner.__dict__``
        signature: Rendered signature, part of the identity
        kind: Calling convention
        member: The raw object from ``owner.__dict__``
    """
    owner: Type
    name: str
    signature: str = ""
    kind: MethodKind = MethodKind.INSTANCE
    member: Any = field(default=None, compare=False, repr=False)

    @property
    def is_static(self) -> bool:
        return self.kind is not MethodKind.INSTANCE

    @property
    def function(self) -> Any:
        """Underlying callable with any static/class method wrapper removed."""
        if isinstance(self.member, (staticmethod, classmethod)):
            return self.member.__func__
        return self.member

    @property
    def qualname(self) -> str:
        return f"{self.owner.__qualname__}.{self.name}"

    def __str__(self) -> str:
        return f"{self.qualname}{self.signature}"


def is_synthetic(name: str) -> bool:
    """Dunder names are produced by the interpreter or by class machinery."""
    return len(name) > 4 and name.startswith('__') and name.endswith('__')


def declared_fields(cls: Type) -> List[FieldRef]:
    """
    Enumerate fields declared directly on ``cls``, in declaration order.

    Args:
        cls: Class to inspect

    Returns:
        List of FieldRef for every non-synthetic annotated attribute

    Raises:
        TypeResolutionError: If an annotation names a type that cannot be resolved
    """
    try:
        annotations = inspect.get_annotations(cls, eval_str=True)
    except RESOLUTION_ERRORS as e:
        raise TypeResolutionError(
            cls, f"Cannot resolve annotations of {cls.__qualname__}: {e}"
        ) from e

    return [
        FieldRef(owner=cls, name=name, annotation=annotation,
                 is_static=is_class_var(annotation))
        for name, annotation in annotations.items()
        if not is_synthetic(name)
    ]


def declared_methods(cls: Type) -> List[MethodRef]:
    """
    Enumerate methods declared directly on ``cls``, in declaration order.

    Nested classes and plain data attributes are skipped. Callables that are
    not plain functions (builtins, ``functools.partialmethod``, callable
    objects) are still reported; binding them is the handle layer's concern.

    Args:
        cls: Class to inspect

    Returns:
        List of MethodRef

    Raises:
        TypeResolutionError: If a signature cannot be built because a type it
                             refers to cannot be loaded; annotations themselves
                             are rendered as written, not evaluated
    """
    methods = []
    for name, value in list(vars(cls).items()):
        if is_synthetic(name) or isinstance(value, type):
            continue

        if isinstance(value, staticmethod):
            kind, func = MethodKind.STATIC, value.__func__
        elif isinstance(value, classmethod):
            kind, func = MethodKind.CLASS, value.__func__
        elif callable(value) or isinstance(value, functools.partialmethod):
            kind, func = MethodKind.INSTANCE, value
        else:
            continue

        methods.append(MethodRef(
            owner=cls,
            name=name,
            signature=_render_signature(cls, func),
            kind=kind,
            member=value,
        ))
    return methods


def _render_signature(cls: Type, func: Any) -> str:
    try:
        return str(inspect.signature(func, **_SIGNATURE_OPTIONS))
    except RESOLUTION_ERRORS as e:
        raise TypeResolutionError(
            cls, f"Cannot resolve signature of {cls.__qualname__}.{getattr(func, '__name__', func)}: {e}"
        ) from e
    except (TypeError, ValueError) as e:
        # No signature available for some builtins
        logger.debug(f"No signature for {cls.__qualname__}.{getattr(func, '__name__', func)}: {e}")
        return "(...)"


def direct_supertypes(cls: Type) -> Tuple[Optional[Type], Tuple[Type, ...]]:
    """
    Split the direct bases of ``cls`` into superclass and interfaces.

    The first base is the superclass; the remaining bases (mixins, protocols)
    play the role of interfaces. ``object`` is the root and is never returned.

    Returns:
        (superclass or None, tuple of interface types)
    """
    bases = [base for base in getattr(cls, '__bases__', ()) if base is not object]
    if not bases:
        return None, ()
    if cls.__bases__[0] is object:
        return None, tuple(bases)
    return bases[0], tuple(bases[1:])


def is_resolution_failure(error: Optional[BaseException]) -> bool:
    """
    Check whether ``error`` or anything in its cause chain is a resolution failure.

    Both explicit causes (``raise ... from``) and implicit contexts are followed.
    """
    seen = set()
    while error is not None and id(error) not in seen:
        if isinstance(error, RESOLUTION_ERRORS):
            return True
        seen.add(id(error))
        error = error.__cause__ or error.__context__
    return False
