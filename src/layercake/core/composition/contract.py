"""Structural introspection of contracts and partial layer types.

A *contract* is any class whose public methods define an interface: an ABC,
a ``typing.Protocol`` or a concrete class such as ``list``. Everything here is
pure introspection; nothing is instantiated.
"""
from __future__ import annotations

import abc
import inspect
import types
import typing
from functools import lru_cache
from typing import Any, Dict, FrozenSet, Optional, Union, get_args, get_origin

# Dunder methods a contract may define that take part in forwarding. Other
# dunders (__init__, __eq__, __hash__, __getattribute__, ...) belong to the
# object model, not to the interface.
FORWARDED_DUNDERS: FrozenSet[str] = frozenset(
    {
        "__bool__",
        "__call__",
        "__contains__",
        "__delitem__",
        "__enter__",
        "__exit__",
        "__getitem__",
        "__iter__",
        "__len__",
        "__next__",
        "__reversed__",
        "__setitem__",
    }
)

_MACHINERY = frozenset({object, typing.Protocol, typing.Generic, abc.ABC})


def _is_protocol(cls: Any) -> bool:
    return isinstance(cls, type) and bool(getattr(cls, "_is_protocol", False))


def is_inheritable_contract(contract: type) -> bool:
    """Whether synthesized classes may list ``contract`` as a base class.

    ABCs and protocols carry no instance layout, so mixing them in is safe;
    concrete classes (``list``, user classes with ``__init__`` state) are not.
    """
    if contract in _MACHINERY:
        return False
    if not (isinstance(contract, abc.ABCMeta) or _is_protocol(contract)):
        return False
    for klass in _interface_classes(contract):
        if _is_protocol(klass):
            continue
        if "__init__" in vars(klass):
            return False
    return True


def _is_method_like(value: Any) -> bool:
    if isinstance(value, type):
        return False
    if isinstance(value, (staticmethod, classmethod)):
        return True
    return callable(value)


def _interface_classes(contract: type):
    for klass in contract.__mro__:
        if klass in _MACHINERY:
            continue
        yield klass


def _is_interface_name(name: str, abstract: FrozenSet[str]) -> bool:
    # Protected abstract hooks (template-method style) are part of the interface.
    return not name.startswith("_") or name in FORWARDED_DUNDERS or name in abstract


@lru_cache(maxsize=256)
def contract_members(contract: type) -> FrozenSet[str]:
    """Return the method names that make up ``contract``'s interface."""
    abstract = frozenset(getattr(contract, "__abstractmethods__", ()))
    members = set()
    for klass in _interface_classes(contract):
        for name, value in vars(klass).items():
            if not _is_interface_name(name, abstract):
                continue
            if _is_method_like(value):
                members.add(name)
    return frozenset(members)


@lru_cache(maxsize=256)
def contract_properties(contract: type) -> FrozenSet[str]:
    """Return the property names declared by ``contract``."""
    abstract = frozenset(getattr(contract, "__abstractmethods__", ()))
    props = set()
    for klass in _interface_classes(contract):
        for name, value in vars(klass).items():
            if name in FORWARDED_DUNDERS or not _is_interface_name(name, abstract):
                continue
            if isinstance(value, property):
                props.add(name)
    return frozenset(props)


def _is_abstract(value: Any) -> bool:
    return bool(getattr(value, "__isabstractmethod__", False))


def implemented_members(cls: type, contract: type) -> FrozenSet[str]:
    """Contract members (and properties) that ``cls`` itself implements.

    A member counts as implemented when it is defined on a class of ``cls``'s
    MRO that precedes the contract (or anything the contract inherits from)
    and that definition is not abstract. Contract defaults are forwarded, not
    treated as implementations.
    """
    stop = set(contract.__mro__)
    names = contract_members(contract) | contract_properties(contract)
    implemented = set()
    for name in names:
        for klass in cls.__mro__:
            if klass in stop:
                break
            if name in vars(klass):
                value = vars(klass)[name]
                if value is not None and not _is_abstract(value):
                    implemented.add(name)
                break
    return frozenset(implemented)


def strip_annotated(annotation: Any) -> Any:
    while get_origin(annotation) is typing.Annotated:
        annotation = get_args(annotation)[0]
    return annotation


def annotation_metadata(annotation: Any) -> tuple:
    if get_origin(annotation) is typing.Annotated:
        return tuple(annotation.__metadata__)
    return ()


def is_unconstrained(annotation: Any) -> bool:
    """True for missing, ``Any`` or otherwise uncheckable annotations."""
    annotation = strip_annotated(annotation)
    if annotation is inspect.Parameter.empty or annotation is Any:
        return True
    if isinstance(annotation, (str, typing.TypeVar, typing.ForwardRef)):
        return True
    return False


def _structurally_satisfies(source: type, protocol: type) -> bool:
    required = contract_members(protocol) | contract_properties(protocol)
    return all(hasattr(source, name) for name in required)


def _names_class(name: str, source: Any) -> bool:
    if not isinstance(source, type):
        return False
    return any(name in (klass.__name__, klass.__qualname__) for klass in source.__mro__)


def is_assignable(target: Any, source: Any) -> bool:
    """Whether a value of type ``source`` may be used where ``target`` is declared.

    Unconstrained annotations return False: they never *select* a delegate. A
    bare class name left unresolved matches a class of the same name in
    ``source``'s MRO.
    """
    target = strip_annotated(target)
    if isinstance(target, typing.ForwardRef):
        target = target.__forward_arg__
    if isinstance(target, str):
        return _names_class(target.strip(), source)
    if is_unconstrained(target) or target is None:
        return False
    if target is type(None):
        return source is type(None)
    origin = get_origin(target)
    if origin is Union or origin is types.UnionType:
        return any(is_assignable(arm, source) for arm in get_args(target))
    if origin is not None:
        target = origin
    if not isinstance(target, type) or not isinstance(source, type):
        return False
    if _is_protocol(target):
        return target in source.__mro__ or _structurally_satisfies(source, target)
    try:
        return issubclass(source, target)
    except TypeError:
        return False


def accepts(annotation: Any, value_type: type) -> bool:
    """Whether a parameter declared as ``annotation`` accepts ``value_type``.

    Unlike :func:`is_assignable`, unconstrained annotations accept anything.
    """
    if is_unconstrained(annotation):
        return True
    return is_assignable(annotation, value_type)


def local_namespace(*types_: Any) -> Dict[str, Any]:
    """Names of ``types_`` and their bases, for resolving annotations of local classes."""
    ns: Dict[str, Any] = {}
    for tp in types_:
        for klass in getattr(tp, "__mro__", ()):
            if klass not in _MACHINERY:
                ns.setdefault(klass.__name__, klass)
    return ns


def resolved_hints(obj: Any, localns: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Resolve annotations of a function or class, keeping ``Annotated`` extras.

    Names the defining module cannot see (classes declared inside a function)
    are retried against ``localns``. Falls back to the raw (possibly string)
    annotations when forward references still cannot be resolved.
    """
    attempts = [None, localns] if localns else [None]
    for ns in attempts:
        try:
            return typing.get_type_hints(obj, localns=ns, include_extras=True)
        except NameError:
            continue
        except (TypeError, AttributeError):
            break
    try:
        return dict(inspect.get_annotations(obj))
    except TypeError:
        return {}


def own_annotation_names(klass: type) -> list:
    try:
        return list(inspect.get_annotations(klass))
    except TypeError:
        return []


def satisfies(obj: Any, contract: type) -> list:
    """Contract members ``obj`` does not provide as callables; empty when it conforms.

    Looks at ``obj`` alone. For composites use
    :func:`layercake.core.composition.passthrough.unresolved_members`.
    """
    missing = [name for name in contract_members(contract) if not callable(getattr(obj, name, None))]
    return sorted(missing)


def type_name(tp: Optional[Any]) -> str:
    if tp is None:
        return "None"
    return getattr(tp, "__qualname__", None) or repr(tp)


__all__ = [
    "FORWARDED_DUNDERS",
    "accepts",
    "annotation_metadata",
    "contract_members",
    "contract_properties",
    "implemented_members",
    "is_assignable",
    "is_inheritable_contract",
    "is_unconstrained",
    "own_annotation_names",
    "local_namespace",
    "resolved_hints",
    "satisfies",
    "strip_annotated",
    "type_name",
]
