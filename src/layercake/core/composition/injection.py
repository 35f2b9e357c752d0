"""Injection point resolution for partial layers.

A partial layer receives its inner delegate through exactly one site, searched
in this order (configurable via ``injection.strategies``):

1. constructor  - an ``__init__`` parameter annotated with a type the delegate
                  is assignable to, once the extra arguments are lined up
2. field        - a class-level annotated field; ``Annotated[T, Inject]``
                  marks a field explicitly and wins over unmarked fields
3. accessor     - an abstract, zero-argument method (or property) that is not
                  part of the contract and returns the delegate type

Resolution never instantiates anything and is memoized per layer class,
delegate type and extra-argument signature.
"""
from __future__ import annotations

import inspect
import logging
import typing
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, get_origin

from layercake.core.exceptions import (
    AmbiguousInjectionPoint,
    ConstructorArityMismatch,
    NoInjectionPoint,
)

from .contract import (
    accepts,
    annotation_metadata,
    contract_members,
    contract_properties,
    is_assignable,
    local_namespace,
    own_annotation_names,
    resolved_hints,
    strip_annotated,
    type_name,
)
from .descriptors import ACCESSOR, CONSTRUCTOR, FIELD, STRATEGIES, InjectionBinding, PartialType

logger = logging.getLogger(__name__)

_P = inspect.Parameter
_POSITIONAL = (_P.POSITIONAL_ONLY, _P.POSITIONAL_OR_KEYWORD)
_VARIADIC = (_P.VAR_POSITIONAL, _P.VAR_KEYWORD)


class _InjectMarker:
    """Marker for ``typing.Annotated`` fields that receive the delegate."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "Inject"

    def __call__(self) -> "_InjectMarker":
        return self


Inject = _InjectMarker()


def is_marked(annotation: Any) -> bool:
    return any(isinstance(m, _InjectMarker) for m in annotation_metadata(annotation))


# ---- constructor inspection ----


@dataclass(frozen=True)
class _InitSignature:
    params: Tuple[inspect.Parameter, ...]
    hints: Dict[str, Any]

    @property
    def var_positional(self) -> bool:
        return any(p.kind is _P.VAR_POSITIONAL for p in self.params)

    @property
    def var_keyword(self) -> bool:
        return any(p.kind is _P.VAR_KEYWORD for p in self.params)

    def named(self) -> List[inspect.Parameter]:
        return [p for p in self.params if p.kind not in _VARIADIC]


def _find_init(cls: type) -> Optional[Any]:
    for klass in cls.__mro__:
        if klass is object or getattr(klass, "_is_protocol", False):
            continue
        if klass in (typing.Generic,):
            continue
        init = vars(klass).get("__init__")
        if init is not None:
            return init
    return None


def init_signature(cls: type, localns: Optional[Dict[str, Any]] = None) -> _InitSignature:
    init = _find_init(cls)
    if init is None:
        return _InitSignature(params=(), hints={})
    params = tuple(inspect.signature(init).parameters.values())[1:]
    return _InitSignature(params=params, hints=resolved_hints(init, localns))


@dataclass(frozen=True)
class ConstructorCall:
    """Arguments for one ``__init__`` call, delegate included when bound."""

    args: Tuple[Any, ...]
    kwargs: Dict[str, Any]


def _hint(sig: _InitSignature, param: inspect.Parameter) -> Any:
    return sig.hints.get(param.name, param.annotation)


def plan_call(
    sig: _InitSignature,
    descriptor: PartialType,
    *,
    delegate_param: Optional[inspect.Parameter] = None,
    delegate: Any = None,
) -> Optional[ConstructorCall]:
    """Line up the extra arguments (and the delegate) with ``__init__``.

    Keyword extras bind by name, positional extras bind left to right to the
    positional parameters left over after the delegate. Every unbound
    parameter must have a default. Returns None when nothing lines up.
    """
    named = sig.named()
    assigned: Dict[str, Any] = {}
    if delegate_param is not None:
        assigned[delegate_param.name] = delegate

    extra_kwargs: Dict[str, Any] = {}
    by_name = {p.name: p for p in named}
    for key, value in descriptor.kwargs.items():
        param = by_name.get(key)
        if param is None or param.kind is _P.POSITIONAL_ONLY:
            if not sig.var_keyword:
                return None
            extra_kwargs[key] = value
            continue
        if key in assigned or not accepts(_hint(sig, param), type(value)):
            return None
        assigned[key] = value

    slots = [p for p in named if p.kind in _POSITIONAL and p.name not in assigned]
    types = descriptor.positional_types()
    overflow: Tuple[Any, ...] = ()
    if len(descriptor.args) > len(slots):
        if not sig.var_positional:
            return None
        overflow = descriptor.args[len(slots):]
    for param, value, value_type in zip(slots, descriptor.args, types):
        if not accepts(_hint(sig, param), value_type):
            return None
        assigned[param.name] = value

    for param in named:
        if param.name not in assigned and param.default is _P.empty:
            return None

    positional = [p for p in named if p.kind in _POSITIONAL]
    call_args: List[Any] = []
    call_kwargs: Dict[str, Any] = dict(extra_kwargs)
    if overflow:
        # *args follow every positional parameter, so all of them go positionally.
        call_args = [assigned[p.name] for p in positional] + list(overflow)
        for p in named:
            if p.kind is _P.KEYWORD_ONLY and p.name in assigned:
                call_kwargs[p.name] = assigned[p.name]
        return ConstructorCall(tuple(call_args), call_kwargs)

    skipped_positional_only = False
    for p in named:
        if p.name not in assigned:
            if p.kind is _P.POSITIONAL_ONLY:
                skipped_positional_only = True
            continue
        if p.kind is _P.POSITIONAL_ONLY:
            if skipped_positional_only:
                return None
            call_args.append(assigned[p.name])
        else:
            call_kwargs[p.name] = assigned[p.name]
    return ConstructorCall(tuple(call_args), call_kwargs)


# ---- candidate discovery ----


def _constructor_candidates(sig: _InitSignature, delegate_type: type) -> List[inspect.Parameter]:
    return [p for p in sig.named() if is_assignable(_hint(sig, p), delegate_type)]


def _field_candidates(
    cls: type,
    contract: type,
    delegate_type: type,
    *,
    marked_first: bool,
    localns: Optional[Dict[str, Any]] = None,
) -> List[str]:
    stop = set(contract.__mro__)
    seen = set()
    marked: List[str] = []
    unmarked: List[str] = []
    for klass in cls.__mro__:
        if klass in stop:
            break
        names = own_annotation_names(klass)
        if not names:
            continue
        hints = resolved_hints(klass, localns)
        for name in names:
            if name in seen:
                continue
            seen.add(name)
            hint = hints.get(name)
            if get_origin(strip_annotated(hint)) is typing.ClassVar:
                continue
            if not is_assignable(hint, delegate_type):
                continue
            (marked if is_marked(hint) else unmarked).append(name)
    if marked_first and marked:
        return marked
    return marked + unmarked


def _accessor_candidates(
    cls: type,
    contract: type,
    delegate_type: type,
    localns: Optional[Dict[str, Any]] = None,
) -> List[Tuple[str, bool]]:
    excluded = contract_members(contract) | contract_properties(contract)
    found: List[Tuple[str, bool]] = []
    for name in sorted(dir(cls)):
        if name in excluded or name.startswith("__"):
            continue
        value = inspect.getattr_static(cls, name)
        if not getattr(value, "__isabstractmethod__", False):
            continue
        is_property = isinstance(value, property)
        func = value.fget if is_property else getattr(value, "__func__", value)
        if not callable(func):
            continue
        params = list(inspect.signature(func).parameters.values())[1:]
        if any(p.default is _P.empty and p.kind not in _VARIADIC for p in params):
            continue
        returns = resolved_hints(func, localns).get("return", _P.empty)
        if is_assignable(returns, delegate_type):
            found.append((name, is_property))
    return found


# ---- resolution ----

_CACHE: Dict[tuple, InjectionBinding] = {}


def clear_injection_cache() -> None:
    _CACHE.clear()


def resolve_injection(
    descriptor: PartialType,
    delegate_type: type,
    *,
    contract: Optional[type] = None,
    strategies: Sequence[str] = STRATEGIES,
    marked_fields_first: bool = True,
    use_cache: bool = True,
) -> InjectionBinding:
    """Find the unique site through which ``descriptor.cls`` receives its delegate.

    Raises:
        AmbiguousInjectionPoint: more than one candidate in the winning category.
        ConstructorArityMismatch: the extras do not fit ``__init__``.
        NoInjectionPoint: no strategy found a candidate.
    """
    contract = contract or delegate_type
    key = (
        descriptor.cache_key(),
        delegate_type,
        contract,
        tuple(strategies),
        marked_fields_first,
    )
    if use_cache and key in _CACHE:
        return _CACHE[key]

    binding = _resolve(descriptor, delegate_type, contract, strategies, marked_fields_first)
    logger.debug(
        "Resolved injection for %s against %s: %s '%s'",
        descriptor.name,
        type_name(delegate_type),
        binding.kind,
        binding.site,
    )
    if use_cache:
        _CACHE[key] = binding
    return binding


def _resolve(
    descriptor: PartialType,
    delegate_type: type,
    contract: type,
    strategies: Sequence[str],
    marked_fields_first: bool,
) -> InjectionBinding:
    cls = descriptor.cls
    localns = local_namespace(cls, delegate_type, contract)
    sig = init_signature(cls, localns)
    ctx = {"layer": descriptor.name, "delegate_type": type_name(delegate_type)}
    arity_problem: Optional[str] = None

    def _require_plain_constructor(kind: str, site: str) -> None:
        if plan_call(sig, descriptor) is None:
            raise ConstructorArityMismatch(
                f"{descriptor.name}: {kind} injection via '{site}' needs __init__ to accept "
                f"{len(descriptor.args)} extra positional and {sorted(descriptor.kwargs)} "
                "keyword arguments without the delegate",
                context=ctx,
            )

    for strategy in strategies:
        if strategy == CONSTRUCTOR:
            candidates = _constructor_candidates(sig, delegate_type)
            if not candidates:
                continue
            aligned = [p for p in candidates if plan_call(sig, descriptor, delegate_param=p) is not None]
            if len(aligned) > 1:
                names = [p.name for p in aligned]
                raise AmbiguousInjectionPoint(
                    f"{descriptor.name}: constructor parameters {names} all accept "
                    f"{type_name(delegate_type)}",
                    candidates=names,
                    context=ctx,
                )
            if aligned:
                param = aligned[0]
                return InjectionBinding(CONSTRUCTOR, param.name, index=sig.params.index(param))
            arity_problem = (
                f"{descriptor.name}: extra arguments {descriptor.positional_types()} / "
                f"{sorted(descriptor.kwargs)} do not fit any constructor taking "
                f"{type_name(delegate_type)}"
            )
        elif strategy == FIELD:
            fields = _field_candidates(
                cls, contract, delegate_type, marked_first=marked_fields_first, localns=localns
            )
            if len(fields) > 1:
                raise AmbiguousInjectionPoint(
                    f"{descriptor.name}: fields {fields} all accept {type_name(delegate_type)}; "
                    "mark one with Annotated[..., Inject]",
                    candidates=fields,
                    context=ctx,
                )
            if fields:
                _require_plain_constructor(FIELD, fields[0])
                return InjectionBinding(FIELD, fields[0])
        elif strategy == ACCESSOR:
            accessors = _accessor_candidates(cls, contract, delegate_type, localns)
            if len(accessors) > 1:
                names = [name for name, _ in accessors]
                raise AmbiguousInjectionPoint(
                    f"{descriptor.name}: abstract accessors {names} all return "
                    f"{type_name(delegate_type)}",
                    candidates=names,
                    context=ctx,
                )
            if accessors:
                name, is_property = accessors[0]
                _require_plain_constructor(ACCESSOR, name)
                return InjectionBinding(ACCESSOR, name, is_property=is_property)
        else:
            raise ValueError(f"Unknown injection strategy '{strategy}'")

    if arity_problem is not None:
        raise ConstructorArityMismatch(arity_problem, context=ctx)
    raise NoInjectionPoint(
        f"{descriptor.name}: no constructor parameter, field or abstract accessor "
        f"accepts {type_name(delegate_type)}",
        context=ctx,
    )


__all__ = [
    "ConstructorCall",
    "Inject",
    "clear_injection_cache",
    "init_signature",
    "is_marked",
    "plan_call",
    "resolve_injection",
]
