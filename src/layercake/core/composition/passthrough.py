"""Pass-through synthesis for partial layers.

For every partial type the synthesizer builds one subclass that fills the gaps:
each contract member the partial does not implement becomes a forwarder that
calls the same member on the layer's delegate with the arguments untouched.
Members the partial implements are left alone, so normal attribute lookup
reaches the author's code first. The delegate reference lives on the instance
under ``DELEGATE_ATTR``.
"""
from __future__ import annotations

import logging
import types
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Tuple

from .contract import (
    contract_members,
    contract_properties,
    implemented_members,
    is_inheritable_contract,
)
from .descriptors import ACCESSOR, InjectionBinding

logger = logging.getLogger(__name__)

DELEGATE_ATTR = "_layercake_delegate"
FORWARDED_ATTR = "__layercake_forwarded__"
INTERCEPTED_ATTR = "__layercake_intercepted__"


def delegate_of(layer: Any) -> Any:
    return object.__getattribute__(layer, DELEGATE_ATTR)


def _forwarder(name: str, owner: str) -> Callable[..., Any]:
    def forward(self, *args, **kwargs):
        return getattr(delegate_of(self), name)(*args, **kwargs)

    forward.__name__ = name
    forward.__qualname__ = f"{owner}.{name}"
    return forward


def _forwarding_property(name: str, writable: bool) -> property:
    def fget(self):
        return getattr(delegate_of(self), name)

    fset = None
    if writable:

        def fset(self, value):
            setattr(delegate_of(self), name, value)

    return property(fget, fset, doc=f"Forwarded to the delegate's '{name}'.")


def _accessor(binding: InjectionBinding) -> Any:
    def accessor(self):
        return delegate_of(self)

    accessor.__name__ = binding.site
    if binding.is_property:
        return property(accessor)
    return accessor


def forwarding_namespace(
    partial: type, contract: type, binding: InjectionBinding
) -> Tuple[Dict[str, Any], FrozenSet[str]]:
    """Build the class namespace of forwarders for ``partial`` over ``contract``."""
    implemented = implemented_members(partial, contract)
    forwarded = set()
    ns: Dict[str, Any] = {}
    for name in sorted(contract_members(contract) - implemented):
        ns[name] = _forwarder(name, partial.__qualname__)
        forwarded.add(name)
    for name in sorted(contract_properties(contract) - implemented):
        declared = _declared_property(contract, name)
        ns[name] = _forwarding_property(name, writable=declared is not None and declared.fset is not None)
        forwarded.add(name)
    if binding.kind == ACCESSOR:
        ns[binding.site] = _accessor(binding)
    return ns, frozenset(forwarded)


def _declared_property(contract: type, name: str):
    for klass in contract.__mro__:
        value = vars(klass).get(name)
        if isinstance(value, property):
            return value
    return None


_CLASS_CACHE: Dict[tuple, type] = {}


def clear_synthesis_cache() -> None:
    _CLASS_CACHE.clear()


def synthesize_layer_class(
    partial: type,
    contract: type,
    binding: InjectionBinding,
    *,
    use_cache: bool = True,
) -> type:
    """Return the concrete subclass of ``partial`` that forwards its gaps.

    The subclass keeps the partial's name and module. When the contract is an
    ABC or protocol the partial does not already inherit, it is added as a base
    so instances also pass ``isinstance(obj, contract)``.
    """
    key = (partial, contract, binding)
    if use_cache and key in _CLASS_CACHE:
        return _CLASS_CACHE[key]

    ns, forwarded = forwarding_namespace(partial, contract, binding)
    ns[FORWARDED_ATTR] = forwarded
    ns["__module__"] = partial.__module__
    ns["__qualname__"] = partial.__qualname__
    ns["__doc__"] = partial.__doc__

    bases: Tuple[type, ...] = (partial,)
    if is_inheritable_contract(contract) and contract not in partial.__mro__:
        bases = (partial, contract)

    try:
        synthesized = types.new_class(partial.__name__, bases, {}, lambda body: body.update(ns))
    except TypeError:
        if len(bases) == 1:
            raise
        # Inconsistent MRO or metaclass conflict: keep the partial alone.
        logger.debug("Cannot mix %s into %s; skipping contract base", contract, partial)
        synthesized = types.new_class(partial.__name__, (partial,), {}, lambda body: body.update(ns))

    logger.debug(
        "Synthesized %s: %d forwarded, binding %s '%s'",
        partial.__qualname__,
        len(forwarded),
        binding.kind,
        binding.site,
    )
    if use_cache:
        _CLASS_CACHE[key] = synthesized
    return synthesized


def unresolved_members(obj: Any, members: Iterable[str]) -> List[str]:
    """Members no layer of ``obj``'s chain implements and its innermost object lacks."""
    missing = []
    for name in members:
        target = obj
        while True:
            cls = type(target)
            if name in getattr(cls, FORWARDED_ATTR, ()):
                target = delegate_of(target)
                continue
            if name in getattr(cls, INTERCEPTED_ATTR, ()):
                break
            if not callable(getattr(target, name, None)):
                missing.append(name)
            break
    return sorted(missing)


__all__ = [
    "DELEGATE_ATTR",
    "clear_synthesis_cache",
    "delegate_of",
    "forwarding_namespace",
    "synthesize_layer_class",
    "unresolved_members",
]
