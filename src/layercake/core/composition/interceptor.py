"""Dynamic interceptor adapter.

An interceptor layer routes every contract member call through a handler:

    handler.invoke(delegate, member, args, kwargs) -> result

The handler computes a result itself or forwards to ``delegate``. No
pass-through is synthesized here: returning ``NotImplemented`` means the
member was neither handled nor forwarded and the call raises
:class:`UnhandledMember`. Contract properties are read straight from the
delegate.
"""
from __future__ import annotations

import logging
import types
from typing import Any, Callable, Dict, Tuple

from layercake.core.exceptions import InstantiationFailure, UnhandledMember

from .contract import contract_members, contract_properties, is_inheritable_contract, type_name
from .descriptors import InterceptorHandler
from .passthrough import DELEGATE_ATTR, INTERCEPTED_ATTR, delegate_of

logger = logging.getLogger(__name__)

HANDLER_ATTR = "_layercake_handler"


class Interceptor:
    """Base class for interceptor handlers.

    Subclasses override :meth:`invoke`; the default handles nothing.
    """

    def invoke(self, delegate: Any, member: str, args: tuple, kwargs: Dict[str, Any]) -> Any:
        return NotImplemented

    @staticmethod
    def proceed(delegate: Any, member: str, args: tuple, kwargs: Dict[str, Any]) -> Any:
        """Call ``member`` on ``delegate`` with the original arguments."""
        return getattr(delegate, member)(*args, **kwargs)


class ForwardingInterceptor(Interceptor):
    """Forwards every call, with ``before``/``after`` hooks around it."""

    def before(self, member: str, args: tuple, kwargs: Dict[str, Any]) -> None:
        pass

    def after(self, member: str, result: Any) -> Any:
        return result

    def invoke(self, delegate: Any, member: str, args: tuple, kwargs: Dict[str, Any]) -> Any:
        self.before(member, args, kwargs)
        return self.after(member, self.proceed(delegate, member, args, kwargs))


def _dispatch(proxy: Any, member: str, args: tuple, kwargs: Dict[str, Any]) -> Any:
    handler: InterceptorHandler = object.__getattribute__(proxy, HANDLER_ATTR)
    result = handler.call(delegate_of(proxy), member, args, kwargs)
    if result is NotImplemented:
        raise UnhandledMember(member, context={"handler": handler.name})
    return result


def _intercepting_method(name: str, owner: str) -> Callable[..., Any]:
    def method(self, *args, **kwargs):
        return _dispatch(self, name, args, kwargs)

    method.__name__ = name
    method.__qualname__ = f"{owner}.{name}"
    return method


def _delegate_property(name: str) -> property:
    return property(lambda self: getattr(delegate_of(self), name))


def _proxy_init(self, delegate: Any, handler: InterceptorHandler) -> None:
    object.__setattr__(self, DELEGATE_ATTR, delegate)
    object.__setattr__(self, HANDLER_ATTR, handler)


def _proxy_repr(self) -> str:
    handler = object.__getattribute__(self, HANDLER_ATTR)
    return f"<{type(self).__qualname__} intercepted by {handler.name}>"


_PROXY_CACHE: Dict[type, type] = {}


def clear_proxy_cache() -> None:
    _PROXY_CACHE.clear()


def proxy_class(contract: type, *, use_cache: bool = True) -> type:
    """Return the intercepting proxy class for ``contract``."""
    if use_cache and contract in _PROXY_CACHE:
        return _PROXY_CACHE[contract]

    members = contract_members(contract)
    ns: Dict[str, Any] = {
        name: _intercepting_method(name, contract.__qualname__) for name in sorted(members)
    }
    for name in sorted(contract_properties(contract)):
        ns[name] = _delegate_property(name)
    ns[INTERCEPTED_ATTR] = members
    ns["__init__"] = _proxy_init
    ns["__repr__"] = _proxy_repr
    ns["__module__"] = contract.__module__
    ns["__qualname__"] = contract.__qualname__

    bases: Tuple[type, ...] = (contract,) if is_inheritable_contract(contract) else ()
    cls = types.new_class(contract.__name__, bases, {}, lambda body: body.update(ns))
    if use_cache:
        _PROXY_CACHE[contract] = cls
    return cls


def intercept(delegate: Any, handler: Any, contract: type, *, use_cache: bool = True) -> Any:
    """Wrap ``delegate`` so every ``contract`` member call goes through ``handler``."""
    if not isinstance(handler, InterceptorHandler):
        handler = InterceptorHandler(handler)
    try:
        proxy = proxy_class(contract, use_cache=use_cache)(delegate, handler)
    except TypeError as exc:
        raise InstantiationFailure(
            f"Cannot build interceptor proxy for {type_name(contract)}: {exc}",
            cause=exc,
            context={"layer": handler.name},
        ) from exc
    logger.debug("Intercepting %s with %s", type_name(contract), handler.name)
    return proxy


__all__ = [
    "ForwardingInterceptor",
    "Interceptor",
    "clear_proxy_cache",
    "intercept",
    "proxy_class",
]
