"""Layer descriptors and resolved chain types."""
from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from layercake.core.exceptions import InvalidLayerError


@dataclass(frozen=True)
class PartialType:
    """A class implementing part of the contract around an inner delegate.

    ``args``/``kwargs`` are extra constructor arguments; ``arg_types`` optionally
    declares the types of ``args`` (defaults to each value's runtime type).
    """

    cls: type
    args: Tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)
    arg_types: Optional[Tuple[type, ...]] = None

    def __post_init__(self) -> None:
        if not inspect.isclass(self.cls):
            raise InvalidLayerError(
                f"Partial layer must be a class, got {self.cls!r}",
                context={"layer": repr(self.cls)},
            )
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "kwargs", dict(self.kwargs))
        if self.arg_types is not None:
            types = tuple(self.arg_types)
            if len(types) != len(self.args):
                raise InvalidLayerError(
                    f"{self.cls.__qualname__}: {len(types)} arg_types declared "
                    f"for {len(self.args)} extra arguments",
                    context={"layer": self.cls.__qualname__},
                )
            object.__setattr__(self, "arg_types", types)

    @property
    def name(self) -> str:
        return self.cls.__qualname__

    def positional_types(self) -> Tuple[type, ...]:
        if self.arg_types is not None:
            return self.arg_types
        return tuple(type(a) for a in self.args)

    def cache_key(self) -> tuple:
        kw = tuple(sorted((k, type(v)) for k, v in self.kwargs.items()))
        return (self.cls, self.positional_types(), kw)


@dataclass(frozen=True)
class TransformFunction:
    """A function mapping the inner delegate to a complete outer object."""

    fn: Callable[[Any], Any]

    def __post_init__(self) -> None:
        if not callable(self.fn):
            raise InvalidLayerError(f"Transform must be callable, got {self.fn!r}")

    @property
    def name(self) -> str:
        return getattr(self.fn, "__qualname__", None) or repr(self.fn)


@dataclass(frozen=True)
class InterceptorHandler:
    """A call handler ``invoke(delegate, member, args, kwargs) -> result``.

    Accepts an object with an ``invoke`` method or a plain callable with the
    same signature.
    """

    handler: Any

    def __post_init__(self) -> None:
        if not (callable(getattr(self.handler, "invoke", None)) or callable(self.handler)):
            raise InvalidLayerError(
                f"Interceptor must define invoke() or be callable, got {self.handler!r}"
            )

    @property
    def name(self) -> str:
        if inspect.isfunction(self.handler):
            return self.handler.__qualname__
        return type(self.handler).__qualname__

    def call(self, delegate: Any, member: str, args: tuple, kwargs: Dict[str, Any]) -> Any:
        invoke = getattr(self.handler, "invoke", None)
        if callable(invoke):
            return invoke(delegate, member, args, kwargs)
        return self.handler(delegate, member, args, kwargs)


LayerDescriptor = Any  # PartialType | TransformFunction | InterceptorHandler

CONSTRUCTOR = "constructor"
FIELD = "field"
ACCESSOR = "accessor"
STRATEGIES: Tuple[str, ...] = (CONSTRUCTOR, FIELD, ACCESSOR)


@dataclass(frozen=True)
class InjectionBinding:
    """Where a partial layer receives its delegate.

    ``site`` is the parameter, field or accessor name; ``index`` is the
    constructor parameter position (``self`` excluded) for constructor
    bindings. ``is_property`` marks accessors declared as abstract properties.
    """

    kind: str
    site: str
    index: Optional[int] = None
    is_property: bool = False


@dataclass(frozen=True)
class ChainLink:
    descriptor: LayerDescriptor
    delegate_type: type
    binding: Optional[InjectionBinding] = None


@dataclass(frozen=True)
class CompositionChain:
    """The resolved chain: base object plus links ordered innermost first."""

    base: Any
    contract: type
    output_type: type
    links: Tuple[ChainLink, ...] = ()

    def __len__(self) -> int:
        return len(self.links)

    def describe(self) -> list:
        out = []
        for link in self.links:
            entry = {"layer": link.descriptor.name, "kind": type(link.descriptor).__name__}
            if link.binding is not None:
                entry["binding"] = f"{link.binding.kind}:{link.binding.site}"
            out.append(entry)
        return out


def as_descriptor(item: Any) -> LayerDescriptor:
    """Classify a bare layer declaration.

    Classes become partial layers, objects with ``invoke`` become interceptors
    and any other callable becomes a transform.
    """
    if isinstance(item, (PartialType, TransformFunction, InterceptorHandler)):
        return item
    if inspect.isclass(item):
        return PartialType(item)
    if callable(getattr(item, "invoke", None)):
        return InterceptorHandler(item)
    if callable(item):
        return TransformFunction(item)
    raise InvalidLayerError(
        f"Cannot use {item!r} as a layer: expected a class, an interceptor or a callable",
        context={"layer": repr(item)},
    )


__all__ = [
    "ACCESSOR",
    "CONSTRUCTOR",
    "FIELD",
    "STRATEGIES",
    "ChainLink",
    "CompositionChain",
    "InjectionBinding",
    "InterceptorHandler",
    "LayerDescriptor",
    "PartialType",
    "TransformFunction",
    "as_descriptor",
]
