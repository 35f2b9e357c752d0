"""Fluent declaration surface.

Usage:
    bag = (
        compose([], Bag)
        .layer(DoublingAdd)
        .layer(OffsetSize, 100)
        .intercept(AuditTrail(log))
        .build()
    )
"""
from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence

from layercake.core.config import CompositionConfig
from layercake.core.exceptions import BuilderFrozenError

from .chain import assemble, plan_chain
from .descriptors import (
    CompositionChain,
    InterceptorHandler,
    LayerDescriptor,
    PartialType,
    TransformFunction,
    as_descriptor,
)

_UNBUILT = object()


class Composer:
    """Collects layer declarations and builds the composite exactly once."""

    def __init__(
        self,
        base: Any,
        contract: Optional[type] = None,
        *,
        config: Optional[CompositionConfig] = None,
    ) -> None:
        self._base = base
        self._contract = contract
        self._config = config
        self._output_type: Optional[type] = None
        self._descriptors: List[LayerDescriptor] = []
        self._result: Any = _UNBUILT

    @property
    def frozen(self) -> bool:
        return self._result is not _UNBUILT

    @property
    def descriptors(self) -> Sequence[LayerDescriptor]:
        return tuple(self._descriptors)

    def _add(self, descriptor: LayerDescriptor) -> "Composer":
        if self.frozen:
            raise BuilderFrozenError(
                "Composer already built its composite; start a new compose() to add layers",
                context={"layer": descriptor.name},
            )
        self._descriptors.append(descriptor)
        return self

    def layer(
        self,
        cls: type,
        *args: Any,
        arg_types: Optional[Sequence[type]] = None,
        **kwargs: Any,
    ) -> "Composer":
        """Add a partial layer; extra arguments go to its constructor."""
        return self._add(
            PartialType(
                cls,
                args=args,
                kwargs=kwargs,
                arg_types=tuple(arg_types) if arg_types is not None else None,
            )
        )

    def transform(self, fn: Callable[[Any], Any]) -> "Composer":
        return self._add(TransformFunction(fn))

    def intercept(self, handler: Any) -> "Composer":
        return self._add(InterceptorHandler(handler))

    def then(self, item: Any) -> "Composer":
        """Add a layer, classifying it by shape (class, interceptor, callable)."""
        return self._add(as_descriptor(item))

    def as_type(self, output_type: type) -> "Composer":
        if self.frozen:
            raise BuilderFrozenError("Composer already built its composite; output type is fixed")
        self._output_type = output_type
        return self

    def chain(self) -> CompositionChain:
        """Resolve the declared chain without constructing any layer."""
        return plan_chain(
            self._base,
            self._contract,
            self._descriptors,
            output_type=self._output_type,
            config=self._config,
        )

    def build(self) -> Any:
        """Assemble the composite; later calls return the same object."""
        if self.frozen:
            return self._result
        self._result = assemble(self.chain(), config=self._config)
        return self._result


def compose(base: Any, contract: Optional[type] = None, *, config: Optional[CompositionConfig] = None) -> Composer:
    """Start declaring a chain around ``base``."""
    return Composer(base, contract, config=config)


__all__ = ["Composer", "compose"]
