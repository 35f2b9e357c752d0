"""Composition chain assembly.

``build(base, contract, descriptors)`` starts from ``base`` and applies the
descriptors in declaration order, innermost first. Layers declared later are
outer: when two layers implement the same member, the later one runs first and
decides whether to call inward.

Assembly is all-or-nothing. The first failing step aborts the build, no
partially assembled composite is returned, and nothing instantiated during a
failed build is reused.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple

from layercake.core.config import CompositionConfig, get_config
from layercake.core.exceptions import (
    CompositionError,
    IncompatibleOutputType,
    InstantiationFailure,
    InvalidLayerError,
)

from .contract import contract_members, type_name
from .descriptors import (
    ChainLink,
    CompositionChain,
    InterceptorHandler,
    LayerDescriptor,
    PartialType,
    TransformFunction,
    as_descriptor,
)
from .injection import resolve_injection
from .instantiate import instantiate
from .interceptor import intercept
from .passthrough import synthesize_layer_class, unresolved_members

logger = logging.getLogger(__name__)


def _normalize(descriptors: Sequence[Any]) -> Tuple[LayerDescriptor, ...]:
    out = []
    for index, item in enumerate(descriptors):
        try:
            out.append(as_descriptor(item))
        except InvalidLayerError as exc:
            exc.add_context(layer_index=index)
            raise
    return tuple(out)


def plan_chain(
    base: Any,
    contract: Optional[type],
    descriptors: Sequence[Any],
    *,
    output_type: Optional[type] = None,
    config: Optional[CompositionConfig] = None,
) -> CompositionChain:
    """Resolve every injection point without constructing any layer."""
    config = config or get_config()
    contract = contract or type(base)
    links: List[ChainLink] = []
    for index, descriptor in enumerate(_normalize(descriptors)):
        binding = None
        if isinstance(descriptor, PartialType):
            try:
                binding = resolve_injection(
                    descriptor,
                    contract,
                    contract=contract,
                    strategies=config.injection_strategies,
                    marked_fields_first=config.marked_fields_first,
                    use_cache=config.cache_synthesized,
                )
            except CompositionError as exc:
                exc.add_context(layer_index=index, layer=descriptor.name)
                raise
        links.append(ChainLink(descriptor=descriptor, delegate_type=contract, binding=binding))
    return CompositionChain(
        base=base,
        contract=contract,
        output_type=output_type or contract,
        links=tuple(links),
    )


def _apply(link: ChainLink, current: Any, chain: CompositionChain, config: CompositionConfig) -> Any:
    descriptor = link.descriptor
    if isinstance(descriptor, TransformFunction):
        try:
            return descriptor.fn(current)
        except Exception as exc:
            raise InstantiationFailure(
                f"Transform {descriptor.name} failed: {exc}", cause=exc
            ) from exc
    if isinstance(descriptor, InterceptorHandler):
        return intercept(current, descriptor, chain.contract, use_cache=config.cache_synthesized)
    if isinstance(descriptor, PartialType):
        layer_cls = synthesize_layer_class(
            descriptor.cls,
            chain.contract,
            link.binding,
            use_cache=config.cache_synthesized,
        )
        return instantiate(layer_cls, link.binding, descriptor, current)
    raise InvalidLayerError(f"Unsupported layer descriptor {descriptor!r}")


def verify_output(composite: Any, output_type: type) -> None:
    """Raise :class:`IncompatibleOutputType` unless ``composite`` serves ``output_type``."""
    missing = unresolved_members(composite, contract_members(output_type))
    if missing:
        raise IncompatibleOutputType(
            f"Composite does not satisfy {type_name(output_type)}: missing {missing}",
            missing=missing,
            context={"output_type": type_name(output_type)},
        )


def assemble(chain: CompositionChain, *, config: Optional[CompositionConfig] = None) -> Any:
    """Instantiate a planned chain and return the outermost object."""
    config = config or get_config()
    current = chain.base
    for index, link in enumerate(chain.links):
        try:
            current = _apply(link, current, chain, config)
        except CompositionError as exc:
            exc.add_context(layer_index=index, layer=link.descriptor.name)
            logger.debug("Composition aborted at layer %d (%s): %s", index, link.descriptor.name, exc)
            raise
        logger.debug("Applied layer %d: %s", index, link.descriptor.name)

    if config.verify_output:
        verify_output(current, chain.output_type)
    return current


def build(
    base: Any,
    contract: Optional[type],
    descriptors: Sequence[Any] = (),
    *,
    output_type: Optional[type] = None,
    config: Optional[CompositionConfig] = None,
) -> Any:
    """Compose ``descriptors`` around ``base`` and return the composite.

    Args:
        base: Innermost object; it receives every call no layer intercepts.
        contract: Interface the layers implement; defaults to ``type(base)``.
        descriptors: Layers, innermost first. Bare classes, interceptors and
            callables are accepted and classified with ``as_descriptor``.
        output_type: Type the composite must satisfy; defaults to ``contract``.
        config: Overrides the process-wide configuration.
    """
    config = config or get_config()
    chain = plan_chain(base, contract, descriptors, output_type=output_type, config=config)
    logger.debug(
        "Building %s with %d layer(s) over %s",
        type_name(chain.output_type),
        len(chain),
        type(base).__qualname__,
    )
    return assemble(chain, config=config)


__all__ = ["assemble", "build", "plan_chain", "verify_output"]
