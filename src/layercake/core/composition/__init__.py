"""Runtime composition of partial layers into a single contract-satisfying object.

Public surface:
- ``compose(base, Contract).layer(...).build()``: fluent declaration
- ``build(base, Contract, [layers])``: one-shot assembly
- ``Inject``: ``Annotated`` marker for the delegate field
- ``Interceptor`` / ``ForwardingInterceptor``: handler base classes
"""
from __future__ import annotations

from .builder import Composer, compose
from .chain import assemble, build, plan_chain, verify_output
from .contract import contract_members, implemented_members, is_assignable, satisfies
from .descriptors import (
    ChainLink,
    CompositionChain,
    InjectionBinding,
    InterceptorHandler,
    PartialType,
    TransformFunction,
    as_descriptor,
)
from .injection import Inject, clear_injection_cache, resolve_injection
from .instantiate import instantiate
from .interceptor import ForwardingInterceptor, Interceptor, clear_proxy_cache, intercept
from .passthrough import clear_synthesis_cache, synthesize_layer_class, unresolved_members


def clear_caches() -> None:
    """Drop memoized bindings and synthesized classes."""
    clear_injection_cache()
    clear_synthesis_cache()
    clear_proxy_cache()


__all__ = [
    "ChainLink",
    "Composer",
    "CompositionChain",
    "ForwardingInterceptor",
    "Inject",
    "InjectionBinding",
    "Interceptor",
    "InterceptorHandler",
    "PartialType",
    "TransformFunction",
    "as_descriptor",
    "assemble",
    "build",
    "clear_caches",
    "compose",
    "contract_members",
    "implemented_members",
    "instantiate",
    "intercept",
    "is_assignable",
    "plan_chain",
    "resolve_injection",
    "satisfies",
    "synthesize_layer_class",
    "unresolved_members",
    "verify_output",
]
