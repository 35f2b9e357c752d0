"""
layercake - stack partial implementations into one object at runtime.

Each layer implements only the members it cares about; everything else is
forwarded to the layer underneath.
"""

import logging

from layercake.core.composition import (
    ForwardingInterceptor,
    Inject,
    Interceptor,
    PartialType,
    TransformFunction,
    InterceptorHandler,
    build,
    compose,
)
from layercake.core.exceptions import (
    AmbiguousInjectionPoint,
    CompositionError,
    ConstructorArityMismatch,
    IncompatibleOutputType,
    InjectionError,
    InstantiationFailure,
    LayercakeError,
    NoInjectionPoint,
    UnhandledMember,
)

__version__ = "1.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "AmbiguousInjectionPoint",
    "CompositionError",
    "ConstructorArityMismatch",
    "ForwardingInterceptor",
    "IncompatibleOutputType",
    "Inject",
    "InjectionError",
    "InstantiationFailure",
    "Interceptor",
    "InterceptorHandler",
    "LayercakeError",
    "NoInjectionPoint",
    "PartialType",
    "TransformFunction",
    "UnhandledMember",
    "build",
    "compose",
]
