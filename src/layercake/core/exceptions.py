from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence


class LayercakeError(Exception):
    """Base exception for layercake."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def add_context(self, **values: Any) -> None:
        """Merge extra context without overwriting keys that are already set."""
        for key, value in values.items():
            self.context.setdefault(key, value)

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": {k: _jsonable(v) for k, v in self.context.items()},
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, type):
        return value.__qualname__
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return repr(value)


class ConfigError(LayercakeError, ValueError):
    """Raised when configuration is malformed or fails schema validation."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        LayercakeError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class CompositionError(LayercakeError):
    """Raised when a composition chain cannot be assembled."""


class InjectionError(CompositionError, TypeError):
    """Structural mismatch between a partial layer and its delegate type."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        CompositionError.__init__(self, message, context=context)
        TypeError.__init__(self, message)


class NoInjectionPoint(InjectionError):
    """No constructor parameter, field or accessor can receive the delegate."""


class AmbiguousInjectionPoint(InjectionError):
    """More than one site in the same category qualifies for the delegate."""

    def __init__(
        self,
        message: str = "",
        *,
        candidates: Sequence[str] = (),
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        ctx.setdefault("candidates", list(candidates))
        super().__init__(message, context=ctx)
        self.candidates = tuple(candidates)


class ConstructorArityMismatch(InjectionError):
    """Extra constructor arguments do not line up with the layer's __init__."""


class InstantiationFailure(CompositionError):
    """Constructing a layer raised; the original exception is kept as ``cause``."""

    def __init__(
        self,
        message: str = "",
        *,
        cause: Optional[BaseException] = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if cause is not None:
            ctx.setdefault("cause", f"{type(cause).__name__}: {cause}")
        super().__init__(message, context=ctx)
        self.cause = cause


class IncompatibleOutputType(CompositionError, TypeError):
    """The composed object does not structurally satisfy the output type."""

    def __init__(
        self,
        message: str = "",
        *,
        missing: Sequence[str] = (),
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        ctx.setdefault("missing", sorted(missing))
        CompositionError.__init__(self, message, context=ctx)
        TypeError.__init__(self, message)
        self.missing = tuple(sorted(missing))


class InvalidLayerError(CompositionError, TypeError):
    """A declared layer is not a partial type, transform or interceptor."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        CompositionError.__init__(self, message, context=context)
        TypeError.__init__(self, message)


class BuilderFrozenError(CompositionError, RuntimeError):
    """Raised when a builder is modified after it produced its composite."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        CompositionError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class UnhandledMember(LayercakeError, AttributeError):
    """An interceptor neither implemented nor forwarded a contract member."""

    def __init__(self, member: str, *, context: Mapping[str, Any] | None = None) -> None:
        ctx = dict(context or {})
        ctx.setdefault("member", member)
        message = f"Interceptor did not handle or forward member '{member}'"
        LayercakeError.__init__(self, message, context=ctx)
        AttributeError.__init__(self, message)
        self.member = member


__all__ = [
    "LayercakeError",
    "ConfigError",
    "CompositionError",
    "InjectionError",
    "NoInjectionPoint",
    "AmbiguousInjectionPoint",
    "ConstructorArityMismatch",
    "InstantiationFailure",
    "IncompatibleOutputType",
    "InvalidLayerError",
    "BuilderFrozenError",
    "UnhandledMember",
]
