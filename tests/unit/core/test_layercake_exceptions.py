from __future__ import annotations

import json

import pytest

from helpers.bags import Bag, EitherSide, ListBag
from layercake import (
    AmbiguousInjectionPoint,
    CompositionError,
    IncompatibleOutputType,
    InjectionError,
    InstantiationFailure,
    LayercakeError,
    UnhandledMember,
    build,
)
from layercake.core.exceptions import BuilderFrozenError, ConfigError, InvalidLayerError


def test_context_is_copied() -> None:
    ctx = {"layer": "A"}
    err = LayercakeError("boom", context=ctx)
    ctx["layer"] = "B"
    assert err.context == {"layer": "A"}


def test_add_context_keeps_existing_keys() -> None:
    err = CompositionError("boom", context={"layer_index": 0})
    err.add_context(layer_index=3, layer="X")
    assert err.context == {"layer_index": 0, "layer": "X"}


def test_to_json_error_is_serializable() -> None:
    err = IncompatibleOutputType("missing", missing=["b", "a"], context={"output_type": Bag})
    payload = err.to_json_error()
    assert payload["code"] == "IncompatibleOutputType"
    assert payload["context"] == {"output_type": "Bag", "missing": ["a", "b"]}
    json.dumps(payload)


def test_instantiation_failure_records_cause() -> None:
    cause = RuntimeError("nope")
    err = InstantiationFailure("failed", cause=cause)
    assert err.cause is cause
    assert err.context["cause"] == "RuntimeError: nope"


@pytest.mark.parametrize(
    "exc, builtin",
    [
        (InjectionError("x"), TypeError),
        (IncompatibleOutputType("x"), TypeError),
        (InvalidLayerError("x"), TypeError),
        (BuilderFrozenError("x"), RuntimeError),
        (ConfigError("x"), ValueError),
        (UnhandledMember("size"), AttributeError),
    ],
)
def test_errors_are_also_builtin_errors(exc: LayercakeError, builtin: type) -> None:
    assert isinstance(exc, builtin)
    assert isinstance(exc, LayercakeError)


def test_ambiguity_lists_candidates() -> None:
    with pytest.raises(AmbiguousInjectionPoint) as excinfo:
        build(ListBag(), Bag, [EitherSide])
    assert set(excinfo.value.candidates) == {"left", "right"}
    assert excinfo.value.context["layer_index"] == 0


def test_package_exports_every_error_class() -> None:
    import layercake
    from layercake.core import exceptions

    for name in layercake.__all__:
        assert hasattr(layercake, name), name
    assert layercake.InjectionError is exceptions.InjectionError
    assert {"InjectionError", "InstantiationFailure", "UnhandledMember"} <= set(layercake.__all__)
