from __future__ import annotations

import pytest

from helpers.bags import (
    Bag,
    DoublingAdd,
    KeywordOnlyOffset,
    LabelledBag,
    ListBag,
    OffsetSize,
    PassEverything,
    Recording,
)
from layercake import IncompatibleOutputType, compose
from layercake.core.exceptions import BuilderFrozenError, ConstructorArityMismatch


def test_fluent_example_scenario() -> None:
    base = ListBag()
    bag = compose(base, Bag).layer(DoublingAdd).layer(OffsetSize, 100).build()
    bag.add(5)
    assert base.items() == [10]
    assert bag.size() == 101


def test_keyword_extras_reach_the_constructor() -> None:
    bag = compose(ListBag([1]), Bag).layer(KeywordOnlyOffset, offset=9).build()
    assert bag.size() == 10


def test_arg_types_are_checked() -> None:
    composer = compose(ListBag(), Bag).layer(OffsetSize, 3, arg_types=[str])
    with pytest.raises(ConstructorArityMismatch):
        composer.build()


def test_then_classifies_layers() -> None:
    handler = PassEverything()
    composer = (
        compose(ListBag(), Bag)
        .then(DoublingAdd)
        .then(handler)
        .then(lambda inner: inner)
    )
    kinds = [type(d).__name__ for d in composer.descriptors]
    assert kinds == ["PartialType", "InterceptorHandler", "TransformFunction"]
    composer.build().add(1)
    assert handler.calls == ["add"]


def test_build_is_one_shot(call_log: list) -> None:
    composer = compose(ListBag(), Bag).layer(Recording, call_log, "only")
    first = composer.build()
    assert composer.frozen
    assert composer.build() is first
    with pytest.raises(BuilderFrozenError):
        composer.layer(DoublingAdd)
    with pytest.raises(BuilderFrozenError):
        composer.intercept(PassEverything())
    with pytest.raises(BuilderFrozenError):
        composer.as_type(LabelledBag)


def test_failed_build_leaves_composer_unfrozen() -> None:
    composer = compose(ListBag(), Bag).layer(DoublingAdd).as_type(LabelledBag)
    with pytest.raises(IncompatibleOutputType):
        composer.build()
    assert not composer.frozen


def test_chain_preview_does_not_freeze() -> None:
    composer = compose(ListBag(), Bag).layer(DoublingAdd).transform(lambda inner: inner)
    chain = composer.chain()
    assert [link.binding.site if link.binding else None for link in chain.links] == ["inner", None]
    assert not composer.frozen
    composer.layer(OffsetSize)
    assert composer.build().size() == 100
