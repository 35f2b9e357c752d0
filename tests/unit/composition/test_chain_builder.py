from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import MutableSequence

import pytest

from helpers.bags import (
    Bag,
    CountingStore,
    DoublingAdd,
    DoublingAppend,
    Exploding,
    FieldInjected,
    HalfBag,
    LabelledBag,
    ListBag,
    MemStore,
    OffsetSize,
    Orphan,
    PassEverything,
    Recording,
    Store,
    Swallowing,
)
from layercake import (
    IncompatibleOutputType,
    InstantiationFailure,
    NoInjectionPoint,
    PartialType,
    TransformFunction,
    build,
)
from layercake.core.composition import plan_chain
from layercake.core.config import CompositionConfig
from layercake.core.exceptions import InvalidLayerError


def test_example_doubling_and_offset_layers() -> None:
    base = ListBag()
    bag = build(base, Bag, [DoublingAdd, PartialType(OffsetSize, args=(100,))])
    bag.add(5)
    assert base.items() == [10]
    assert bag.size() == 101


def test_identity_chain_returns_base() -> None:
    base = ListBag([1, 2])
    assert build(base, Bag, []) is base


def test_contract_defaults_to_base_type() -> None:
    base = ListBag([4])
    bag = build(base, None, [FieldInjected])
    assert bag.size() == 10


def test_pass_through_matches_direct_calls() -> None:
    direct = ListBag([1, 2, 3])
    composed = build(ListBag([1, 2, 3]), Bag, [OffsetSize])
    for value in (1, 4, "z"):
        assert (value in composed) == (value in direct)
    assert composed.items() == direct.items()
    assert len(composed) == len(direct)
    assert composed.describe() == direct.describe()


def test_later_layers_run_first(call_log: list) -> None:
    base = ListBag()
    bag = build(
        base,
        Bag,
        [
            PartialType(Recording, args=(call_log, "first")),
            PartialType(Recording, args=(call_log, "second")),
        ],
    )
    bag.add("item")
    assert call_log == ["second", "first"]
    assert base.items() == ["item"]


def test_outer_layer_decides_whether_inner_runs(call_log: list) -> None:
    base = ListBag()
    bag = build(
        base,
        Bag,
        [
            PartialType(Recording, args=(call_log, "inner")),
            PartialType(Swallowing, args=(call_log,)),
        ],
    )
    bag.add(1)
    assert call_log == ["swallowed"]
    assert base.items() == []


def test_order_of_declaration_changes_behaviour() -> None:
    a = build(ListBag(), Bag, [DoublingAdd, FieldInjected])
    b = build(ListBag(), Bag, [FieldInjected, DoublingAdd])
    a.add(2)
    b.add(2)
    assert a.items() == b.items() == [4]
    assert a.size() == b.size() == 10


def test_transform_layer_receives_current_delegate() -> None:
    seen = []

    def wrap(inner: Bag) -> Bag:
        seen.append(inner)
        return ListBag(inner.items() + ["t"])

    base = ListBag([1])
    bag = build(base, Bag, [DoublingAdd, TransformFunction(wrap)])
    assert isinstance(seen[0], DoublingAdd)
    assert bag.items() == [1, "t"]


def test_mutable_sequence_contract_over_list() -> None:
    base: list = []
    seq = build(base, MutableSequence, [DoublingAppend])
    seq.append(5)
    seq.insert(0, 1)
    assert base == [1, 10]
    assert len(seq) == 2
    assert list(seq) == [1, 10]
    assert seq[1] == 10
    assert isinstance(seq, MutableSequence)


def test_missing_members_raise_incompatible_output_type() -> None:
    with pytest.raises(IncompatibleOutputType) as excinfo:
        build(HalfBag(), Bag, [DoublingAdd])
    assert excinfo.value.missing == ("__contains__", "__len__", "describe", "items")


def test_explicit_output_type_is_verified() -> None:
    with pytest.raises(IncompatibleOutputType) as excinfo:
        build(ListBag(), Bag, [DoublingAdd], output_type=LabelledBag)
    assert excinfo.value.missing == ("label",)


def test_output_check_can_be_disabled() -> None:
    config = CompositionConfig(verify_output=False)
    bag = build(HalfBag(), Bag, [DoublingAdd], config=config)
    bag.add(1)
    assert bag.size() == 1
    with pytest.raises(AttributeError):
        bag.items()


def test_failed_build_reports_layer_position() -> None:
    with pytest.raises(NoInjectionPoint) as excinfo:
        build(ListBag(), Bag, [DoublingAdd, Orphan])
    assert excinfo.value.context["layer_index"] == 1
    assert excinfo.value.context["layer"] == "Orphan"


def test_instantiation_failure_aborts_build() -> None:
    constructed = []

    def track(inner: Bag) -> Bag:
        constructed.append(inner)
        return inner

    with pytest.raises(InstantiationFailure) as excinfo:
        build(ListBag(), Bag, [TransformFunction(track), Exploding, TransformFunction(track)])
    assert excinfo.value.context["layer_index"] == 1
    assert len(constructed) == 1


def test_transform_errors_become_instantiation_failures() -> None:
    def broken(inner: Bag) -> Bag:
        raise LookupError("no")

    with pytest.raises(InstantiationFailure) as excinfo:
        build(ListBag(), Bag, [broken])
    assert isinstance(excinfo.value.cause, LookupError)


def test_invalid_layer_is_rejected() -> None:
    with pytest.raises(InvalidLayerError) as excinfo:
        build(ListBag(), Bag, [DoublingAdd, 42])
    assert excinfo.value.context["layer_index"] == 1


def test_plan_chain_resolves_without_constructing() -> None:
    chain = plan_chain(ListBag(), Bag, [Exploding, PassEverything(), FieldInjected])
    assert len(chain) == 3
    assert chain.output_type is Bag
    assert chain.describe() == [
        {"layer": "Exploding", "kind": "PartialType", "binding": "constructor:inner"},
        {"layer": "PassEverything", "kind": "InterceptorHandler"},
        {"layer": "FieldInjected", "kind": "PartialType", "binding": "field:inner"},
    ]


def test_separate_builds_do_not_share_layers() -> None:
    first = build(ListBag(), Bag, [DoublingAdd])
    second = build(ListBag(), Bag, [DoublingAdd])
    first.add(1)
    assert first.inner is not second.inner
    assert second.items() == []


def test_template_method_contract_with_protected_hook() -> None:
    base = MemStore()
    store = build(base, Store, [CountingStore, CountingStore])
    store.save("row")
    assert base.saved() == ["row"]
    assert store.writes == 1
    assert store.inner.writes == 1
    assert isinstance(store, Store)


def test_layers_declared_inside_a_function() -> None:
    class Named(ABC):
        @abstractmethod
        def name(self) -> str: ...

    class Fixed(Named):
        def name(self) -> str:
            return "ada"

    class Upper(Named):
        def __init__(self, inner: Named) -> None:
            self.inner = inner

        def name(self) -> str:
            return self.inner.name().upper()

    class Tagged(Named):
        inner: Named

        def name(self) -> str:
            return f"<{self.inner.name()}>"

    named = build(Fixed(), Named, [Upper, Tagged])
    assert named.name() == "<ADA>"
    assert plan_chain(Fixed(), Named, [Upper, Tagged]).describe()[1]["binding"] == "field:inner"
