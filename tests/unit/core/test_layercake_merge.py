from __future__ import annotations

from layercake.core.utils.merge import deep_merge


def test_nested_mappings_merge_without_mutation() -> None:
    base = {"composition": {"verify_output": True, "cache_synthesized": True}}
    merged = deep_merge(base, {"composition": {"verify_output": False}})
    assert merged == {"composition": {"verify_output": False, "cache_synthesized": True}}
    assert base["composition"]["verify_output"] is True


def test_lists_replace_unless_prefixed_with_plus() -> None:
    base = {"strategies": ["constructor", "field"]}
    assert deep_merge(base, {"strategies": ["accessor"]}) == {"strategies": ["accessor"]}
    assert deep_merge(base, {"strategies": ["+", "accessor"]}) == {
        "strategies": ["constructor", "field", "accessor"]
    }
