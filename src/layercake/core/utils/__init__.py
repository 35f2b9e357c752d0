"""Utility helpers for layercake core."""
from __future__ import annotations

from .merge import deep_merge, merge_arrays
from .yaml import read_yaml

__all__ = ["deep_merge", "merge_arrays", "read_yaml"]
