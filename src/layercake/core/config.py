"""
layercake configuration management (YAML + environment overrides).
"""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import jsonschema
from jsonschema import Draft202012Validator

from layercake.core.exceptions import ConfigError
from layercake.core.utils.merge import deep_merge
from layercake.core.utils.yaml import read_yaml
from layercake.data import get_data_path, read_yaml as read_data_yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "LAYERCAKE_"
# Keys whose schema type is an array; a single scalar override becomes a one-item list.
LIST_KEYS: Tuple[Tuple[str, str], ...] = (("injection", "strategies"),)
CONFIG_PATH_ENV = "LAYERCAKE_CONFIG"


class ConfigManager:
    """Load, merge, and validate layercake configuration.

    Configuration sources (highest to lowest priority):
    1. Environment variables: LAYERCAKE_<SECTION>__<KEY>
    2. Project file: ``config_path`` argument, else ``$LAYERCAKE_CONFIG``
    3. Bundled defaults: layercake.data/config/defaults.yaml
    """

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self.core_config_path = get_data_path("config", "defaults.yaml")
        if config_path is None:
            env_path = os.environ.get(CONFIG_PATH_ENV)
            config_path = Path(env_path) if env_path else None
        self.config_path = Path(config_path) if config_path is not None else None

    def load_yaml(self, path: Path) -> Dict[str, Any]:
        # Fail closed: configuration must never silently ignore invalid YAML.
        try:
            data = read_yaml(path, default={}, raise_on_error=True)
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}", context={"path": str(path)}) from exc
        if not isinstance(data, dict):
            raise ConfigError(
                f"Config file {path} must contain a mapping", context={"path": str(path)}
            )
        return data

    # ---- environment overrides ----

    def _coerce_type(self, value: str) -> Any:
        s = value.strip()
        low = s.lower()
        if low in {"true", "false"}:
            return low == "true"
        if re.fullmatch(r"[-+]?\d+", s):
            return int(s)
        if re.fullmatch(r"[-+]?\d*\.\d+", s):
            return float(s)
        if (s.startswith("[") and s.endswith("]")) or (s.startswith("{") and s.endswith("}")):
            try:
                return json.loads(s)
            except ValueError:
                return s
        if "," in s:
            return [part.strip() for part in s.split(",") if part.strip()]
        return s

    def _iter_env_overrides(self) -> Iterator[Tuple[List[str], Any]]:
        for key in sorted(os.environ.keys()):
            if not key.startswith(ENV_PREFIX) or key == CONFIG_PATH_ENV:
                continue
            raw = key[len(ENV_PREFIX):]
            segs = [s.lower() for s in raw.split("__")]
            if len(segs) < 2 or any(not s for s in segs):
                raise ConfigError(
                    f"Malformed {ENV_PREFIX}* key '{key}': expected {ENV_PREFIX}<SECTION>__<KEY>",
                    context={"key": key},
                )
            yield segs, self._coerce_type(os.environ[key])

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> Dict[str, Any]:
        for path, value in self._iter_env_overrides():
            override: Dict[str, Any] = {path[-1]: value}
            for seg in reversed(path[:-1]):
                override = {seg: override}
            logger.debug("Config override from environment: %s=%r", ".".join(path), value)
            cfg = deep_merge(cfg, override)
        return cfg

    def normalize(self, cfg: Dict[str, Any]) -> Dict[str, Any]:
        """Shape scalar overrides the way the schema expects them."""
        fixes: Dict[str, Any] = {}
        for section, key in LIST_KEYS:
            block = cfg.get(section)
            if isinstance(block, dict) and isinstance(block.get(key), str):
                fixes[section] = {key: [block[key]]}
        logging_cfg = cfg.get("logging")
        level = logging_cfg.get("level") if isinstance(logging_cfg, dict) else None
        if isinstance(level, str):
            fixes["logging"] = {"level": level.upper()}
        return deep_merge(cfg, fixes) if fixes else cfg

    # ---- validation ----

    def validate_schema(self, cfg: Mapping[str, Any]) -> None:
        schema = read_data_yaml("schemas", "config.schema.yaml")
        validator = Draft202012Validator(schema)
        errors = sorted(validator.iter_errors(cfg), key=lambda e: list(e.path))
        if errors:
            first: jsonschema.ValidationError = errors[0]
            where = ".".join(str(p) for p in first.path) or "<root>"
            raise ConfigError(
                f"Invalid configuration at {where}: {first.message}",
                context={"path": where, "errors": [e.message for e in errors]},
            )

    def load_config(self, *, validate: bool = True) -> Dict[str, Any]:
        cfg = self.load_yaml(self.core_config_path)
        if self.config_path is not None:
            cfg = deep_merge(cfg, self.load_yaml(self.config_path))
        cfg = self.normalize(self.apply_env_overrides(cfg))
        if validate:
            self.validate_schema(cfg)
        return cfg


@dataclass(frozen=True)
class CompositionConfig:
    """Typed view over the merged configuration."""

    verify_output: bool = True
    cache_synthesized: bool = True
    injection_strategies: Tuple[str, ...] = ("constructor", "field", "accessor")
    marked_fields_first: bool = True
    log_level: str = "WARNING"

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> "CompositionConfig":
        composition = cfg.get("composition") or {}
        injection = cfg.get("injection") or {}
        logging_cfg = cfg.get("logging") or {}
        return cls(
            verify_output=bool(composition.get("verify_output", True)),
            cache_synthesized=bool(composition.get("cache_synthesized", True)),
            injection_strategies=tuple(
                injection.get("strategies") or ("constructor", "field", "accessor")
            ),
            marked_fields_first=bool(injection.get("marked_fields_first", True)),
            log_level=str(logging_cfg.get("level", "WARNING")),
        )

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "CompositionConfig":
        return cls.from_mapping(ConfigManager(config_path).load_config())


_CACHED: Optional[CompositionConfig] = None


def get_config() -> CompositionConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _CACHED
    if _CACHED is None:
        _CACHED = CompositionConfig.load()
    return _CACHED


def reset_config_cache() -> None:
    """Forget the cached configuration (tests and long-lived processes)."""
    global _CACHED
    _CACHED = None


__all__ = [
    "ConfigManager",
    "CompositionConfig",
    "get_config",
    "reset_config_cache",
]
