"""Sprig configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (SPRIG_EMBEDDING_MODEL, SPRIG_SEMANTIC_SEARCH)
  3. Per-project sprig.yaml  (project root)
  4. Global ~/.sprig/config.yaml  (defaults only, no API keys)
  5. Hardcoded defaults

The embedding credential is never read from a config file; it comes from the
VOYAGE_API_KEY environment variable. All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".sprig"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "sprig.yaml"

# Key names that look like credentials, forbidden in global config.
# Does NOT match legitimate keys like max_search_tokens_default.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["semantic_search", "scheduler"])

_TRUE = frozenset(["1", "true", "yes", "on"])
_FALSE = frozenset(["0", "false", "no", "off"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class SemanticSearchCfg:
    """Semantic search settings (sprig.yaml: semantic_search:)."""

    enabled: bool = True
    embedding_model: str = "voyage-3"
    auto_index: bool = True
    max_results_default: int = 5
    max_search_tokens_default: int = 15_000


@dataclass
class SchedulerCfg:
    """Background re-index timing in seconds (sprig.yaml: scheduler:)."""

    tick_interval: float = 10.0
    quiet_period: float = 120.0


@dataclass
class SprigConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    semantic_search: SemanticSearchCfg = field(default_factory=SemanticSearchCfg)
    scheduler: SchedulerCfg = field(default_factory=SchedulerCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export VOYAGE_API_KEY=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' was ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return data


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"'{key}' must be true or false, got '{value}'")


def _parse_positive(value: Any, key: str, cast: type = int) -> Any:
    try:
        number = cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be a number, got '{value}'") from exc
    if number <= 0:
        raise ConfigError(f"'{key}' must be positive, got {number}")
    return number


def _parse_non_negative(value: Any, key: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be a number, got '{value}'") from exc
    if number < 0:
        raise ConfigError(f"'{key}' must not be negative, got {number}")
    return number


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> SprigConfig:
    """Build a *SprigConfig* from a merged raw YAML dict."""
    cfg = SprigConfig()

    if isinstance(data.get("semantic_search"), dict):
        s = data["semantic_search"]
        d = cfg.semantic_search
        cfg.semantic_search = SemanticSearchCfg(
            enabled=_parse_bool(s.get("enabled", d.enabled), "semantic_search.enabled"),
            embedding_model=str(s.get("embedding_model", d.embedding_model)),
            auto_index=_parse_bool(
                s.get("auto_index", d.auto_index), "semantic_search.auto_index"
            ),
            max_results_default=_parse_positive(
                s.get("max_results_default", d.max_results_default),
                "semantic_search.max_results_default",
            ),
            max_search_tokens_default=_parse_positive(
                s.get("max_search_tokens_default", d.max_search_tokens_default),
                "semantic_search.max_search_tokens_default",
            ),
        )

    if isinstance(data.get("scheduler"), dict):
        sc = data["scheduler"]
        cfg.scheduler = SchedulerCfg(
            tick_interval=_parse_positive(
                sc.get("tick_interval", cfg.scheduler.tick_interval),
                "scheduler.tick_interval",
                float,
            ),
            quiet_period=_parse_non_negative(
                sc.get("quiet_period", cfg.scheduler.quiet_period), "scheduler.quiet_period"
            ),
        )

    return cfg


def _apply_env_overrides(cfg: SprigConfig) -> SprigConfig:
    """Apply SPRIG_* environment variable overrides (layer 2)."""
    if model := os.environ.get("SPRIG_EMBEDDING_MODEL"):
        cfg.semantic_search.embedding_model = model
    if enabled := os.environ.get("SPRIG_SEMANTIC_SEARCH"):
        cfg.semantic_search.enabled = _parse_bool(enabled, "SPRIG_SEMANTIC_SEARCH")
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> SprigConfig:
    """Load and return a merged *SprigConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *sprig.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a file is not a YAML mapping, holds an invalid value,
            or the global config contains API-key-like fields.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = Path(project_dir) if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    return _apply_env_overrides(cfg)
