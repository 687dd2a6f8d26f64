"""
Utility: load_config
~~~~~~~~~~~~~~~~~~~~
Parse the engine thresholds from YAML into an :class:`EngineConfig`.

 - Keys may live under a top-level ``grouping_eval:`` section or at the top level
 - Unknown keys are an error in strict mode, a warning otherwise
 - Values are type- and range-checked; missing keys keep their defaults
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .types import GroupingConfigError

logger = logging.getLogger(__name__)

SECTION = "grouping_eval"


@dataclass(frozen=True)
class EngineConfig:
    # label alignment
    merge_share: float = 0.6
    split_top_share: float = 0.7
    split_second_share: float = 0.3
    # information-theoretic floor applied before every log
    probability_floor: float = 1e-12
    # calibrator
    max_iterations: int = 10
    kmeans_max_iterations: int = 10
    min_split_size: int = 4
    selection_lambda: float = 0.15
    # report thresholds
    ambiguity_margin: float = 1.2
    low_silhouette: float = 0.2
    merge_signal_gap: float = 0.1
    # rows per block when filling the distance matrix
    distance_block_rows: int = 256

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_SHARES = {"merge_share", "split_top_share", "split_second_share"}
_POSITIVE_INTS = {"max_iterations", "kmeans_max_iterations", "distance_block_rows"}


def _coerce(name: str, value: Any, default: Any) -> Any:
    if isinstance(value, bool):
        raise GroupingConfigError(f"{name}: expected a number, got {value!r}")
    try:
        num = float(value)
    except (TypeError, ValueError) as exc:
        raise GroupingConfigError(f"{name}: expected a number, got {value!r}") from exc
    if isinstance(default, int):
        # YAML reads 1e3 as a string; accept any whole number
        if not num.is_integer():
            raise GroupingConfigError(f"{name}: expected an integer, got {value!r}")
        return int(num)
    return num


def _validate(cfg: EngineConfig) -> None:
    for name in _SHARES:
        val = getattr(cfg, name)
        if not 0.0 < val <= 1.0:
            raise GroupingConfigError(f"{name} must be in (0, 1], got {val}")
    for name in _POSITIVE_INTS:
        if getattr(cfg, name) < 1:
            raise GroupingConfigError(f"{name} must be >= 1")
    if cfg.min_split_size < 2:
        raise GroupingConfigError("min_split_size must be >= 2")
    if not 0.0 < cfg.probability_floor < 1.0:
        raise GroupingConfigError("probability_floor must be in (0, 1)")
    if cfg.selection_lambda < 0 or cfg.merge_signal_gap < 0:
        raise GroupingConfigError("selection_lambda and merge_signal_gap must be >= 0")
    if cfg.ambiguity_margin < 1.0:
        raise GroupingConfigError("ambiguity_margin must be >= 1.0")


def config_from_mapping(data: dict[str, Any] | None, *, strict: bool = True) -> EngineConfig:
    """Build an :class:`EngineConfig` from a plain mapping."""

    data = dict(data or {})
    if SECTION in data and isinstance(data[SECTION], dict):
        data = dict(data[SECTION])
    defaults = EngineConfig()
    known = {f.name: getattr(defaults, f.name) for f in fields(EngineConfig)}
    updates: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            msg = f"unknown config key {key!r}"
            if strict:
                raise GroupingConfigError(msg)
            logger.warning("%s (strict=False -> ignored)", msg)
            continue
        updates[key] = _coerce(key, value, known[key])
    cfg = replace(defaults, **updates)
    _validate(cfg)
    return cfg


def load_config(path: str | Path | None, *, strict: bool = True) -> EngineConfig:
    """
    Load a YAML config file and return the validated settings.

    Parameters
    ----------
    path : str | Path | None
        YAML file; ``None`` returns the defaults.
    strict : bool
        True  -> unknown keys raise :class:`GroupingConfigError`
        False -> unknown keys are logged and skipped
    """
    if path is None:
        return EngineConfig()
    path = Path(path).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open(encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise GroupingConfigError(f"{path.name}: expected a mapping at the top level")
    cfg = config_from_mapping(data, strict=strict)
    logger.debug("loaded config from %s: %s", path, cfg)
    return cfg


DEFAULT_CONFIG = EngineConfig()

__all__ = ["DEFAULT_CONFIG", "EngineConfig", "config_from_mapping", "load_config"]
