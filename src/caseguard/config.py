"""Configuration loading for the coordination core."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any

from caseguard.domain.exceptions import ConfigurationError

CONFIG_FILE = "caseguard.json"
ENV_PREFIX = "CASEGUARD_"


@dataclass(frozen=True)
class CoordinationConfig:
    """Timeouts and limits shared by every worker on a case.

    All durations are in seconds.
    """

    lock_timeout: float = 5.0
    lock_retry_interval: float = 0.05
    lock_stale_after: float = 30.0
    allocation_stale_after: float = 3600.0
    claim_stale_after: float = 1800.0
    default_max_depth: int = 3
    batch_size: int = 4

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0 or (f.name in ("lock_retry_interval", "batch_size") and value == 0):
                raise ConfigurationError(f"{f.name} must be positive, got {value}")

    @property
    def allocation_staleness(self) -> timedelta:
        return timedelta(seconds=self.allocation_stale_after)

    @property
    def claim_staleness(self) -> timedelta:
        return timedelta(seconds=self.claim_stale_after)


def _coerce(name: str, kind: type, value: Any) -> Any:
    """Convert a JSON or environment value to the field's type.

    Raises:
        ConfigurationError: If the value cannot be converted
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"{name}: expected a number, got {value!r}")
    try:
        if kind is int:
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return int(value)
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name}: expected a number, got {value!r}") from e


def _field_types() -> dict[str, type]:
    defaults = CoordinationConfig()
    return {f.name: type(getattr(defaults, f.name)) for f in fields(CoordinationConfig)}


def _apply(
    config: CoordinationConfig, values: Mapping[str, Any], origin: str
) -> CoordinationConfig:
    types = _field_types()
    unknown = [key for key in values if key not in types]
    if unknown:
        raise ConfigurationError(f"{origin}: unknown setting(s): {', '.join(unknown)}")
    changes = {key: _coerce(key, types[key], value) for key, value in values.items()}
    return replace(config, **changes)


def load_config(
    case_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> CoordinationConfig:
    """
    Load coordination settings.

    Layers, later ones winning: defaults, ``<case_dir>/caseguard.json``,
    ``CASEGUARD_<FIELD>`` environment variables.

    Args:
        case_dir: Case directory to look for caseguard.json in
        environ: Environment mapping (defaults to os.environ)

    Returns:
        CoordinationConfig

    Raises:
        ConfigurationError: If the file or a value is invalid
    """
    config = CoordinationConfig()

    if case_dir is not None:
        path = Path(case_dir) / CONFIG_FILE
        if path.exists():
            try:
                with open(path) as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigurationError(
                    f"Expected dict in {path}, got {type(data).__name__}"
                )
            config = _apply(config, data, str(path))

    environ = os.environ if environ is None else environ
    overrides = {
        f.name: environ[ENV_PREFIX + f.name.upper()]
        for f in fields(CoordinationConfig)
        if ENV_PREFIX + f.name.upper() in environ
    }
    if overrides:
        config = _apply(config, overrides, "environment")

    return config
