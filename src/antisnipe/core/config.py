"""
Antisnipe Hook Configuration

The hook is configured once at construction and is immutable afterwards.
Values come from explicit arguments, a mapping, a YAML file or environment
variables:

- ANTISNIPE_LOCK_DURATION_EPOCHS: minimum epochs a position must be held (>= 0)
- ANTISNIPE_SAME_EPOCH_CAPACITY: positions that may open in one epoch (>= 1)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .constants import DEFAULT_LOCK_DURATION_EPOCHS, DEFAULT_SAME_EPOCH_POSITION_CAPACITY

logger = logging.getLogger(__name__)

ENV_LOCK_DURATION = "ANTISNIPE_LOCK_DURATION_EPOCHS"
ENV_SAME_EPOCH_CAPACITY = "ANTISNIPE_SAME_EPOCH_CAPACITY"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


@dataclass(frozen=True)
class HookConfig:
    """Immutable hook parameters."""

    lock_duration_epochs: int = DEFAULT_LOCK_DURATION_EPOCHS
    same_epoch_position_capacity: int = DEFAULT_SAME_EPOCH_POSITION_CAPACITY

    def __post_init__(self) -> None:
        lock = _as_int("lock_duration_epochs", self.lock_duration_epochs)
        capacity = _as_int("same_epoch_position_capacity", self.same_epoch_position_capacity)
        if lock < 0:
            raise ConfigurationError("lock_duration_epochs must be >= 0")
        if capacity < 1:
            raise ConfigurationError("same_epoch_position_capacity must be >= 1")
        # Frozen dataclass: coerce through object.__setattr__
        object.__setattr__(self, "lock_duration_epochs", lock)
        object.__setattr__(self, "same_epoch_position_capacity", capacity)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "HookConfig":
        known = {"lock_duration_epochs", "same_epoch_position_capacity"}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown hook configuration keys: {sorted(unknown)}")
        return cls(
            lock_duration_epochs=data.get("lock_duration_epochs", DEFAULT_LOCK_DURATION_EPOCHS),
            same_epoch_position_capacity=data.get(
                "same_epoch_position_capacity", DEFAULT_SAME_EPOCH_POSITION_CAPACITY
            ),
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "HookConfig":
        """Build the configuration from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        lock = env.get(ENV_LOCK_DURATION, "").strip() or DEFAULT_LOCK_DURATION_EPOCHS
        capacity = env.get(ENV_SAME_EPOCH_CAPACITY, "").strip() or DEFAULT_SAME_EPOCH_POSITION_CAPACITY
        config = cls(lock_duration_epochs=lock, same_epoch_position_capacity=capacity)
        logger.debug(
            "Hook configuration loaded from environment",
            extra={
                "event": "config.loaded",
                "source": "env",
                "lock_duration_epochs": config.lock_duration_epochs,
                "same_epoch_position_capacity": config.same_epoch_position_capacity,
            },
        )
        return config

    @classmethod
    def from_yaml(cls, path: str | Path) -> "HookConfig":
        """
        Load the configuration from a YAML file.

        The file may either hold the keys at top level or under a ``hook`` section.
        """
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except OSError as exc:
            raise ConfigurationError(f"Cannot read hook configuration {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError(f"Hook configuration in {path} must be a mapping")
        section = data.get("hook", data)
        if not isinstance(section, dict):
            raise ConfigurationError(f"'hook' section in {path} must be a mapping")

        config = cls.from_mapping(section)
        logger.info(
            "Hook configuration loaded from %s",
            path,
            extra={"event": "config.loaded", "source": "yaml"},
        )
        return config
