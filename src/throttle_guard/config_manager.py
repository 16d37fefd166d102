"""
Configuration Manager for Throttle Guard

Loads the daemon configuration from a JSON file, applies environment
overrides and validates the result into an immutable GuardConfig.
A missing file is not an error: the built-in defaults match the values
the daemon has always shipped with (98C on AC, -5C on battery).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/throttle-guard/config.json")
ENV_PREFIX = "THROTTLE_GUARD_"


class AuxOffsets(BaseModel):
    """Voltage offsets (mV) passed through unchanged to every corrective write"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    core: int = -100
    cache: int = -100
    gpu: int = -25
    uncore: int = -40


class GuardConfig(BaseModel):
    """Immutable daemon configuration, loaded once at startup"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    desired_max_temp: int = Field(default=98, gt=0)
    battery_delta: int = -5
    aux_offsets: AuxOffsets = Field(default_factory=AuxOffsets)

    base_poll_interval_seconds: float = Field(default=60.0, gt=0)
    fast_poll_interval_seconds: float = Field(default=15.0, gt=0)

    log_path: Path = Path("/var/log/undervolt.log")
    max_log_lines: int = Field(default=20000, ge=1)  # ~72h at one-minute polling

    undervolt_bin: Path = Path("/usr/local/bin/undervolt")
    command_timeout_seconds: float = Field(default=10.0, gt=0)
    power_source_aware: bool = False
    diagnostic_log_path: Optional[Path] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "GuardConfig":
        if self.battery_target <= 0:
            raise ValueError(
                f"battery target {self.battery_target} must be positive "
                f"(desired_max_temp={self.desired_max_temp}, battery_delta={self.battery_delta})"
            )
        if self.fast_poll_interval_seconds > self.base_poll_interval_seconds:
            raise ValueError("fast_poll_interval_seconds must not exceed base_poll_interval_seconds")
        return self

    @property
    def battery_target(self) -> int:
        return self.desired_max_temp + self.battery_delta


class GuardConfigManager:
    """Reads and validates the daemon configuration"""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None
    ):
        """
        Args:
            config_path: JSON config file (default: /etc/throttle-guard/config.json)
            environ: Environment used for overrides (default: os.environ)
        """
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self.environ = os.environ if environ is None else environ

    def load_config(self) -> GuardConfig:
        """
        Load configuration from file and environment

        Returns:
            GuardConfig: Validated configuration

        Raises:
            ConfigError: If the file is unreadable, malformed or values are invalid
        """
        raw = self._read_file()
        raw = self._apply_env_overrides(raw)

        try:
            config = GuardConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {self.config_path}: {e}") from e

        logger.info(
            f"Configuration loaded: max temp {config.desired_max_temp}C "
            f"(battery {config.battery_target}C), poll {config.base_poll_interval_seconds:g}s/"
            f"{config.fast_poll_interval_seconds:g}s, log {config.log_path}"
        )
        return config

    def _read_file(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            logger.warning(f"Config file not found at {self.config_path}, using defaults")
            return {}

        try:
            with open(self.config_path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file {self.config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {self.config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.config_path} must contain a JSON object")
        return data

    def _apply_env_overrides(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        """Overlay THROTTLE_GUARD_<FIELD> variables onto the file values"""
        merged = dict(raw)

        for name in GuardConfig.model_fields:
            if name == "aux_offsets":
                continue
            value = self.environ.get(ENV_PREFIX + name.upper())
            if value is not None:
                merged[name] = value

        aux_overrides = {}
        for name in AuxOffsets.model_fields:
            value = self.environ.get(f"{ENV_PREFIX}AUX_OFFSETS_{name.upper()}")
            if value is not None:
                aux_overrides[name] = value
        if aux_overrides:
            aux = merged.get("aux_offsets")
            merged["aux_offsets"] = {**(aux if isinstance(aux, dict) else {}), **aux_overrides}

        return merged
