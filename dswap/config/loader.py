"""
DSWAP TOML Configuration Loader

Loads the [amm], [staking] and [logging] sections of config.toml with
environment variable overrides.

Environment variable mapping:
    [amm] fee_bps              → DSWAP_FEE_BPS
    [amm] drain_cooldown       → DSWAP_DRAIN_COOLDOWN
    [amm] initial_supply       → DSWAP_INITIAL_SUPPLY
    [amm] dev_supply_percent   → DSWAP_DEV_SUPPLY_PERCENT
    [amm] floor_value          → DSWAP_FLOOR_VALUE
    [staking] claim_cooldown   → DSWAP_CLAIM_COOLDOWN
    [staking] reward_period    → DSWAP_REWARD_PERIOD
    [logging] level            → DSWAP_LOG_LEVEL
    [logging] file_output      → DSWAP_LOG_FILE_OUTPUT

Supply and floor are given in whole units; ``to_units`` converts them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    BPS_DENOMINATOR,
    CLAIM_COOLDOWN,
    DEFAULT_DEV_SUPPLY_PERCENT,
    DEFAULT_FLOOR_VALUE,
    DEFAULT_INITIAL_SUPPLY,
    FEE_BPS,
    FEE_DRAIN_COOLDOWN,
    REWARD_PERIOD,
    TOKEN_UNIT,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_int(name: str) -> Optional[int]:
    v = os.environ.get(name)
    if not v:
        return None
    try:
        return int(v)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {v!r}") from e


def _env_bool(name: str) -> Optional[bool]:
    v = os.environ.get(name)
    if not v:
        return None
    return v.lower() in ("1", "true", "yes")


# -- AMM ----------------------------------------------------------------

@dataclass
class AmmConfig:
    """[amm] section."""
    token_name: str = "DSwap Token"
    token_symbol: str = "DSWP"
    token_icon: str = ""
    initial_supply: int = DEFAULT_INITIAL_SUPPLY // TOKEN_UNIT
    dev_supply_percent: int = DEFAULT_DEV_SUPPLY_PERCENT
    floor_value: int = DEFAULT_FLOOR_VALUE // TOKEN_UNIT
    fee_bps: int = FEE_BPS
    drain_cooldown: int = FEE_DRAIN_COOLDOWN

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AmmConfig":
        return cls(
            token_name=data.get("token_name", "DSwap Token"),
            token_symbol=data.get("token_symbol", "DSWP"),
            token_icon=data.get("token_icon", ""),
            initial_supply=data.get("initial_supply", DEFAULT_INITIAL_SUPPLY // TOKEN_UNIT),
            dev_supply_percent=data.get("dev_supply_percent", DEFAULT_DEV_SUPPLY_PERCENT),
            floor_value=data.get("floor_value", DEFAULT_FLOOR_VALUE // TOKEN_UNIT),
            fee_bps=data.get("fee_bps", FEE_BPS),
            drain_cooldown=data.get("drain_cooldown", FEE_DRAIN_COOLDOWN),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if (v := _env_int("DSWAP_FEE_BPS")) is not None:
            self.fee_bps = v
        if (v := _env_int("DSWAP_DRAIN_COOLDOWN")) is not None:
            self.drain_cooldown = v
        if (v := _env_int("DSWAP_INITIAL_SUPPLY")) is not None:
            self.initial_supply = v
        if (v := _env_int("DSWAP_DEV_SUPPLY_PERCENT")) is not None:
            self.dev_supply_percent = v
        if (v := _env_int("DSWAP_FLOOR_VALUE")) is not None:
            self.floor_value = v

    def validate(self) -> None:
        if not (0 <= self.fee_bps < BPS_DENOMINATOR):
            raise ConfigurationError(f"fee_bps must be in [0, {BPS_DENOMINATOR}): {self.fee_bps}")
        if self.drain_cooldown < 0:
            raise ConfigurationError("drain_cooldown must be >= 0")
        if self.initial_supply <= 0:
            raise ConfigurationError("initial_supply must be > 0")
        if not (0 <= self.dev_supply_percent < 100):
            raise ConfigurationError(f"dev_supply_percent must be in [0, 100): {self.dev_supply_percent}")
        if self.floor_value <= 0:
            raise ConfigurationError("floor_value must be > 0")
        if not self.token_symbol:
            raise ConfigurationError("token_symbol must not be empty")

    def to_units(self) -> Dict[str, int]:
        """Supply and floor in smallest units."""
        return {
            "initial_supply": self.initial_supply * TOKEN_UNIT,
            "floor_value": self.floor_value * TOKEN_UNIT,
        }


# -- Staking ------------------------------------------------------------

@dataclass
class StakingConfig:
    """[staking] section."""
    claim_cooldown: int = CLAIM_COOLDOWN
    reward_period: int = REWARD_PERIOD

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakingConfig":
        return cls(
            claim_cooldown=data.get("claim_cooldown", CLAIM_COOLDOWN),
            reward_period=data.get("reward_period", REWARD_PERIOD),
        )

    def apply_env(self) -> None:
        if (v := _env_int("DSWAP_CLAIM_COOLDOWN")) is not None:
            self.claim_cooldown = v
        if (v := _env_int("DSWAP_REWARD_PERIOD")) is not None:
            self.reward_period = v

    def validate(self) -> None:
        if self.claim_cooldown < 0:
            raise ConfigurationError("claim_cooldown must be >= 0")
        if self.reward_period <= 0:
            raise ConfigurationError("reward_period must be > 0")


# -- Logging ------------------------------------------------------------

@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False
    log_file: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file_output=data.get("file_output", False),
            log_file=data.get("log_file", ""),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("DSWAP_LOG_LEVEL"):
            self.level = v.upper()
        if (v := _env_bool("DSWAP_LOG_FILE_OUTPUT")) is not None:
            self.file_output = v

    def validate(self) -> None:
        if self.level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.level}")


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class DswapConfig:
    """
    Deployment configuration.

    Environment variables override TOML values, which override the
    defaults in ``dswap.constants``.
    """
    amm: AmmConfig = field(default_factory=AmmConfig)
    staking: StakingConfig = field(default_factory=StakingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DswapConfig":
        """Create DswapConfig from a parsed TOML dict."""
        return cls(
            amm=AmmConfig.from_dict(data.get("amm", {})),
            staking=StakingConfig.from_dict(data.get("staking", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "DswapConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (with env overrides); a file that
        is not valid TOML raises ConfigurationError.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        logger.debug(f"Loaded config from {config_path}")
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.amm.apply_env()
        self.staking.apply_env()
        self.logging.apply_env()

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        self.amm.validate()
        self.staking.validate()
        self.logging.validate()
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "amm": {
                "token_name": self.amm.token_name,
                "token_symbol": self.amm.token_symbol,
                "initial_supply": self.amm.initial_supply,
                "dev_supply_percent": self.amm.dev_supply_percent,
                "floor_value": self.amm.floor_value,
                "fee_bps": self.amm.fee_bps,
                "drain_cooldown": self.amm.drain_cooldown,
            },
            "staking": {
                "claim_cooldown": self.staking.claim_cooldown,
                "reward_period": self.staking.reward_period,
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
                "log_file": self.logging.log_file,
            },
        }


def load_config(path: Optional[str] = None) -> DswapConfig:
    """
    Load and validate the deployment configuration.

    Resolution order:
        1. Explicit *path* argument
        2. DSWAP_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("DSWAP_CONFIG", "config.toml")

    cfg = DswapConfig.from_file(path)
    cfg.validate()
    return cfg
