"""
DSWAP Configuration

Loads config.toml at startup. Environment variables override TOML values.
"""

from .loader import (
    AmmConfig,
    StakingConfig,
    LoggingConfig,
    DswapConfig,
    load_config,
)

__all__ = [
    "AmmConfig",
    "StakingConfig",
    "LoggingConfig",
    "DswapConfig",
    "load_config",
]
