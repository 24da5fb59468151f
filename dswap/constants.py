"""
DSWAP Constants

This module consolidates the protocol constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW DEFINE THE PRICING AND REWARD ARITHMETIC. CHANGING THEM CHANGES
# EVERY QUOTE, FEE AND REWARD THE ENGINES PRODUCE. USE THE TOML CONFIG FOR PER-DEPLOYMENT
# PARAMETERS INSTEAD.

# ==================================================================================
# UNITS
# ==================================================================================
DECIMALS = 18
TOKEN_UNIT = 10 ** DECIMALS  # Smallest units per whole token / native coin


# ==================================================================================
# AMM PRICING
# ==================================================================================
FEE_BPS = 30  # 0.30%
BPS_DENOMINATOR = 10_000
PRECISION = 2 ** 64  # Fixed-point scale for the constant-product division
PRICE_SCALE = TOKEN_UNIT  # current_price() is native per whole token

DEFAULT_INITIAL_SUPPLY = 1_000_000 * TOKEN_UNIT
DEFAULT_DEV_SUPPLY_PERCENT = 10
DEFAULT_FLOOR_VALUE = 100 * TOKEN_UNIT  # Virtual native reserve ("basis value")

FEE_DRAIN_COOLDOWN = 24 * 60 * 60  # 1 day between fee drains


# ==================================================================================
# STAKING REWARDS
# ==================================================================================
REWARD_SCALE = 10 ** 18  # Q18 reward-per-unit accumulators
CLAIM_COOLDOWN = 60 * 60  # 1 hour between claims
REWARD_PERIOD = 60 * 60  # Pool balance promised once per period to the whole stake


# ==================================================================================
# ACCOUNT IDENTITIES
# ==================================================================================
AMM_ADDRESS = 'dswap:amm'
STAKING_ADDRESS = 'dswap:staking'


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Only calls ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
