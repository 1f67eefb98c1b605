"""
btcbridge Constants

This module consolidates all global constants and environment configuration
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
    'LOG_FILE_OUTPUT':                 'True',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE PROTOCOL VALUES BELOW ARE PART OF THE PERSISTED STATE CONTRACT. CHANGING THEM
# ON A RUNNING BRIDGE MAY MAKE PREVIOUSLY ACCEPTED STATE FAIL VALIDATION ON RELOAD.

# ==================================================================================
# CORE PROTOCOL CONSTANTS
# ==================================================================================
BRIDGE_VERSION = '1.0.0'

# The null account. Also rejected: None and the empty string.
ZERO_ADDRESS = "0x" + "00" * 20

# Internal operator identity allowed to mint/burn on the bridge ledger
BRIDGE_OPERATOR = "btcbridge:engine"


# ==================================================================================
# FEE PARAMETERS
# ==================================================================================
# Fee rates are expressed in milli-percent: 10 == 1.0%
FEE_DENOMINATOR = 1000
FEE_RATE_LIMIT = 100  # rate must be strictly below this
DEFAULT_FEE_RATE = 10


# ==================================================================================
# DEPOSIT PARAMETERS
# ==================================================================================
MAX_DEPOSIT_LIMIT = 100_000_000  # ceiling must be strictly below this
DEFAULT_MAX_DEPOSIT = 10_000_000

# External (Bitcoin) transaction identifiers
TX_ID_MIN_LENGTH = 10  # length must be strictly greater than this
TX_ID_MAX_LENGTH = 64


# ==================================================================================
# ACCOUNTING TOKEN
# ==================================================================================
TOKEN_NAME = "Bridged Bitcoin"
TOKEN_SYMBOL = "bBTC"
TOKEN_DECIMALS = 8


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
DEFAULTS = dict(LOGGER_DEFAULTS)
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    # Case-insensitive membership check
    if s.casefold() in {"true", "false"}:
        # ast.literal_eval expects "True"/"False"
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    # Parses only boolean-literals. Leaves other values untouched.
    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    # Wraps based on parsed value type.
    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        # Preserves the original raw string for ConfigString storage.
        namespace[key] = ConfigString(value_raw, default_val)
