"""
stakegov Constants

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

ENGINE_DEFAULTS = {
    'STAKEGOV_CONFIG':                 'config.toml',
    'STAKEGOV_TREASURY_ACCOUNT':       'stakegov.treasury',
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE GOVERNANCE DEFAULTS BELOW ARE ONLY INSTALLED WHEN THE SETTINGS STORE IS
# BOOTSTRAPPED. AFTER THAT, THE LIVE VALUES CAN ONLY CHANGE THROUGH AN EXECUTED MOTION.

# ==================================================================================
# BASIS POINTS
# ==================================================================================
BASIS_POINTS = 10_000  # 100.00%


# ==================================================================================
# GOVERNANCE SETTING KEYS
# ==================================================================================
SETTING_VOTING_DELAY = 'voting-delay'
SETTING_VOTING_DURATION = 'voting-duration'
SETTING_EXECUTION_DELAY = 'execution-delay'
SETTING_MIN_MOTION_THRESHOLD = 'min-motion-threshold'
SETTING_QUORUM_BP = 'quorum-bp'
SETTING_SIMPLE_MAJORITY_BP = 'simple-majority-bp'
SETTING_SUPER_MAJORITY_BP = 'super-majority-bp'


# ==================================================================================
# GOVERNANCE DEFAULTS (block heights / token units / basis points)
# ==================================================================================
GOVERNANCE_VOTING_DELAY = 1440           # ~10 days of 10-minute blocks
GOVERNANCE_VOTING_DURATION = 1440
GOVERNANCE_EXECUTION_DELAY = 144         # ~1 day
GOVERNANCE_MIN_MOTION_THRESHOLD = 1_000  # tokens required to propose
GOVERNANCE_QUORUM_BP = 1_000             # 10% participation
GOVERNANCE_SIMPLE_MAJORITY_BP = 5_000    # 50% approval
GOVERNANCE_SUPER_MAJORITY_BP = 7_500     # 75% approval (upgrades)

# Creation floor for a requested voting window
GOVERNANCE_MIN_VOTING_DURATION = 1_000

# Deposit moved from proposer to the treasury on creation
GOVERNANCE_MOTION_DEPOSIT = 100

# Quorum is measured against this fixed ceiling, not circulating supply
GOVERNANCE_PARTICIPATION_CEILING = 100_000_000

GOVERNANCE_MAX_TITLE_LENGTH = 256
GOVERNANCE_MAX_BODY_LENGTH = 4_096

# Setting key → (default, description)
GOVERNANCE_DEFAULT_SETTINGS = {
    SETTING_VOTING_DELAY:         (GOVERNANCE_VOTING_DELAY,
                                   'Blocks between motion creation and the start of voting'),
    SETTING_VOTING_DURATION:      (GOVERNANCE_VOTING_DURATION,
                                   'Default length of the voting window in blocks'),
    SETTING_EXECUTION_DELAY:      (GOVERNANCE_EXECUTION_DELAY,
                                   'Blocks between the end of voting and earliest execution'),
    SETTING_MIN_MOTION_THRESHOLD: (GOVERNANCE_MIN_MOTION_THRESHOLD,
                                   'Minimum token balance required to create a motion'),
    SETTING_QUORUM_BP:            (GOVERNANCE_QUORUM_BP,
                                   'Minimum participation in basis points of the ceiling'),
    SETTING_SIMPLE_MAJORITY_BP:   (GOVERNANCE_SIMPLE_MAJORITY_BP,
                                   'Approval required for ordinary motions (bp)'),
    SETTING_SUPER_MAJORITY_BP:    (GOVERNANCE_SUPER_MAJORITY_BP,
                                   'Approval required for upgrade motions (bp)'),
}


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
DEFAULTS = ENGINE_DEFAULTS | LOGGER_DEFAULTS
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
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
