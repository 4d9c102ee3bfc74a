"""
tokenvest Configuration

Supports development and production environments with separate defaults.

SECURITY NOTICE:
- The custody address MUST be provided via environment variables in production
- Development runs fall back to a generated custody address with a warning
"""

from __future__ import annotations

import logging
import os
import secrets as secrets_module
from enum import Enum

logger = logging.getLogger(__name__)


class Environment(Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_required_setting(env_var: str, environment: str) -> str:
    """Get a required setting from environment, with production enforcement.

    In production, missing settings raise ConfigurationError.
    In development, missing settings generate a random address with a warning.
    """
    value = os.getenv(env_var, "").strip()
    if value:
        return value

    if environment.lower() == Environment.PRODUCTION.value:
        raise ConfigurationError(
            f"CRITICAL: {env_var} environment variable required for production."
        )

    generated = "0x" + secrets_module.token_hex(20)
    logger.warning(
        "Configuration: %s not set, using generated value for development. "
        "Set this environment variable for production.",
        env_var,
        extra={"event": "config.setting_generated", "env_var": env_var}
    )
    return generated


def _get_bool(env_var: str, default: str = "0") -> bool:
    return os.getenv(env_var, default).strip().lower() in ("1", "true", "yes", "on")


ENVIRONMENT = os.getenv("TOKENVEST_ENVIRONMENT", Environment.DEVELOPMENT.value)

CUSTODY_ADDRESS = _get_required_setting("TOKENVEST_CUSTODY_ADDRESS", ENVIRONMENT).lower()
STATE_PATH = os.getenv("TOKENVEST_STATE_PATH", "").strip()
LOG_LEVEL = os.getenv("TOKENVEST_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("TOKENVEST_LOG_FILE", "").strip()
API_HOST = os.getenv("TOKENVEST_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("TOKENVEST_API_PORT", "8645"))
API_MAX_JSON_BYTES = int(os.getenv("TOKENVEST_API_MAX_JSON_BYTES", "65536"))
METRICS_ENABLED = _get_bool("TOKENVEST_METRICS_ENABLED", "1")
NODE_URL = os.getenv("TOKENVEST_NODE_URL", f"http://{API_HOST}:{API_PORT}")


class DevelopmentConfig:
    """Development configuration (local runs and tests)"""

    ENVIRONMENT = Environment.DEVELOPMENT
    CUSTODY_ADDRESS = CUSTODY_ADDRESS
    STATE_PATH = STATE_PATH or os.path.join(os.getcwd(), "data_dev", "vesting_state.json")
    LOG_LEVEL = LOG_LEVEL if "TOKENVEST_LOG_LEVEL" in os.environ else "DEBUG"
    LOG_FILE = LOG_FILE
    API_HOST = API_HOST
    API_PORT = API_PORT
    API_MAX_JSON_BYTES = API_MAX_JSON_BYTES
    METRICS_ENABLED = METRICS_ENABLED
    NODE_URL = NODE_URL
    # Ledger used by `tokenvest serve` when no external ledger is wired
    USE_IN_MEMORY_LEDGER = True


class ProductionConfig:
    """Production configuration"""

    ENVIRONMENT = Environment.PRODUCTION
    CUSTODY_ADDRESS = CUSTODY_ADDRESS
    STATE_PATH = STATE_PATH or os.path.join(os.getcwd(), "data", "vesting_state.json")
    LOG_LEVEL = LOG_LEVEL
    LOG_FILE = LOG_FILE or "/var/log/tokenvest/vesting.json"
    API_HOST = API_HOST
    API_PORT = API_PORT
    API_MAX_JSON_BYTES = API_MAX_JSON_BYTES
    METRICS_ENABLED = METRICS_ENABLED
    NODE_URL = NODE_URL
    USE_IN_MEMORY_LEDGER = False


if ENVIRONMENT.lower() == Environment.PRODUCTION.value:
    Config = ProductionConfig
elif ENVIRONMENT.lower() == Environment.DEVELOPMENT.value:
    Config = DevelopmentConfig
else:
    raise ConfigurationError(
        f"Unknown TOKENVEST_ENVIRONMENT {ENVIRONMENT!r}; expected "
        f"{Environment.DEVELOPMENT.value!r} or {Environment.PRODUCTION.value!r}"
    )

__all__ = [
    "Config",
    "ConfigurationError",
    "DevelopmentConfig",
    "Environment",
    "ProductionConfig",
]
