from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}


def is_truthy(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value or "").strip().lower() in TRUE_VALUES


def _float_env(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return max(minimum, float(raw_value))
    except (TypeError, ValueError):
        logger.warning("Invalid %s=%r; using default %s.", name, raw_value, default)
        return default


def _int_env(name: str, default: int, *, minimum: int = 1) -> int:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return max(minimum, int(raw_value))
    except (TypeError, ValueError):
        logger.warning("Invalid %s=%r; using default %s.", name, raw_value, default)
        return default


# Signed links handed to the browser for viewing stored files.
SIGNED_URL_SECONDS = _int_env("MEDIAFLOW_SIGNED_URL_SECONDS", 3600)
SIGNED_URL_WORKERS = _int_env("MEDIAFLOW_SIGNED_URL_WORKERS", 4)

# How often a mounted dashboard checks whether its change subscription fired.
REFRESH_POLL_SECONDS = _float_env("MEDIAFLOW_REFRESH_POLL_SECONDS", 2.0, minimum=0.5)

_RUNTIME_BOOTSTRAP_DEFAULT = "0" if os.getenv("INSTANCE_CONNECTION_NAME") else "1"
RUNTIME_SCHEMA_BOOTSTRAP = is_truthy(os.getenv("MEDIAFLOW_RUNTIME_SCHEMA_BOOTSTRAP", _RUNTIME_BOOTSTRAP_DEFAULT))

SIGN_IN_PATH = "/"
DASHBOARD_PATH = "/dashboard/"
