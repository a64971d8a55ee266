"""
Environment-driven configuration for the API relay
"""

import logging
import os
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

AUTH_MODE_NONE = "none"
AUTH_MODE_REQUIRED = "required"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> List[str]:
    value = os.environ.get(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_timeout(name: str) -> Optional[float]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return DEFAULT_TIMEOUT_SECONDS

    try:
        timeout = float(value)
    except ValueError:
        logger.warning(
            f"Invalid {name} value {value!r}, using default {DEFAULT_TIMEOUT_SECONDS}"
        )
        return DEFAULT_TIMEOUT_SECONDS

    # Zero or negative disables the outbound timeout entirely
    if timeout <= 0:
        return None
    return timeout


class RelayConfig:
    """
    Settings for a single relay deployment.
    """

    def __init__(
        self,
        timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
        binary_bodies: bool = False,
        auth_mode: str = AUTH_MODE_NONE,
        api_keys: Optional[List[str]] = None,
        extra_allow_headers: Optional[List[str]] = None,
    ):
        self.timeout = timeout
        self.binary_bodies = binary_bodies
        self.auth_mode = auth_mode
        self.api_keys = api_keys or []
        self.extra_allow_headers = extra_allow_headers or []

    @property
    def require_auth(self) -> bool:
        return self.auth_mode == AUTH_MODE_REQUIRED


def load_config() -> RelayConfig:
    """Read relay settings from the environment"""
    auth_mode = os.environ.get("RELAY_AUTH_MODE", AUTH_MODE_NONE).strip().lower()
    if auth_mode not in (AUTH_MODE_NONE, AUTH_MODE_REQUIRED):
        logger.warning(f"Unknown RELAY_AUTH_MODE {auth_mode!r}, enforcing auth")
        auth_mode = AUTH_MODE_REQUIRED

    return RelayConfig(
        timeout=_env_timeout("RELAY_TIMEOUT_SECONDS"),
        binary_bodies=_env_flag("RELAY_BINARY_BODIES"),
        auth_mode=auth_mode,
        api_keys=_env_list("RELAY_API_KEYS"),
        extra_allow_headers=_env_list("RELAY_EXTRA_ALLOW_HEADERS"),
    )
