"""
Lambda entry point with Vault secret loading
"""

import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional

from api_relay.handler import lambda_handler as _lambda_handler
from api_relay.utils import mask_secret

logger = logging.getLogger()
logger.setLevel(logging.INFO)

ALTERNATIVE_SECRET_FILES = ["vault_response", "secrets"]
LAYER_SECRET_PATH = "/opt/vault_secrets"


def _find_secrets_file() -> Optional[str]:
    """Locate the file the Vault extension wrote the relay's secrets to"""
    vault_secret_file = os.environ.get("VAULT_SECRET_FILE")
    if not vault_secret_file:
        vault_secret_file = os.path.join(tempfile.gettempdir(), "vault_secrets")

    if os.path.exists(vault_secret_file):
        return vault_secret_file

    logger.warning(f"Vault secrets file not found: {vault_secret_file}")

    temp_dir = tempfile.gettempdir()
    alternative_paths = [os.path.join(temp_dir, f) for f in ALTERNATIVE_SECRET_FILES]
    alternative_paths.append(LAYER_SECRET_PATH)

    for alt_path in alternative_paths:
        if os.path.exists(alt_path):
            logger.info(f"Found alternative secrets file: {alt_path}")
            return alt_path

    return None


def _apply_secrets(secrets_content: str) -> int:
    """
    Export secrets as environment variables.

    Accepts a JSON object (with Vault KV v2 nesting under "data") or
    KEY=VALUE lines. Returns the number of variables set.
    """
    count = 0
    try:
        secrets_data = json.loads(secrets_content)
    except json.JSONDecodeError:
        logger.info("Secrets file is not JSON, reading KEY=VALUE lines")
        for line in secrets_content.strip().split("\n"):
            if "=" in line:
                key, value = line.split("=", 1)
                os.environ[key.strip()] = value.strip()
                logger.info(
                    f"Set environment variable: {key.strip()} = "
                    f"{mask_secret(value.strip())}"
                )
                count += 1
        return count

    if not isinstance(secrets_data, dict):
        logger.error("Secrets file JSON is not an object, ignoring it")
        return count

    for key, value in secrets_data.items():
        if isinstance(value, (str, int, float, bool)):
            os.environ[str(key)] = str(value)
            logger.info(f"Set environment variable: {key} = {mask_secret(value)}")
            count += 1
        elif isinstance(value, dict) and isinstance(value.get("data"), dict):
            for nested_key, nested_value in value["data"].items():
                os.environ[str(nested_key)] = str(nested_value)
                logger.info(
                    f"Set nested environment variable: {nested_key} = "
                    f"{mask_secret(nested_value)}"
                )
                count += 1
    return count


def _load_vault_secrets() -> bool:
    """Load relay credentials (RELAY_API_KEYS) from the Vault file"""
    vault_secret_file = _find_secrets_file()
    if not vault_secret_file:
        logger.info("No Vault secrets file found, relying on the environment")
        return False

    try:
        with open(vault_secret_file, "r") as f:
            count = _apply_secrets(f.read())
        logger.info(f"Loaded {count} secrets from {vault_secret_file}")
        return True
    except OSError as e:
        logger.error(f"Error reading Vault secrets file: {e}")
        return False
    finally:
        # Always try to remove the secrets file for security
        if os.path.exists(vault_secret_file):
            try:
                os.remove(vault_secret_file)
                logger.info(f"Removed secrets file {vault_secret_file} for security")
            except OSError as cleanup_error:
                logger.warning(f"Could not remove secrets file: {cleanup_error}")


# Load secrets during initialization
_load_vault_secrets()


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Main Lambda handler with Vault secret loading"""
    return _lambda_handler(event, context)
