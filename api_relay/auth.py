"""
Authentication of callers invoking the relay endpoint.

This is independent of any credentials the relayed RequestSpec carries for
the remote origin; those travel in RequestSpec.headers and are never
inspected here.
"""

import hmac
import logging
import os
from typing import Dict, List, Optional

from api_relay.utils import get_header_case_insensitive

logger = logging.getLogger(__name__)


class Request:
    """
    A simple object to represent an incoming HTTP request.
    """

    def __init__(
        self,
        host: str,
        method: str,
        path: str,
        headers: Dict[str, str],
    ):
        self.host = host
        self.method = method
        self.path = path
        self.headers = headers


def verify_request(
    request: Request, api_keys: Optional[List[str]] = None
) -> Optional[str]:
    """
    Identifies the caller of the relay endpoint.

    The identity names the position of the matched key in api_keys, so
    logs can tell callers apart without carrying any part of the key.

    Args:
        request: The request object.
        api_keys: Credentials accepted as a bearer token or apikey header.

    Returns:
        - str: caller identity if authenticated
        - None: if anonymous or verification failed
    """
    auth_header = get_header_case_insensitive(request.headers, "Authorization")
    apikey_header = get_header_case_insensitive(request.headers, "Apikey")

    # Skip auth if configured
    if os.environ.get("SKIP_AUTH") == "true":
        logger.info("Authentication skipped due to SKIP_AUTH environment variable")
        if auth_header or apikey_header:
            return "anonymous-dev"
        return None

    if apikey_header:
        index = verify_api_key(apikey_header, api_keys or [])
        if index is not None:
            logger.info("Authenticated caller via apikey header")
            return f"apikey#{index}"

    if not auth_header:
        logger.info("No Authorization header - treating as anonymous request")
        return None

    if not auth_header.startswith("Bearer "):
        logger.warning("Authorization header uses an unsupported scheme")
        return None

    token = auth_header[len("Bearer ") :].strip()
    index = verify_api_key(token, api_keys or [])
    if index is None:
        logger.warning("Bearer token does not match any configured API key")
        return None

    logger.info("Authenticated caller via bearer token")
    return f"apikey#{index}"


def verify_api_key(candidate: str, api_keys: List[str]) -> Optional[int]:
    """
    Finds the configured key equal to candidate.

    Every key is compared in constant time, whether or not an earlier one
    matched. Returns the index of the match, or None.
    """
    if not candidate:
        return None

    matched = None
    for index, key in enumerate(api_keys):
        if hmac.compare_digest(candidate.encode("utf-8"), key.encode("utf-8")):
            if matched is None:
                matched = index
    return matched
