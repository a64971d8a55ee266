"""
Utility functions for the API relay
"""

import base64
import logging
from typing import Dict, Optional, Tuple
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

TEXTUAL_MEDIA_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
    "application/ecmascript",
    "application/x-www-form-urlencoded",
    "application/graphql",
    "application/x-ndjson",
}


def get_header_case_insensitive(
    headers: Dict[str, str], header_name: str
) -> Optional[str]:
    """
    Get header value in a case-insensitive manner.
    Lambda Function URL normalizes headers to lowercase, but API Gateway preserves case.
    """
    value = headers.get(header_name)
    if value is not None:
        return value

    header_lower = header_name.lower()
    for key, val in headers.items():
        if key.lower() == header_lower:
            return val

    return None


def is_text_content_type(content_type: Optional[str]) -> bool:
    """
    Whether a Content-Type names a payload that is safe to decode as text.
    A missing Content-Type counts as text.
    """
    if not content_type:
        return True

    media_type = content_type.split(";", 1)[0].strip().lower()
    if not media_type:
        return True

    if media_type.startswith("text/"):
        return True
    if media_type.endswith("+json") or media_type.endswith("+xml"):
        return True
    return media_type in TEXTUAL_MEDIA_TYPES


def decode_body(content: bytes) -> Tuple[str, int]:
    """
    Decode a response payload as UTF-8 text, best effort.

    Undecodable bytes become U+FFFD, so binary payloads are not preserved.
    Returns the text and its UTF-8 byte length.
    """
    text = content.decode("utf-8", errors="replace")
    return text, len(text.encode("utf-8"))


def encode_binary_body(content: bytes) -> Tuple[str, int]:
    """Base64-encode a raw payload; the size is the raw byte length."""
    return base64.b64encode(content).decode("ascii"), len(content)


def target_host(url: str) -> str:
    """Host part of a URL for log lines, never the path or query."""
    try:
        return urlsplit(url).hostname or "unknown"
    except ValueError:
        return "unknown"


def mask_secret(value: str) -> str:
    value = str(value)
    if len(value) > 3:
        return value[:3] + "***"
    return "***"
