"""
Request relay: performs one outbound HTTP call on behalf of a caller and
normalizes the outcome into a ResponseEnvelope or an ErrorEnvelope.
"""

import json
import logging
import time
from typing import Any, Optional, Tuple, Union

import requests  # type: ignore

from api_relay.config import RelayConfig, load_config
from api_relay.models import (
    ErrorEnvelope,
    MalformedRequestError,
    RequestSpec,
    ResponseEnvelope,
)
from api_relay.utils import (
    decode_body,
    encode_binary_body,
    is_text_content_type,
    target_host,
)

logger = logging.getLogger(__name__)

Envelope = Union[ResponseEnvelope, ErrorEnvelope]


def parse_request_spec(payload: Any) -> RequestSpec:
    """
    Reads a decoded JSON payload as a RequestSpec.

    Raises:
        MalformedRequestError: if the payload has the wrong shape or no url.
    """
    if not isinstance(payload, dict):
        raise MalformedRequestError("Request payload must be a JSON object")

    url = payload.get("url")
    if url is None or url == "":
        raise MalformedRequestError("URL is required")
    if not isinstance(url, str):
        raise MalformedRequestError("url must be a string")

    method = payload.get("method") or "GET"
    if not isinstance(method, str):
        raise MalformedRequestError("method must be a string")

    headers = payload.get("headers")
    if headers is None:
        headers = {}
    if not isinstance(headers, dict):
        raise MalformedRequestError("headers must be an object")
    for name, value in headers.items():
        if not isinstance(value, str):
            raise MalformedRequestError(f"header {name!r} must have a string value")

    body = payload.get("body")
    if body is not None:
        if not isinstance(body, str):
            raise MalformedRequestError("body must be a string")
        try:
            body.encode("utf-8")
        except UnicodeEncodeError:
            raise MalformedRequestError("body must be valid UTF-8 text")

    return RequestSpec(url=url, method=method, headers=headers, body=body)


def relay(spec: RequestSpec, config: Optional[RelayConfig] = None) -> Envelope:
    """
    Performs the outbound call described by spec.

    Any HTTP status from the origin, 4xx and 5xx included, yields a
    ResponseEnvelope. Only a failure to obtain a response at all yields an
    ErrorEnvelope. There is no retry.
    """
    if config is None:
        config = load_config()

    host = target_host(spec.url)
    logger.info(f"Relaying {spec.method} request to {host}")

    start = time.monotonic()
    try:
        response, content = _dispatch(spec, config)
    except Exception as e:
        logger.warning(f"Upstream call to {host} failed: {type(e).__name__}: {e}")
        return ErrorEnvelope(_error_message(e))
    elapsed_ms = max(0, int(round((time.monotonic() - start) * 1000)))

    envelope = _create_response_envelope(response, content, elapsed_ms, config)
    logger.info(
        f"Upstream {host} answered {envelope.status} "
        f"in {envelope.time}ms ({envelope.size} bytes)"
    )
    return envelope


def _dispatch(
    spec: RequestSpec, config: RelayConfig
) -> Tuple[requests.Response, bytes]:
    data = spec.body.encode("utf-8") if spec.sends_body else None

    with requests.Session() as session:
        outbound = requests.Request(
            spec.method, spec.url, headers=dict(spec.headers), data=data
        )
        prepared = session.prepare_request(outbound)
        # requests uppercases the verb while preparing; the token goes out as given
        prepared.method = spec.method

        settings = session.merge_environment_settings(
            prepared.url, {}, None, None, None
        )
        response = session.send(
            prepared, timeout=config.timeout, allow_redirects=True, **settings
        )
        # Timing covers the full body transfer, not just the headers
        content = response.content or b""

    return response, content


def relay_payload(payload: Any, config: Optional[RelayConfig] = None) -> Envelope:
    """Validates a decoded payload and relays it, never raising."""
    try:
        spec = parse_request_spec(payload)
    except MalformedRequestError as e:
        logger.info(f"Rejected malformed relay request: {e}")
        return ErrorEnvelope(str(e))

    return relay(spec, config)


def relay_json(
    raw: Union[str, bytes, None], config: Optional[RelayConfig] = None
) -> Envelope:
    """Decodes a JSON-encoded RequestSpec and relays it, never raising."""
    try:
        payload = json.loads(raw or "")
    except (ValueError, RecursionError) as e:
        logger.info(f"Rejected relay request with invalid JSON: {e}")
        return ErrorEnvelope(f"Invalid JSON payload: {e}")

    return relay_payload(payload, config)


def _create_response_envelope(
    response: requests.Response,
    content: bytes,
    elapsed_ms: int,
    config: RelayConfig,
) -> ResponseEnvelope:
    headers = {name: value for name, value in response.headers.items()}

    body_encoding = None
    if (
        config.binary_bodies
        and content
        and not is_text_content_type(response.headers.get("Content-Type"))
    ):
        body, size = encode_binary_body(content)
        body_encoding = "base64"
    else:
        body, size = decode_body(content)

    return ResponseEnvelope(
        status=response.status_code,
        status_text=response.reason or "",
        headers=headers,
        body=body,
        time=elapsed_ms,
        size=size,
        body_encoding=body_encoding,
    )


def _error_message(error: Exception) -> str:
    message = str(error)
    return message if message else type(error).__name__
