"""
Lambda transport binding for the API relay
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional, Tuple, Union

from api_relay.auth import Request, verify_request
from api_relay.config import RelayConfig, load_config
from api_relay.models import ErrorEnvelope, MalformedRequestError, ResponseEnvelope
from api_relay.relay import relay_json
from api_relay.utils import get_header_case_insensitive

logger = logging.getLogger()
logger.setLevel(logging.INFO)

CORS_ALLOW_ORIGIN = "*"
CORS_ALLOW_METHODS = "GET, POST, PUT, PATCH, DELETE, OPTIONS, HEAD"
CORS_ALLOW_HEADERS = ["Content-Type", "Authorization", "X-Client-Info", "Apikey"]


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    config = load_config()
    request_id = getattr(context, "aws_request_id", "unknown")

    try:
        http_method, path, headers, body = _parse_event(event)

        # Preflight requests never reach the relay logic
        if http_method == "OPTIONS":
            return _create_preflight_response(config)

        caller = _verify_caller(http_method, path, headers, config)

        caller_info = _extract_caller_info(event, headers)
        logger.info(
            f"Processing {http_method} relay request {request_id} "
            f"(caller: {caller or 'anonymous'}, {caller_info})"
        )

        if config.require_auth and not caller:
            logger.warning(f"Rejected unauthenticated relay request {request_id}")
            return _create_envelope_response(ErrorEnvelope("Unauthorized"), config)

        envelope = relay_json(body, config)
        return _create_envelope_response(envelope, config)

    except MalformedRequestError as e:
        logger.info(f"Rejected relay request {request_id}: {e}")
        return _create_envelope_response(ErrorEnvelope(str(e)), config)
    except Exception as e:
        logger.error(f"Error processing relay request: {str(e)}", exc_info=True)
        return _create_envelope_response(
            ErrorEnvelope(str(e) or "Unknown error"), config
        )


def _parse_event(
    event: Dict[str, Any],
) -> Tuple[str, str, Dict[str, str], Optional[Union[str, bytes]]]:
    # Support both API Gateway REST API and Lambda Function URL formats
    if "version" in event and event["version"] == "2.0":
        # Lambda Function URL / HTTP API v2.0 format
        http_method = event["requestContext"]["http"]["method"]
        path = event.get("rawPath", "")
    else:
        # API Gateway REST API v1.0 format
        http_method = event.get("httpMethod", "GET")
        path = event.get("path", "")

    headers = event.get("headers") or {}
    body: Optional[Union[str, bytes]] = event.get("body")

    if body and event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError):
            raise MalformedRequestError("Request body is not valid base64")

    return http_method.upper(), path, headers, body


def _verify_caller(
    http_method: str, path: str, headers: Dict[str, str], config: RelayConfig
) -> Optional[str]:
    request = Request(
        host=get_header_case_insensitive(headers, "Host") or "",
        method=http_method,
        path=path,
        headers=headers,
    )
    return verify_request(request, config.api_keys)


def _cors_headers(config: RelayConfig) -> Dict[str, str]:
    allow_headers = list(CORS_ALLOW_HEADERS)
    for name in config.extra_allow_headers:
        if name.lower() not in (h.lower() for h in allow_headers):
            allow_headers.append(name)

    return {
        "Access-Control-Allow-Origin": CORS_ALLOW_ORIGIN,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": ", ".join(allow_headers),
    }


def _create_preflight_response(config: RelayConfig) -> Dict[str, Any]:
    return {
        "statusCode": 200,
        "headers": _cors_headers(config),
        "body": "",
    }


def _create_envelope_response(
    envelope: Union[ResponseEnvelope, ErrorEnvelope], config: RelayConfig
) -> Dict[str, Any]:
    headers = _cors_headers(config)
    headers["Content-Type"] = "application/json"

    return {
        "statusCode": 200,  # Always return 200, relay outcome is in response body
        "headers": headers,
        "body": json.dumps(envelope.to_dict()),
    }


def _extract_caller_info(event: Dict[str, Any], headers: Dict[str, str]) -> str:
    """Extract caller information from the event and headers for logging purposes."""
    caller_parts = []

    # Source IP address
    source_ip = None
    request_context = event.get("requestContext") or {}
    if "identity" in request_context:
        # API Gateway format
        source_ip = request_context["identity"].get("sourceIp")
    elif "http" in request_context:
        # Lambda Function URL format
        source_ip = request_context["http"].get("sourceIp")

    if source_ip:
        caller_parts.append(f"ip={source_ip}")

    user_agent = get_header_case_insensitive(headers, "User-Agent")
    if user_agent:
        # Truncate long user agents
        if len(user_agent) > 100:
            user_agent = user_agent[:97] + "..."
        caller_parts.append(f"ua={user_agent}")

    client_info = get_header_case_insensitive(headers, "X-Client-Info")
    if client_info:
        caller_parts.append(f"client={client_info}")

    x_forwarded_for = get_header_case_insensitive(headers, "X-Forwarded-For")
    if x_forwarded_for:
        # Take the first IP (original client)
        original_ip = x_forwarded_for.split(",")[0].strip()
        if original_ip != source_ip:
            caller_parts.append(f"original_ip={original_ip}")

    if request_context.get("requestId"):
        caller_parts.append(f"req_id={request_context['requestId']}")

    if "version" in event and event["version"] == "2.0":
        caller_parts.append("source=lambda_url")
    elif "apiId" in request_context:
        caller_parts.append("source=api_gateway")

    return " | ".join(caller_parts) if caller_parts else "unknown"
