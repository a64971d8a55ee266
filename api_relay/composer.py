"""
Composer-side helpers: turn an edited request form into a RequestSpec,
send it through the relay, and shape the records kept for history and
saved requests.

A request config is a plain dict:

    {
        "method": "GET",
        "url": "https://example.com/items",
        "headers": [{"id": "h1", "key": "Accept", "value": "*/*", "enabled": True}],
        "queryParams": [...],
        "body": {"type": "none" | "json" | "form" | "raw" | "xml", "content": ""},
        "auth": {"type": "none" | "bearer" | "apikey" | "basic", ...},
    }
"""

import base64
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests  # type: ignore

from api_relay.models import RequestSpec

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_TIMEOUT = 60
CLIENT_INFO = "api-relay-composer"

BODY_CONTENT_TYPES = {
    "json": "application/json",
    "xml": "application/xml",
    "form": "application/x-www-form-urlencoded",
}


def new_request_config() -> Dict[str, Any]:
    return {
        "method": "GET",
        "url": "",
        "headers": [],
        "queryParams": [],
        "body": {"type": "none", "content": ""},
        "auth": {"type": "none"},
    }


def enabled_pairs(pairs: Optional[List[Dict[str, Any]]]) -> Dict[str, str]:
    """Enabled key/value pairs with a non-empty key, later keys winning."""
    result = {}
    for pair in pairs or []:
        if pair.get("enabled", True) and pair.get("key"):
            result[pair["key"]] = pair.get("value", "")
    return result


def _encode_uri_component(value: str) -> str:
    # Same unreserved set as JavaScript's encodeURIComponent
    return quote(value, safe="!~*'()")


def build_url(url: str, query_params: Optional[List[Dict[str, Any]]]) -> str:
    params = enabled_pairs(query_params)
    if not params:
        return url

    query_string = "&".join(
        f"{_encode_uri_component(key)}={_encode_uri_component(value)}"
        for key, value in params.items()
    )
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query_string}"


def build_headers(config: Dict[str, Any]) -> Dict[str, str]:
    headers = enabled_pairs(config.get("headers"))

    auth = config.get("auth") or {}
    auth_type = auth.get("type", "none")
    if auth_type == "bearer" and auth.get("token"):
        headers["Authorization"] = f"Bearer {auth['token']}"
    elif auth_type == "apikey" and auth.get("key") and auth.get("value"):
        headers[auth["key"]] = auth["value"]
    elif auth_type == "basic" and auth.get("username") and auth.get("password"):
        credentials = f"{auth['username']}:{auth['password']}"
        encoded_credentials = base64.b64encode(credentials.encode("utf-8")).decode()
        headers["Authorization"] = f"Basic {encoded_credentials}"

    body = config.get("body") or {}
    content_type = BODY_CONTENT_TYPES.get(body.get("type", "none"))
    if content_type and body.get("content"):
        headers["Content-Type"] = content_type

    return headers


def build_request_spec(config: Dict[str, Any]) -> RequestSpec:
    method = config.get("method") or "GET"
    body = config.get("body") or {}

    content = None
    if (
        body.get("type", "none") != "none"
        and body.get("content")
        and method not in ("GET", "HEAD")
    ):
        content = body["content"]

    return RequestSpec(
        url=build_url(config.get("url", ""), config.get("queryParams")),
        method=method,
        headers=build_headers(config),
        body=content,
    )


def error_response(message: str, elapsed_ms: int) -> Dict[str, Any]:
    """Synthetic response shown in place of a relay or transport failure."""
    return {
        "status": 0,
        "statusText": "Error",
        "headers": {},
        "body": message,
        "time": elapsed_ms,
        "size": 0,
    }


class RelayClient:
    """
    Sends composed requests to a deployed relay endpoint.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_CLIENT_TIMEOUT,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "X-Client-Info": CLIENT_INFO}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def send(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Relays the composed request and returns a displayable response.

        Never raises for relay or network failures; those come back as a
        status 0 response carrying the error message as its body.
        """
        if not config.get("url"):
            return error_response("URL is required", 0)

        spec = build_request_spec(config)
        start = time.monotonic()

        try:
            reply = requests.post(
                self.endpoint,
                data=json.dumps(spec.to_dict()),
                headers=self._headers(),
                timeout=self.timeout,
            )
            data = reply.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning(f"Relay call failed: {type(e).__name__}: {e}")
            return error_response(str(e) or type(e).__name__, elapsed_ms)

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if not isinstance(data, dict) or "status" not in data:
            message = "Request failed"
            if isinstance(data, dict) and data.get("error"):
                message = str(data["error"])
            logger.info(f"Relay returned an error: {message}")
            return error_response(message, elapsed_ms)

        response = {
            "status": data["status"],
            "statusText": data.get("statusText", ""),
            "headers": data.get("headers") or {},
            "body": data.get("body", ""),
            "time": data["time"] if "time" in data else elapsed_ms,
            "size": data.get("size", 0),
        }
        if data.get("bodyEncoding"):
            response["bodyEncoding"] = data["bodyEncoding"]
        return response


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def history_record(
    config: Dict[str, Any], response: Dict[str, Any]
) -> Dict[str, Any]:
    return {
        "method": config.get("method") or "GET",
        "url": config.get("url", ""),
        "headers": enabled_pairs(config.get("headers")),
        "query_params": enabled_pairs(config.get("queryParams")),
        "body": config.get("body") or {"type": "none", "content": ""},
        "auth": config.get("auth") or {"type": "none"},
        "response_status": response.get("status"),
        "response_time": response.get("time"),
        "response_size": response.get("size"),
        "response_headers": response.get("headers") or {},
        "response_body": response.get("body"),
        "executed_at": _utc_now(),
    }


def saved_request_record(
    config: Dict[str, Any], name: str, collection_id: Optional[str] = None
) -> Dict[str, Any]:
    return {
        "name": name,
        "collection_id": collection_id,
        "method": config.get("method") or "GET",
        "url": config.get("url", ""),
        "headers": enabled_pairs(config.get("headers")),
        "query_params": enabled_pairs(config.get("queryParams")),
        "body": config.get("body") or {"type": "none", "content": ""},
        "auth": config.get("auth") or {"type": "none"},
    }


def config_from_saved_request(record: Dict[str, Any]) -> Dict[str, Any]:
    """Rebuilds an editable request config from a saved request record."""
    headers = [
        {"id": f"header-{index}", "key": key, "value": value, "enabled": True}
        for index, (key, value) in enumerate((record.get("headers") or {}).items())
    ]
    query_params = [
        {"id": f"param-{index}", "key": key, "value": value, "enabled": True}
        for index, (key, value) in enumerate(
            (record.get("query_params") or {}).items()
        )
    ]

    return {
        "method": record.get("method") or "GET",
        "url": record.get("url", ""),
        "headers": headers,
        "queryParams": query_params,
        "body": record.get("body") or {"type": "none", "content": ""},
        "auth": record.get("auth") or {"type": "none"},
    }
