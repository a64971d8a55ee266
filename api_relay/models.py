"""
Request and response shapes exchanged with the relay
"""

from typing import Any, Dict, Optional

BODYLESS_METHODS = ("GET", "HEAD")


class MalformedRequestError(ValueError):
    """Raised when a payload cannot be read as a RequestSpec."""


class RequestSpec:
    """
    The outbound HTTP call a caller wants performed.
    """

    def __init__(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None,
    ):
        self.url = url
        self.method = method
        self.headers = headers if headers is not None else {}
        self.body = body

    @property
    def sends_body(self) -> bool:
        # GET and HEAD always go out bodiless, even when a body was supplied
        return bool(self.body) and self.method not in BODYLESS_METHODS

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
        }
        if self.body is not None:
            data["body"] = self.body
        return data


class ResponseEnvelope:
    def __init__(
        self,
        status: int,
        status_text: str,
        headers: Dict[str, str],
        body: str,
        time: int,
        size: int,
        body_encoding: Optional[str] = None,
    ):
        self.status = status
        self.status_text = status_text
        self.headers = headers
        self.body = body
        self.time = time
        self.size = size
        self.body_encoding = body_encoding

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": self.status,
            "statusText": self.status_text,
            "headers": self.headers,
            "body": self.body,
            "time": self.time,
            "size": self.size,
        }
        if self.body_encoding:
            data["bodyEncoding"] = self.body_encoding
        return data


class ErrorEnvelope:
    def __init__(self, error: str):
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error}
