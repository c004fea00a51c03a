"""
Cordra Client - Errors
Exceptions raised for failed Cordra requests
"""

import json
from typing import Any, Optional, Tuple

import httpx


class CordraError(Exception):
    """
    A request to Cordra failed.

    Attributes:
        status: HTTP status code, None when no response was received
        status_text: HTTP reason phrase
        message: Best message extracted from the response
        body: Parsed JSON error body, if any
    """

    def __init__(self, message: str, status: Optional[int] = None,
                 status_text: Optional[str] = None, body: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.status_text = status_text
        self.body = body

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.status} {self.message}"
        return self.message


class UnauthenticatedError(CordraError):
    """Credentials are required but none could be produced"""

    def __init__(self, message: str = "Unauthenticated"):
        super().__init__(message)


def get_error_message(response: httpx.Response) -> Tuple[str, Any]:
    """
    Extract an error message and JSON body from a response.

    Returns:
        (message, body) where body is None unless the response was JSON
    """
    text = response.text
    if not text:
        return f"Error: {response.status_code} {response.reason_phrase}", None
    try:
        body = json.loads(text)
    except ValueError:
        return text, None
    if isinstance(body, dict):
        for key in ('message', 'error_description', 'error'):
            if body.get(key):
                return body[key], body
    return text, body


def check_for_errors(response: httpx.Response) -> httpx.Response:
    """Return a successful response unchanged, raise CordraError otherwise"""
    if response.is_success:
        return response
    message, body = get_error_message(response)
    raise CordraError(
        message,
        status=response.status_code,
        status_text=response.reason_phrase,
        body=body,
    )
