"""Translation between cloud function HTTP events and httpx request/response values.

These functions are pure with respect to the runtime: they do no logging,
no timing and no network I/O, so the dispatcher in
``server.adapters.cloud_function`` can compose them freely.
"""

import base64
import json
import numbers
from typing import Any, Iterable, Optional

import httpx
from pydantic import ValidationError

from core.interfaces import CloudFunctionResponse, HttpEvent
from server.errors import DEFAULT_ERROR_MESSAGE, InvalidEventError

DEFAULT_ORIGIN = "https://cloudbase.local"
BODYLESS_METHODS = ("GET", "HEAD")


def validate_event(event: Any) -> HttpEvent:
    """Check that the payload is an HTTP event and parse it.

    Args:
        event: Raw invocation payload

    Returns:
        Parsed HttpEvent

    Raises:
        InvalidEventError: If the payload has no usable ``httpMethod``
    """
    if not isinstance(event, dict):
        raise InvalidEventError()

    method = event.get("httpMethod")
    if not isinstance(method, str) or not method.strip():
        raise InvalidEventError()

    try:
        return HttpEvent.model_validate(event)
    except ValidationError as e:
        raise InvalidEventError(f"Malformed HTTP event: {e.error_count()} invalid field(s)") from e


def _resolve_origin(headers: httpx.Headers) -> str:
    referer = headers.get("referer")
    if referer:
        try:
            url = httpx.URL(referer)
        except httpx.InvalidURL:
            return DEFAULT_ORIGIN
        if url.scheme in ("http", "https") and url.host:
            return f"{url.scheme}://{url.netloc.decode('ascii')}"
    return DEFAULT_ORIGIN


def strip_base_path(path: str, base_path: str) -> str:
    """Remove ``base_path`` from the start of ``path`` when it matches.

    Paths outside the base path are returned unchanged.
    """
    if base_path and path.startswith(base_path):
        return path[len(base_path):] or "/"
    return path


def build_request(
    event: HttpEvent,
    base_path: str = "",
    context: Optional[Any] = None,
) -> httpx.Request:
    """Build an httpx.Request from an HTTP event.

    Args:
        event: Validated HTTP event
        base_path: Prefix to strip from the event path
        context: Runtime context, exposed to the application via extensions

    Returns:
        Request with an absolute URL

    Raises:
        binascii.Error: If a base64-flagged body cannot be decoded
    """
    method = event.httpMethod.upper() if event.httpMethod else "GET"
    # Event header values may carry non-ASCII text
    headers = httpx.Headers(event.headers, encoding="utf-8")

    content: Optional[Any] = None
    if method not in BODYLESS_METHODS and event.body:
        if event.isBase64Encoded:
            content = base64.b64decode(event.body, validate=True)
        else:
            content = event.body

    path = strip_base_path(event.path, base_path)
    url = httpx.URL(_resolve_origin(headers)).join(path)

    if event.queryStringParameters:
        params = url.params
        for key, value in event.queryStringParameters.items():
            params = params.add(key, value)
        url = url.copy_with(params=params)

    return httpx.Request(
        method,
        url,
        headers=headers,
        content=content,
        extensions={
            "event": event.model_dump(),
            "context": context,
            "path_parameters": dict(event.pathParameters or {}),
        },
    )


def is_binary_content_type(content_type: str, binary_mime_types: Iterable[str]) -> bool:
    """Return True if any allowlisted type occurs within ``content_type``."""
    return any(mime_type in content_type for mime_type in binary_mime_types)


async def read_body(response: httpx.Response) -> bytes:
    """Read a response body to completion, whichever stream type it carries."""
    if isinstance(response.stream, httpx.AsyncByteStream):
        return await response.aread()
    return response.read()


async def build_response(
    response: httpx.Response,
    binary_mime_types: Iterable[str] = (),
) -> CloudFunctionResponse:
    """Build the runtime response envelope from an application response.

    Args:
        response: Response returned by the wrapped application
        binary_mime_types: Content-type substrings that select base64 encoding

    Returns:
        CloudFunctionResponse

    Raises:
        TypeError: If the application did not return an httpx.Response
    """
    if not isinstance(response, httpx.Response):
        raise TypeError(
            f"Application returned {type(response).__name__}, expected httpx.Response"
        )

    content_type = response.headers.get("content-type", "")
    content = await read_body(response)

    if is_binary_content_type(content_type, binary_mime_types):
        body = base64.b64encode(content).decode("ascii")
        is_base64 = True
    else:
        body = response.text
        is_base64 = False

    # Repeated headers are merged into a single comma-separated value
    headers = {key: value for key, value in response.headers.items()}

    return CloudFunctionResponse(
        statusCode=response.status_code,
        headers=headers,
        body=body,
        isBase64Encoded=is_base64,
    )


def error_status(error: BaseException) -> int:
    """Status code carried by an exception, or 500."""
    status = getattr(error, "status", None)
    if isinstance(status, numbers.Real) and not isinstance(status, bool) and 100 <= status <= 599:
        return int(status)
    return 500


def error_message(error: BaseException) -> str:
    """Message carried by an exception, or a generic message."""
    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message:
        message = str(error)
    return message or DEFAULT_ERROR_MESSAGE


def build_error_response(status_code: int, message: str) -> CloudFunctionResponse:
    """Build a JSON error envelope.

    Args:
        status_code: HTTP status code
        message: Error message placed in the ``error`` field

    Returns:
        CloudFunctionResponse
    """
    return CloudFunctionResponse(
        statusCode=status_code,
        headers={"Content-Type": "application/json"},
        body=json.dumps({"error": message}),
    )


def favicon_response() -> CloudFunctionResponse:
    """Empty 204 returned for browser favicon probes."""
    return CloudFunctionResponse(statusCode=204)
