"""CORS policy installed on the wrapped application when the handler is created."""

import logging
from typing import Dict, Optional, Union

import httpx

from core.config_schema import (
    DEFAULT_CORS_ALLOW_HEADERS,
    DEFAULT_CORS_METHODS,
    DEFAULT_CORS_ORIGIN,
    CorsOptions,
    HeaderList,
)
from core.interfaces import FetchApplication, Middleware

logger = logging.getLogger(__name__)


def _join(value: Optional[HeaderList], default: Optional[str] = None) -> Optional[str]:
    if isinstance(value, list):
        return ",".join(value)
    return value or default


def build_cors_headers(cors: Union[bool, CorsOptions]) -> Dict[str, str]:
    """Render the response headers for a CORS policy.

    Args:
        cors: ``True`` for the default policy, or a CorsOptions instance

    Returns:
        Header name to value mapping
    """
    options = cors if isinstance(cors, CorsOptions) else CorsOptions()

    headers = {
        "Access-Control-Allow-Origin": _join(options.origin, DEFAULT_CORS_ORIGIN),
        "Access-Control-Allow-Methods": _join(options.methods, DEFAULT_CORS_METHODS),
        "Access-Control-Allow-Headers": _join(options.allow_headers, DEFAULT_CORS_ALLOW_HEADERS),
    }

    if options.credentials:
        headers["Access-Control-Allow-Credentials"] = "true"

    expose_headers = _join(options.expose_headers)
    if expose_headers:
        headers["Access-Control-Expose-Headers"] = expose_headers

    if options.max_age is not None:
        headers["Access-Control-Max-Age"] = str(options.max_age)

    return headers


def cors_middleware(cors: Union[bool, CorsOptions]) -> Middleware:
    """Create a middleware applying the policy to every request.

    OPTIONS requests are answered with an empty 204 before any route runs.
    """
    cors_headers = build_cors_headers(cors)

    async def middleware(request, call_next):
        if request.method == "OPTIONS":
            return httpx.Response(204, headers=cors_headers)

        response = await call_next(request)
        for name, value in cors_headers.items():
            response.headers[name] = value
        return response

    return middleware


def install_cors(app: FetchApplication, cors: Union[bool, CorsOptions]) -> bool:
    """Register the CORS middleware on ``app`` if a policy is configured.

    Returns:
        True if a middleware was installed
    """
    if cors is False or cors is None:
        return False

    app.use(cors_middleware(cors))
    logger.info(
        "CORS policy installed",
        extra={"cors_policy": "default" if cors is True else "custom"},
    )
    return True
