"""Run a cloud function handler locally behind a real HTTP server.

Each incoming request is converted into the runtime's HTTP event, passed
to the handler, and the response envelope is converted back.

Usage:
    python scripts/local_server.py examples.hello.app:main [port]
"""

import asyncio
import base64
import importlib
import logging
import sys
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple

# Add project root to Python path so we can import from core and server
project_root = Path(__file__).parent.parent.resolve()
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from aiohttp import web

from core.logging_utils import configure_json_logging
from core.validators import get_logging_config, load_options
from server.adapters.cloud_function import CloudFunctionHandler
from server.http_handler import is_binary_content_type

logger = logging.getLogger(__name__)

# Request content types forwarded as base64 rather than text
BINARY_REQUEST_TYPES = ["application/octet-stream", "multipart/form-data", "image/", "audio/", "video/"]


class LocalContext:
    """Stand-in for the runtime context object."""

    def __init__(self) -> None:
        self.request_id = str(uuid.uuid4())
        self.function_name = "local"
        self.memory_limit_in_mb = None


def _encode_body(raw_body: bytes, content_type: str) -> Tuple[str, bool]:
    if not is_binary_content_type(content_type, BINARY_REQUEST_TYPES):
        try:
            return raw_body.decode("utf-8"), False
        except UnicodeDecodeError:
            logger.debug("Request body is not UTF-8, forwarding as base64")
    return base64.b64encode(raw_body).decode("ascii"), True


def merge_headers(items: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    """Flatten request headers, joining repeated names with ", "."""
    merged: Dict[str, str] = {}
    for name, value in items:
        key = name.lower()
        merged[key] = f"{merged[key]}, {value}" if key in merged else value
    return merged


async def request_to_event(request: web.Request) -> Dict[str, Any]:
    """Convert an aiohttp request into an HTTP invocation event."""
    raw_body = await request.read()
    content_type = request.headers.get("Content-Type", "")

    event: Dict[str, Any] = {
        "httpMethod": request.method,
        "path": request.path,
        "headers": merge_headers(request.headers.items()),
        "queryStringParameters": dict(request.query) or None,
        "isBase64Encoded": False,
    }

    if raw_body:
        event["body"], event["isBase64Encoded"] = _encode_body(raw_body, content_type)

    return event


def event_response_to_web(response: Dict[str, Any]) -> web.Response:
    """Convert a response envelope into an aiohttp response."""
    body = response.get("body", "")
    if response.get("isBase64Encoded"):
        payload = base64.b64decode(body)
    else:
        payload = body.encode("utf-8")

    headers = dict(response.get("headers", {}))
    # aiohttp computes these from the payload
    for name in list(headers):
        if name.lower() in ("content-length", "transfer-encoding", "content-encoding"):
            headers.pop(name)

    return web.Response(
        body=payload,
        status=response.get("statusCode", 200),
        headers=headers,
    )


def make_web_app(handler: CloudFunctionHandler) -> web.Application:
    """Build an aiohttp application forwarding every request to ``handler``."""

    async def handle(request: web.Request) -> web.Response:
        start_time = time.perf_counter()
        event = await request_to_event(request)
        response = await handler.handle(event, LocalContext())
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "Local request forwarded",
            extra={
                "request_path": request.path,
                "response_status": response.get("statusCode"),
                "duration_ms": round(duration_ms, 2),
            },
        )
        return event_response_to_web(response)

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handle)
    return app


def load_handler(target: str) -> CloudFunctionHandler:
    """Import a handler named by ``module:attribute``."""
    module_path, _, attribute = target.partition(":")
    module = importlib.import_module(module_path)
    handler = getattr(module, attribute)
    if not isinstance(handler, CloudFunctionHandler):
        raise TypeError(f"{target} is not a CloudFunctionHandler")
    return handler


async def start_server(target: str, port: int = 8000) -> None:
    """Start local HTTP server."""
    handler = load_handler(target)

    runner = web.AppRunner(make_web_app(handler))
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()

    print("\n" + "=" * 50)
    print("🌐 Local cloud function running!")
    print("=" * 50)
    print(f"Handler: {target}")
    print(f"URL: http://localhost:{port}/")
    print("\nPress Ctrl+C to stop")
    print("=" * 50 + "\n")

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(
            "Error: handler target required\n"
            "Usage: python scripts/local_server.py package.module:handler [port]",
            file=sys.stderr,
        )
        sys.exit(1)

    # Pretty-print JSON for better local readability
    logging_config = get_logging_config(load_options())
    configure_json_logging(level=logging_config["level"], pretty=True)

    try:
        asyncio.run(start_server(sys.argv[1], int(sys.argv[2]) if len(sys.argv) > 2 else 8000))
    except KeyboardInterrupt:
        print("\n👋 Shutting down...")
