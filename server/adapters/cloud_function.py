"""Cloud function adapter for fetch-style applications.

``serverless_app`` wraps an application exposing ``fetch(request)`` into a
handler accepting the runtime's HTTP event and returning its response
envelope. Each invocation validates the event, builds an httpx.Request,
races the application against the configured timeout and converts the
httpx.Response back into the envelope.
"""

import asyncio
import inspect
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

import httpx

from core.config_schema import AdapterOptions
from core.interfaces import CloudFunctionResponse, FetchApplication
from core.logging_utils import format_request_log, format_response_log
from core.validators import validate_options
from server.cors import install_cors
from server.errors import InvalidEventError, InvocationTimeoutError
from server.http_handler import (
    build_error_response,
    build_request,
    build_response,
    error_message,
    error_status,
    favicon_response,
    validate_event,
)

module_logger = logging.getLogger(__name__)

FAVICON_PATH = "/favicon.ico"

# Sync ``fetch`` implementations run here. Kept outside the event loop's
# default executor so a timed-out call never blocks loop shutdown.
_executor = ThreadPoolExecutor(thread_name_prefix="cloudfn-fetch")


def _discard_result(task: "asyncio.Future[Any]") -> None:
    """Consume the outcome of an abandoned application call."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        module_logger.debug(
            f"Application call finished after timeout with error: {exc}",
            extra={"error_type": type(exc).__name__},
        )


class CloudFunctionHandler:
    """Handler produced by ``serverless_app``.

    Call it synchronously (``handler(event, context)``) from runtimes that
    expect a plain function, or await ``handler.handle(event, context)``
    from runtimes that run their own event loop.
    """

    def __init__(
        self,
        app: FetchApplication,
        options: AdapterOptions,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.app = app
        self.options = options
        self.logger = logger or module_logger

    def __call__(self, event: Any, context: Any = None) -> Dict[str, Any]:
        """Process one invocation on a fresh event loop.

        The loop is closed before returning, so an async application call
        left running after a timeout is cancelled at that point. Blocking
        ``fetch`` calls keep running in their worker thread.
        """
        return asyncio.run(self.handle(event, context))

    async def handle(self, event: Any, context: Any = None) -> Dict[str, Any]:
        """Process one invocation.

        Args:
            event: HTTP event from the runtime
            context: Runtime context object

        Returns:
            Response envelope dictionary (statusCode, headers, body, isBase64Encoded)
        """
        start_time = time.perf_counter()

        try:
            http_event = validate_event(event)
        except InvalidEventError as e:
            self.logger.warning(
                f"Rejected invocation: {e}",
                extra={"event_type": type(event).__name__},
            )
            return build_error_response(e.status, str(e)).to_dict()

        try:
            if http_event.path == FAVICON_PATH:
                return favicon_response().to_dict()

            if self.options.logging:
                self.logger.info(
                    f"[REQUEST] {http_event.httpMethod} {http_event.path}",
                    extra=format_request_log(
                        http_method=http_event.httpMethod,
                        request_path=http_event.path,
                        query_params=http_event.queryStringParameters,
                        headers=http_event.headers,
                        context=context,
                    ),
                )

            request = build_request(http_event, self.options.base_path, context)
            response = await self._dispatch(request)

            if self.options.logging:
                duration_ms = (time.perf_counter() - start_time) * 1000
                self.logger.info(
                    f"[RESPONSE] Status: {response.statusCode}, Duration: {duration_ms:.0f}ms",
                    extra=format_response_log(response.statusCode, duration_ms),
                )

            return response.to_dict()

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            status_code = error_status(e)
            self.logger.error(
                f"[ERROR] Request processing failed: {e}",
                extra={
                    "error_type": type(e).__name__,
                    "response_status": status_code,
                    "duration_ms": round(duration_ms, 2),
                },
                exc_info=True,
            )
            return build_error_response(status_code, error_message(e)).to_dict()

    async def _dispatch(self, request: httpx.Request) -> CloudFunctionResponse:
        """Race the application against the timeout and build the envelope.

        On timeout the adapter does not cancel the application call. Under
        ``handle()`` it keeps running on the caller's loop and its eventual
        result is dropped; see ``__call__`` for the sync entry point.
        """
        task = asyncio.ensure_future(self._call_app(request))
        done, _ = await asyncio.wait({task}, timeout=self.options.timeout_seconds)

        if task not in done:
            task.add_done_callback(_discard_result)
            raise InvocationTimeoutError(self.options.timeout)

        return await build_response(task.result(), self.options.binary_mime_types)

    async def _call_app(self, request: httpx.Request) -> Any:
        if inspect.iscoroutinefunction(self.app.fetch):
            return await self.app.fetch(request)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(_executor, self.app.fetch, request)
        if inspect.isawaitable(result):
            result = await result
        return result


def serverless_app(
    app: FetchApplication,
    options: Optional[AdapterOptions] = None,
    logger: Optional[logging.Logger] = None,
    **overrides: Any,
) -> CloudFunctionHandler:
    """Wrap a fetch-style application as a cloud function handler.

    The CORS policy, if any, is installed on ``app`` here, once.

    Args:
        app: Application exposing ``fetch`` and ``use``
        options: Adapter options; defaults apply when omitted
        logger: Logger for request, response and error lines
        **overrides: Individual option values (e.g. ``timeout=5000``,
            ``basePath="/api"``) applied on top of ``options``

    Returns:
        CloudFunctionHandler
    """
    if options is None:
        options = AdapterOptions()
    if overrides:
        override = validate_options(overrides)
        options = options.model_copy(
            update={name: getattr(override, name) for name in override.model_fields_set}
        )

    install_cors(app, options.cors)

    handler = CloudFunctionHandler(app, options, logger)
    (logger or module_logger).info(
        "Created cloud function handler",
        extra={
            "timeout_ms": options.timeout,
            "base_path": options.base_path,
            "cors_enabled": options.cors is not False,
        },
    )
    return handler
