"""Deployable cloud function entry point.

Point the runtime at ``server.cloud_function.main``. The wrapped application
is named by the ``CLOUDFN_APP`` environment variable as
``package.module:attribute``; adapter options come from
``CLOUDFN_ADAPTER_CONFIG`` or ``config.yaml``.
"""

import importlib
import logging
import os
from typing import Any, Dict, Optional

from core.config_schema import AdapterOptions
from core.interfaces import CloudFunctionContext, FetchApplication
from core.logging_utils import configure_json_logging
from core.validators import ConfigurationError, get_logging_config, load_options
from server.adapters.cloud_function import CloudFunctionHandler, serverless_app
from server.http_handler import build_error_response

APP_ENV_VAR = "CLOUDFN_APP"

logger = logging.getLogger(__name__)

# Global state reused across warm invocations
_options: Optional[AdapterOptions] = None
_handler: Optional[CloudFunctionHandler] = None


def _load_options() -> AdapterOptions:
    global _options

    if _options is None:
        _options = load_options()
        logging_config = get_logging_config(_options)
        configure_json_logging(level=logging_config["level"], pretty=False)
    return _options


def load_application(target: str) -> FetchApplication:
    """Import the application named by ``module:attribute``.

    Raises:
        ConfigurationError: If the target is malformed or has no ``fetch``
    """
    module_path, _, attribute = target.partition(":")
    if not module_path or not attribute:
        raise ConfigurationError(
            f"Invalid application target '{target}'. Expected 'package.module:attribute'"
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ConfigurationError(f"Failed to import application module {module_path}: {e}") from e

    app = getattr(module, attribute, None)
    if app is None or not callable(getattr(app, "fetch", None)):
        raise ConfigurationError(
            f"'{target}' does not name an application with a fetch() method"
        )
    return app


def get_handler() -> CloudFunctionHandler:
    """Get or create the handler for this process.

    Uses lazy initialization so warm starts reuse the application and the
    installed middleware.
    """
    global _handler

    if _handler is None:
        options = _load_options()
        target = os.environ.get(APP_ENV_VAR)
        if not target:
            raise ConfigurationError(
                f"{APP_ENV_VAR} is not set. Expected 'package.module:attribute'"
            )
        app = load_application(target)
        _handler = serverless_app(app, options)
        logger.info(f"Initialized handler for {target}")

    return _handler


def main(event: Dict[str, Any], context: Optional[CloudFunctionContext] = None) -> Dict[str, Any]:
    """Cloud function entry point.

    Args:
        event: HTTP event from the runtime
        context: Runtime context

    Returns:
        Response envelope dictionary
    """
    try:
        handler = get_handler()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}", exc_info=True)
        return build_error_response(500, f"Server configuration error: {e}").to_dict()

    return handler(event, context)
