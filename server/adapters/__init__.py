"""Cloud runtime adapters.

Adapters transform a runtime's HTTP event format into httpx requests for a
fetch-style application and transform the application's responses back.
Each adapter handles:
- Event validation and request construction
- Timeout racing around the application call
- Response envelope construction (text vs base64 bodies)
"""

from .cloud_function import CloudFunctionHandler, serverless_app

__all__ = ["CloudFunctionHandler", "serverless_app"]
