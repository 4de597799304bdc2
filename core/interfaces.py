"""Core interfaces and data models for the cloud function adapter.

This module defines the wire models exchanged with the cloud function
runtime and the protocol that wrapped applications must implement.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

Middleware = Callable[
    [httpx.Request, Callable[[httpx.Request], Awaitable[httpx.Response]]],
    Awaitable[httpx.Response],
]


class HttpEvent(BaseModel):
    """HTTP invocation event delivered by the cloud function runtime.

    Field names follow the runtime's camelCase wire format. Unknown keys are
    kept so application code can still reach them through the raw event.
    """

    model_config = ConfigDict(extra="allow")

    httpMethod: str
    path: str = "/"
    headers: Dict[str, str] = Field(default_factory=dict)
    isBase64Encoded: bool = False
    body: Optional[str] = None
    queryStringParameters: Optional[Dict[str, str]] = None
    pathParameters: Optional[Dict[str, str]] = None

    @field_validator("path", mode="before")
    @classmethod
    def default_path(cls, v: Any) -> Any:
        return v if isinstance(v, str) else "/"

    @field_validator("headers", mode="before")
    @classmethod
    def default_headers(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return {}
        return {str(k): str(val) for k, val in v.items() if val is not None}

    @field_validator("queryStringParameters", "pathParameters", mode="before")
    @classmethod
    def stringify_params(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return None
        return {str(k): str(val) for k, val in v.items() if val is not None}

    @field_validator("isBase64Encoded", mode="before")
    @classmethod
    def coerce_flag(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("body", mode="before")
    @classmethod
    def drop_non_string_body(cls, v: Any) -> Any:
        return v if isinstance(v, str) else None


class CloudFunctionResponse(BaseModel):
    """Response envelope returned to the cloud function runtime."""

    statusCode: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""
    isBase64Encoded: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the flat dictionary the runtime expects."""
        return self.model_dump(exclude_none=True)


class CloudFunctionContext(Protocol):
    """Protocol for the runtime context object.

    Runtimes differ in what they expose; every attribute is optional and
    read with getattr.
    """

    request_id: Optional[str]
    function_name: Optional[str]
    memory_limit_in_mb: Optional[int]


class FetchApplication(Protocol):
    """Application wrapped by the adapter.

    ``fetch`` may be a plain function or a coroutine function. ``use``
    registers a middleware that runs before every route.
    """

    def fetch(
        self, request: httpx.Request
    ) -> Union[httpx.Response, Awaitable[httpx.Response]]:
        ...

    def use(self, middleware: Middleware) -> Any:
        ...
