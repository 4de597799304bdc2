"""Pydantic configuration schema for the cloud function adapter."""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_BINARY_MIME_TYPES = [
    "application/octet-stream",
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "audio/mpeg",
    "video/mp4",
    "font/woff",
    "font/woff2",
]

DEFAULT_CORS_ORIGIN = "*"
DEFAULT_CORS_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
DEFAULT_CORS_ALLOW_HEADERS = "Content-Type, Authorization"

HeaderList = Union[str, List[str]]


class CorsOptions(BaseModel):
    """Custom CORS policy.

    Every field is optional; missing origin, methods and allow-headers fall
    back to the same defaults as ``cors: true``.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    origin: Optional[HeaderList] = None
    methods: Optional[HeaderList] = None
    allow_headers: Optional[HeaderList] = Field(None, alias="allowHeaders")
    expose_headers: Optional[HeaderList] = Field(None, alias="exposeHeaders")
    credentials: bool = False
    max_age: Optional[int] = Field(None, alias="maxAge", ge=0)


class AdapterOptions(BaseModel):
    """Configuration captured once when the handler is created."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    logging: bool = Field(default=True, description="Log one line per request and response")
    timeout: int = Field(default=30000, ge=1, description="Request timeout in milliseconds")
    base_path: str = Field(default="", alias="basePath", description="Prefix stripped from paths")
    binary_mime_types: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BINARY_MIME_TYPES),
        alias="binaryMimeTypes",
        description="Content-type substrings returned base64-encoded",
    )
    cors: Union[bool, CorsOptions] = Field(default=False, description="CORS policy")
    log_level: str = Field(default="INFO", alias="logLevel")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000
