"""Tests for event/request and response/envelope translation.

These tests verify event validation, request construction (base path,
query parameters, bodies, synthesized origin) and response construction
(text vs base64 bodies, headers, status codes).
"""

import base64
import binascii
import json

import httpx
import pytest

from core.config_schema import DEFAULT_BINARY_MIME_TYPES
from core.interfaces import HttpEvent
from server.errors import HTTPException, InvalidEventError, InvocationTimeoutError
from server.http_handler import (
    DEFAULT_ORIGIN,
    build_error_response,
    build_request,
    build_response,
    error_message,
    error_status,
    strip_base_path,
    validate_event,
)


def make_event(**overrides):
    event = {"httpMethod": "GET", "path": "/", "headers": {}}
    event.update(overrides)
    return HttpEvent.model_validate(event)


class TestValidateEvent:
    """Test validate_event function."""

    def test_accepts_minimal_event(self):
        """Test that an event with only httpMethod is accepted with defaults."""
        event = validate_event({"httpMethod": "GET"})

        assert event.httpMethod == "GET"
        assert event.path == "/"
        assert event.headers == {}
        assert event.body is None

    def test_rejects_missing_method(self):
        """Test that a missing httpMethod is rejected with status 400."""
        with pytest.raises(InvalidEventError) as exc_info:
            validate_event({"path": "/"})

        assert exc_info.value.status == 400

    @pytest.mark.parametrize("method", [None, 42, "", "   ", ["GET"]])
    def test_rejects_invalid_method(self, method):
        """Test that non-string or blank methods are rejected."""
        with pytest.raises(InvalidEventError):
            validate_event({"httpMethod": method, "path": "/"})

    @pytest.mark.parametrize("payload", [None, "GET /", ["GET"], 1])
    def test_rejects_non_dict_payload(self, payload):
        """Test that non-mapping payloads are rejected."""
        with pytest.raises(InvalidEventError):
            validate_event(payload)

    def test_coerces_invalid_optional_fields(self):
        """Test that badly typed optional fields fall back to defaults."""
        event = validate_event(
            {
                "httpMethod": "POST",
                "path": 123,
                "headers": "not-a-dict",
                "queryStringParameters": {"page": 2, "skip": None},
                "body": {"not": "a string"},
            }
        )

        assert event.path == "/"
        assert event.headers == {}
        assert event.queryStringParameters == {"page": "2"}
        assert event.body is None

    def test_keeps_extra_fields(self):
        """Test that unknown event keys are preserved."""
        event = validate_event({"httpMethod": "GET", "requestContext": {"stage": "prod"}})

        assert event.model_dump()["requestContext"] == {"stage": "prod"}


class TestBuildRequest:
    """Test build_request function."""

    def test_uses_placeholder_origin(self):
        """Test that the URL gets the placeholder origin without a referer."""
        request = build_request(make_event(path="/users/5"))

        assert str(request.url) == f"{DEFAULT_ORIGIN}/users/5"
        assert request.method == "GET"

    def test_uses_referer_origin(self):
        """Test that the referer's origin is reused for the URL."""
        request = build_request(
            make_event(path="/items", headers={"Referer": "https://example.com:8443/page?x=1"})
        )

        assert str(request.url) == "https://example.com:8443/items"

    def test_invalid_referer_falls_back_to_placeholder(self):
        """Test that a referer without scheme/host is ignored."""
        request = build_request(make_event(path="/items", headers={"referer": "not a url"}))

        assert request.url.host == "cloudbase.local"

    def test_strips_base_path(self):
        """Test that the configured base path is removed."""
        request = build_request(make_event(path="/api/users/5"), base_path="/api")

        assert request.url.path == "/users/5"

    def test_leaves_unmatched_path_unchanged(self):
        """Test that paths outside the base path pass through."""
        request = build_request(make_event(path="/other"), base_path="/api")

        assert request.url.path == "/other"

    def test_base_path_only_becomes_root(self):
        """Test that stripping the whole path yields '/'."""
        request = build_request(make_event(path="/api"), base_path="/api")

        assert request.url.path == "/"

    def test_appends_query_parameters(self):
        """Test that queryStringParameters are appended to the URL."""
        request = build_request(
            make_event(path="/search", queryStringParameters={"q": "hello world", "page": "2"})
        )

        assert request.url.params["q"] == "hello world"
        assert request.url.params["page"] == "2"

    def test_query_parameters_keep_embedded_query(self):
        """Test that explicit parameters are appended after a query already in the path."""
        request = build_request(
            make_event(path="/search?sort=asc", queryStringParameters={"q": "x"})
        )

        assert request.url.params["sort"] == "asc"
        assert request.url.params["q"] == "x"

    @pytest.mark.parametrize("method", ["GET", "HEAD", "get"])
    def test_bodyless_methods_drop_body(self, method):
        """Test that GET and HEAD requests never carry a body."""
        request = build_request(make_event(httpMethod=method, body="ignored"))

        assert request.content == b""

    def test_text_body_is_passed_through(self):
        """Test that a plain body is forwarded as text."""
        request = build_request(make_event(httpMethod="POST", body='{"a": 1}'))

        assert request.content == b'{"a": 1}'

    def test_base64_body_is_decoded(self):
        """Test that base64-flagged bodies are decoded to raw bytes."""
        raw = bytes(range(256))
        request = build_request(
            make_event(
                httpMethod="PUT",
                body=base64.b64encode(raw).decode("ascii"),
                isBase64Encoded=True,
            )
        )

        assert request.content == raw

    def test_malformed_base64_body_raises(self):
        """Test that an undecodable base64 body raises."""
        with pytest.raises(binascii.Error):
            build_request(make_event(httpMethod="POST", body="%%%", isBase64Encoded=True))

    def test_headers_are_case_insensitive(self):
        """Test that request headers can be read in any case."""
        request = build_request(make_event(headers={"X-Custom-Header": "value"}))

        assert request.headers["x-custom-header"] == "value"

    def test_non_ascii_header_values(self):
        """Test that header values outside ASCII are accepted and read back intact."""
        request = build_request(make_event(headers={"X-User-Name": "José", "X-City": "Zürich"}))

        assert request.headers["x-user-name"] == "José"
        assert request.headers["x-city"] == "Zürich"

    def test_extensions_expose_event_and_context(self):
        """Test that the raw event, context and path parameters reach the application."""
        context = {"request_id": "abc"}
        request = build_request(
            make_event(path="/users/5", pathParameters={"id": "5"}),
            context=context,
        )

        assert request.extensions["context"] is context
        assert request.extensions["path_parameters"] == {"id": "5"}
        assert request.extensions["event"]["path"] == "/users/5"


class TestStripBasePath:
    """Test strip_base_path function."""

    def test_empty_base_path(self):
        assert strip_base_path("/users", "") == "/users"

    def test_prefix_match_is_textual(self):
        """Test that matching is a plain prefix match."""
        assert strip_base_path("/apiary", "/api") == "ary"


class TestBuildResponse:
    """Test build_response function."""

    @pytest.mark.asyncio
    async def test_text_response(self):
        """Test that text responses are returned decoded."""
        response = httpx.Response(
            201,
            text="héllo",
            headers={"Content-Type": "text/plain; charset=utf-8", "X-Trace": "1"},
        )

        result = await build_response(response, DEFAULT_BINARY_MIME_TYPES)

        assert result.statusCode == 201
        assert result.body == "héllo"
        assert result.isBase64Encoded is False
        assert result.headers["x-trace"] == "1"

    @pytest.mark.asyncio
    async def test_binary_response_is_base64(self):
        """Test that allowlisted content types are base64-encoded."""
        raw = b"\x89PNG\r\n\x1a\n\x00\xff"
        response = httpx.Response(200, content=raw, headers={"Content-Type": "image/png"})

        result = await build_response(response, DEFAULT_BINARY_MIME_TYPES)

        assert result.isBase64Encoded is True
        assert base64.b64decode(result.body) == raw

    @pytest.mark.asyncio
    async def test_binary_match_is_substring(self):
        """Test that content types containing an allowlisted type count as binary."""
        response = httpx.Response(
            200,
            content=b"%PDF-1.7",
            headers={"Content-Type": "application/pdf; name=report.pdf"},
        )

        result = await build_response(response, ["application/pdf"])

        assert result.isBase64Encoded is True
        assert result.body == base64.b64encode(b"%PDF-1.7").decode("ascii")

    @pytest.mark.asyncio
    async def test_missing_content_type_is_text(self):
        """Test that responses without a content type are treated as text."""
        response = httpx.Response(200, content=b"plain")

        result = await build_response(response, DEFAULT_BINARY_MIME_TYPES)

        assert result.body == "plain"
        assert result.isBase64Encoded is False

    @pytest.mark.asyncio
    async def test_reads_async_stream(self):
        """Test that async streamed bodies are read in full."""

        async def chunks():
            yield b"hello "
            yield b"world"

        response = httpx.Response(200, content=chunks(), headers={"Content-Type": "text/plain"})

        result = await build_response(response)

        assert result.body == "hello world"

    @pytest.mark.asyncio
    async def test_reads_sync_stream(self):
        """Test that sync streamed bodies are read in full."""
        response = httpx.Response(
            200,
            content=iter([b"\x00", b"\x01"]),
            headers={"Content-Type": "application/octet-stream"},
        )

        result = await build_response(response, DEFAULT_BINARY_MIME_TYPES)

        assert base64.b64decode(result.body) == b"\x00\x01"

    @pytest.mark.asyncio
    async def test_duplicate_headers_are_merged(self):
        """Test that repeated headers are kept as one comma-joined value."""
        response = httpx.Response(
            200,
            headers=[("Vary", "Origin"), ("Vary", "Accept")],
        )

        result = await build_response(response)

        assert result.headers["vary"] == "Origin, Accept"

    @pytest.mark.asyncio
    async def test_rejects_non_response(self):
        """Test that a non-httpx.Response return value is an error."""
        with pytest.raises(TypeError):
            await build_response({"statusCode": 200})


class TestErrorMapping:
    """Test error_status, error_message and build_error_response."""

    def test_status_from_exception(self):
        assert error_status(HTTPException(404, "Not here")) == 404

    def test_timeout_maps_to_500(self):
        assert error_status(InvocationTimeoutError(100)) == 500

    def test_float_status_is_accepted(self):
        """Test that any non-bool real number in range counts as a status."""
        error = RuntimeError("gone")
        error.status = 404.0

        assert error_status(error) == 404
        assert isinstance(error_status(error), int)

    def test_out_of_range_status_maps_to_500(self):
        error = RuntimeError("odd")
        error.status = 42.5

        assert error_status(error) == 500

    def test_non_numeric_status_maps_to_500(self):
        """Test that non-integer status attributes are ignored."""
        error = RuntimeError("boom")
        error.status = "teapot"

        assert error_status(error) == 500

    def test_bool_status_maps_to_500(self):
        error = RuntimeError("boom")
        error.status = True

        assert error_status(error) == 500

    def test_message_from_exception(self):
        assert error_message(ValueError("bad value")) == "bad value"

    def test_generic_message_when_empty(self):
        """Test that exceptions without a message get a generic one."""
        assert error_message(RuntimeError()) == "Internal Server Error"

    def test_error_response_shape(self):
        result = build_error_response(418, "teapot").to_dict()

        assert result == {
            "statusCode": 418,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"error": "teapot"}),
        }
