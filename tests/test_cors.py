"""Tests for CORS policy rendering and installation."""

import pytest

from core.app import FetchApp, json_response
from core.config_schema import CorsOptions
from server.adapters import serverless_app
from server.cors import build_cors_headers, install_cors


def make_app():
    app = FetchApp()
    calls = []

    @app.get("/items")
    async def items(request):
        calls.append(request.url.path)
        return json_response([1, 2, 3])

    @app.route("OPTIONS", "/items")
    async def items_options(request):
        calls.append("options-route")
        return json_response({}, status=200)

    return app, calls


class TestBuildCorsHeaders:
    """Test build_cors_headers function."""

    def test_default_policy(self):
        """Test the fixed policy installed by ``cors: true``."""
        headers = build_cors_headers(True)

        assert headers == {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type, Authorization",
        }

    def test_custom_policy_joins_lists(self):
        """Test that list values are joined with commas."""
        headers = build_cors_headers(
            CorsOptions(
                origin=["https://a.example", "https://b.example"],
                methods=["GET", "POST"],
                allowHeaders=["X-One", "X-Two"],
                exposeHeaders=["X-Request-ID", "X-Total"],
                credentials=True,
                maxAge=600,
            )
        )

        assert headers["Access-Control-Allow-Origin"] == "https://a.example,https://b.example"
        assert headers["Access-Control-Allow-Methods"] == "GET,POST"
        assert headers["Access-Control-Allow-Headers"] == "X-One,X-Two"
        assert headers["Access-Control-Expose-Headers"] == "X-Request-ID,X-Total"
        assert headers["Access-Control-Allow-Credentials"] == "true"
        assert headers["Access-Control-Max-Age"] == "600"

    def test_custom_policy_falls_back_to_defaults(self):
        """Test that absent fields use the default policy values."""
        headers = build_cors_headers(CorsOptions(origin="https://app.example"))

        assert headers["Access-Control-Allow-Origin"] == "https://app.example"
        assert headers["Access-Control-Allow-Methods"] == "GET, POST, PUT, DELETE, OPTIONS"
        assert headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"
        assert "Access-Control-Allow-Credentials" not in headers
        assert "Access-Control-Expose-Headers" not in headers
        assert "Access-Control-Max-Age" not in headers

    def test_zero_max_age_is_rendered(self):
        headers = build_cors_headers(CorsOptions(max_age=0))

        assert headers["Access-Control-Max-Age"] == "0"


class TestInstallCors:
    """Test install_cors and the resulting behaviour through the adapter."""

    def test_disabled_policy_installs_nothing(self):
        app, _ = make_app()

        assert install_cors(app, False) is False
        assert app.middlewares == []

    @pytest.mark.parametrize("path", ["/items", "/anything/else", "/"])
    def test_options_short_circuits_any_path(self, path):
        """Test that OPTIONS returns an empty 204 before any route runs."""
        app, calls = make_app()
        handler = serverless_app(app, cors=True, logging=False)

        response = handler({"httpMethod": "OPTIONS", "path": path, "headers": {}})

        assert response["statusCode"] == 204
        assert response["body"] == ""
        assert response["headers"]["access-control-allow-origin"] == "*"
        assert calls == []

    def test_headers_added_to_route_responses(self):
        """Test that CORS headers are applied to normal responses."""
        app, calls = make_app()
        handler = serverless_app(app, cors=True, logging=False)

        response = handler({"httpMethod": "GET", "path": "/items", "headers": {}})

        assert response["statusCode"] == 200
        assert response["headers"]["access-control-allow-origin"] == "*"
        assert response["headers"]["access-control-allow-methods"] == "GET, POST, PUT, DELETE, OPTIONS"
        assert calls == ["/items"]

    def test_headers_added_to_not_found_responses(self):
        """Test that the policy applies regardless of path."""
        app, _ = make_app()
        handler = serverless_app(
            app,
            cors={"origin": "https://app.example", "credentials": True},
            logging=False,
        )

        response = handler({"httpMethod": "GET", "path": "/missing", "headers": {}})

        assert response["statusCode"] == 404
        assert response["headers"]["access-control-allow-origin"] == "https://app.example"
        assert response["headers"]["access-control-allow-credentials"] == "true"

    def test_options_route_reached_without_cors(self):
        """Test that without CORS, OPTIONS requests reach the routes."""
        app, calls = make_app()
        handler = serverless_app(app, logging=False)

        response = handler({"httpMethod": "OPTIONS", "path": "/items", "headers": {}})

        assert response["statusCode"] == 200
        assert calls == ["options-route"]
