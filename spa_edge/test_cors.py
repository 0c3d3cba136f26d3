"""Tests for the dedicated CORS layer."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from spa_edge.cors import add_cors, allowed_origins
from spa_edge.vars import UpstreamConfig


@pytest.fixture
def app():
    test_app = FastAPI()

    @test_app.get("/api/ping")
    async def ping():
        return {"pong": True}

    add_cors(
        test_app,
        mode="middleware",
        origins=["http://localhost:3000", "https://login.partner.example"],
    )
    return test_app


@pytest.fixture
def client(app):
    return TestClient(app)


class TestAllowedOrigins:
    def test_includes_upstream_origin(self):
        upstream = UpstreamConfig("https://api.example.com/api", includes_prefix=True)
        assert allowed_origins(["http://localhost:3000"], upstream) == [
            "http://localhost:3000",
            "https://api.example.com",
        ]

    def test_no_upstream(self):
        upstream = UpstreamConfig("", includes_prefix=False)
        assert allowed_origins(["http://localhost:3000"], upstream) == [
            "http://localhost:3000"
        ]

    def test_deduplicates_and_strips_slash(self):
        upstream = UpstreamConfig("http://localhost:3000", includes_prefix=True)
        assert allowed_origins(["http://localhost:3000/"], upstream) == [
            "http://localhost:3000"
        ]


class TestCorsMiddleware:
    def test_allowed_origin(self, client):
        resp = client.get("/api/ping", headers={"Origin": "http://localhost:3000"})
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert resp.headers["access-control-allow-credentials"] == "true"

    def test_partner_origin(self, client):
        resp = client.get(
            "/api/ping", headers={"Origin": "https://login.partner.example"}
        )
        assert (
            resp.headers["access-control-allow-origin"] == "https://login.partner.example"
        )

    def test_foreign_origin_gets_no_allow_origin(self, client):
        resp = client.get("/api/ping", headers={"Origin": "https://evil.example"})
        assert resp.status_code == 200
        assert "access-control-allow-origin" not in resp.headers

    def test_preflight_allowed(self, client):
        resp = client.options(
            "/api/ping",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert resp.headers["access-control-allow-credentials"] == "true"

    def test_preflight_rejected(self, client):
        resp = client.options(
            "/api/ping",
            headers={
                "Origin": "https://evil.example",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert resp.status_code == 400
        assert "access-control-allow-origin" not in resp.headers


class TestCorsModes:
    @pytest.mark.parametrize("mode", ["proxy", "off"])
    def test_no_middleware_outside_middleware_mode(self, mode):
        test_app = FastAPI()
        add_cors(test_app, mode=mode, origins=["http://localhost:3000"])
        assert test_app.user_middleware == []
