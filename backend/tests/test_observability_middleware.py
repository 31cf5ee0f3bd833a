from __future__ import annotations

import json

from fastapi import FastAPI
from fastapi.testclient import TestClient

from seriescast.observability.middleware import (
    register_request_middleware,
    unhandled_exception_handler,
)
from seriescast.observability.instrument import log_job


def _build_app():
    app = FastAPI()
    register_request_middleware(app)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    return app


def test_request_context_adds_request_id_header():
    app = _build_app()

    @app.get("/ok")
    def ok_route():
        return {"ok": True}

    client = TestClient(app)
    resp = client.get("/ok")
    assert resp.status_code == 200
    assert resp.headers.get("X-Request-Id")


def test_unhandled_exception_hides_internal_detail():
    app = _build_app()

    @app.get("/boom")
    def boom():
        raise RuntimeError("database password is hunter2")

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["detail"] == "Internal Server Error"
    assert "hunter2" not in json.dumps(body)


def test_unhandled_exception_returns_request_id():
    from fastapi import Request
    from starlette.types import Scope

    scope: Scope = {"type": "http", "method": "GET", "path": "/", "headers": []}
    request = Request(scope)
    request.state.request_id = "abc-123"
    response = unhandled_exception_handler(request, RuntimeError("boom"))
    assert response.status_code == 500
    assert b"abc-123" in response.body


def test_log_job_passes_through_results_and_errors():
    @log_job("unit.ok")
    def add(a, b):
        return a + b

    @log_job("unit.fail")
    def explode():
        raise ValueError("nope")

    assert add(2, 3) == 5
    try:
        explode()
    except ValueError as exc:
        assert str(exc) == "nope"
    else:  # pragma: no cover
        raise AssertionError("expected ValueError")
