from __future__ import annotations

import uuid

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from starlette import status

from chesscore.config import Settings
from chesscore.protocol.http.app import create_app
from chesscore.protocol.http.error import status_to_code


def test_healthz_ok() -> None:
    client = TestClient(create_app(Settings()))
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    assert "x-request-id" in r.headers


def test_request_id_is_propagated() -> None:
    client = TestClient(create_app(Settings()))
    r = client.get("/healthz", headers={"x-request-id": "abc-123"})
    assert r.headers["x-request-id"] == "abc-123"

    r = client.get("/api/games/missing/state", headers={"x-request-id": "abc-456"})
    assert r.json()["error"]["request_id"] == "abc-456"


def test_error_envelope_for_http_exception() -> None:
    app: FastAPI = create_app(Settings())

    @app.get("/boom")
    def boom():  # type: ignore[no-redef]
        raise HTTPException(status_code=400, detail="oops")

    client = TestClient(app)
    r = client.get("/boom")
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == "bad_request"
    assert err["message"] == "oops"
    assert err["type"] == "client_error"
    assert err["request_id"]


def test_unknown_route_uses_envelope() -> None:
    client = TestClient(create_app(Settings()))
    r = client.get("/nowhere")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"


def test_unhandled_exception_is_500_envelope() -> None:
    app: FastAPI = create_app(Settings())

    @app.get("/crash")
    def crash():  # type: ignore[no-redef]
        raise RuntimeError("kaboom")

    client = TestClient(app, raise_server_exceptions=False)
    r = client.get("/crash")
    assert r.status_code == 500
    err = r.json()["error"]
    assert err["code"] == "internal_error"
    assert err["type"] == "server_error"
    assert "kaboom" not in err["message"]


def test_malformed_request_id_is_replaced() -> None:
    client = TestClient(create_app(Settings()))
    for bad in ("x" * 65, "abc def", "id;drop"):
        r = client.get("/api/games/missing/state", headers={"x-request-id": bad})
        rid = r.headers["x-request-id"]
        assert rid != bad
        assert str(uuid.UUID(rid)) == rid
        assert r.json()["error"]["request_id"] == rid


def test_validation_status_maps_to_code() -> None:
    assert status_to_code(status.HTTP_422_UNPROCESSABLE_ENTITY) == "unprocessable_entity"
    assert status_to_code(status.HTTP_409_CONFLICT) == "conflict"
    assert status_to_code(503) == "internal_error"
    assert status_to_code(418) == "error"
