import json
import time
from datetime import timedelta
from urllib.parse import urlencode

import pytest
from fastapi import FastAPI
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.testclient import TestClient
from starlette.types import Receive, Scope, Send

from signverify import (
    NoCacheMiddleware,
    SignatureVerifyMiddleware,
    SigningConfig,
    VerificationOutcome,
    create_signed_headers,
    create_signed_query,
    setup_signature_verification,
)

SECRET = b"test-secret"
CONFIG = SigningConfig(secret_key=SECRET, expiry_window=timedelta(seconds=20))


# Mock App
async def mock_app(scope: Scope, receive: Receive, send: Send):
    # Read the body to ensure the middleware didn't consume it
    request = Request(scope, receive)
    body = await request.body()
    response = JSONResponse({"status": "ok", "body_size": len(body)})
    await response(scope, receive, send)


def create_client(**kwargs):
    kwargs.setdefault("config", CONFIG)
    app = SignatureVerifyMiddleware(mock_app, **kwargs)
    return TestClient(app)


def test_allow_signed_query():
    client = create_client()
    params = create_signed_query({"address": "init", "linkType": "0"}, CONFIG)

    response = client.get("/api/available-code", params=params)

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_allow_signed_headers():
    client = create_client()
    query = {"address": "init", "linkType": "0"}
    headers = create_signed_headers(query, CONFIG)

    response = client.get("/api/available-code", params=query, headers=headers)

    assert response.status_code == 200


def test_block_tampered_query():
    client = create_client()
    params = create_signed_query({"a": "1", "b": "2"}, CONFIG)
    params["b"] = "3"

    response = client.get("/api/test", params=params)

    assert response.status_code == 401
    assert response.json()["code"] == "SIGNATURE_INVALID"


def test_block_garbage_signature():
    client = create_client()
    headers = {"apiSig": "%%%not-a-signature%%%", "timestamp": str(int(time.time()))}

    response = client.get("/api/test", params={"a": "1"}, headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "SIGNATURE_INVALID"


def test_block_expired_signature():
    client = create_client()
    old = int(time.time()) - 3600
    params = create_signed_query({"a": "1"}, CONFIG, timestamp=old)

    response = client.get("/api/test", params=params)

    assert response.status_code == 401
    assert response.json()["code"] == "SIGNATURE_EXPIRED"


def test_block_forward_dated_signature():
    client = create_client()
    future = int(time.time()) + 3600
    params = create_signed_query({"a": "1"}, CONFIG, timestamp=future)

    response = client.get("/api/test", params=params)

    assert response.status_code == 401
    assert response.json()["code"] == "SIGNATURE_EXPIRED"


def test_block_missing_timestamp():
    client = create_client()
    params = create_signed_query({"a": "1"}, CONFIG)
    del params["timestamp"]

    response = client.get("/api/test", params=params)

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "SIGNATURE_FIELD_MISSING"
    assert body["field"] == "timestamp"
    assert body["reason"] == "missing"


def test_block_missing_signature():
    client = create_client()

    response = client.get("/api/test", params={"a": "1", "timestamp": str(int(time.time()))})

    assert response.status_code == 400
    assert response.json()["field"] == "apiSig"


def test_block_malformed_timestamp():
    client = create_client()
    headers = {"apiSig": "AAAA", "timestamp": "not-a-number"}

    response = client.get("/api/test", headers=headers)

    assert response.status_code == 400
    assert response.json()["reason"] == "malformed"


def test_block_huge_timestamp():
    client = create_client()
    headers = {"apiSig": "AAAA", "timestamp": "9" * 5000}

    response = client.get("/api/test", params={"a": "1"}, headers=headers)

    assert response.status_code == 400
    assert response.json()["field"] == "timestamp"
    assert response.json()["reason"] == "malformed"


def test_block_duplicate_query_parameter():
    client = create_client()
    params = list(create_signed_query({"a": "1"}, CONFIG).items()) + [("a", "2")]

    response = client.get("/api/test", params=params)

    assert response.status_code == 400
    assert response.json()["field"] == "a"
    assert response.json()["reason"] == "duplicate"


def test_block_timestamp_in_header_and_query():
    client = create_client()
    query = {"a": "1"}
    headers = create_signed_headers(query, CONFIG)

    response = client.get(
        "/api/test",
        params={**query, "timestamp": headers["timestamp"]},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["reason"] == "duplicate"


def test_allow_signed_form_body():
    client = create_client()
    form = create_signed_query({"amount": "10", "currency": "EUR"}, CONFIG)

    response = client.post("/api/pay", data=form)

    assert response.status_code == 200
    # Verify app received the body
    assert response.json()["body_size"] > 0


def test_block_tampered_form_body():
    client = create_client()
    form = create_signed_query({"amount": "10"}, CONFIG)
    form["amount"] = "1000"

    response = client.post("/api/pay", data=form)

    assert response.status_code == 401


@pytest.mark.parametrize("raw_value", [b"\xff", b"%FF"])
def test_block_invalid_utf8_form_body(raw_value):
    client = create_client()
    form = create_signed_query({"a": "\ufffd"}, CONFIG)
    signed = urlencode({k: v for k, v in form.items() if k != "a"}).encode()

    response = client.post(
        "/api/pay",
        content=b"a=" + raw_value + b"&" + signed,
        headers={"content-type": "application/x-www-form-urlencoded"},
    )

    assert response.status_code == 400
    assert response.json()["field"] == "body"
    assert response.json()["reason"] == "malformed"


def test_allow_signature_with_json_body():
    client = create_client()
    body = json.dumps({"amount": 10}).encode()
    headers = create_signed_headers({"id": "7"}, CONFIG, body=body)
    headers["content-type"] = "application/json"

    response = client.post("/api/pay", params={"id": "7"}, content=body, headers=headers)

    assert response.status_code == 200
    assert response.json()["body_size"] == len(body)


def test_block_tampered_json_body():
    client = create_client()
    body = json.dumps({"amount": 10}).encode()
    headers = create_signed_headers({}, CONFIG, body=body)
    headers["content-type"] = "application/json"

    response = client.post("/api/pay", content=b'{"amount": 1000}', headers=headers)

    assert response.status_code == 401


def test_excluded_path_skips_verification():
    client = create_client(excluded_paths={"/health"})

    assert client.get("/health").status_code == 200
    assert client.get("/api/test").status_code == 400


def test_custom_rejection_handler():
    def reject(result):
        return PlainTextResponse(result.outcome.value, status_code=403)

    client = create_client(rejection_handler=reject)

    response = client.get("/api/test")

    assert response.status_code == 403
    assert response.text == VerificationOutcome.MISSING_FIELD.value


def test_internal_error_is_generic():
    class BrokenVerifier:
        config = CONFIG

        def verify(self, params, signature=None, timestamp=None, now=None):
            raise RuntimeError(f"hashing failed for {SECRET!r}")

    client = create_client(verifier=BrokenVerifier())

    response = client.get("/api/test", params=create_signed_query({"a": "1"}, CONFIG))

    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"
    assert "test-secret" not in response.text


def test_bad_request_does_not_affect_next():
    client = create_client()

    assert client.get("/api/test", params={"a": "1"}).status_code == 400
    params = create_signed_query({"a": "1"}, CONFIG)
    assert client.get("/api/test", params=params).status_code == 200


def test_custom_field_names():
    config = SigningConfig(
        secret_key=SECRET,
        signature_param_name="X-Signature",
        timestamp_param_name="X-Timestamp",
    )
    client = create_client(config=config)
    headers = create_signed_headers({"q": "search"}, config)

    response = client.get("/api/test", params={"q": "search"}, headers=headers)

    assert response.status_code == 200


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("SIGNVERIFY_SECRET_KEY", SECRET.decode())
    client = TestClient(SignatureVerifyMiddleware(mock_app))

    response = client.get("/api/test", params=create_signed_query({"a": "1"}, CONFIG))

    assert response.status_code == 200


def test_no_cache_headers():
    app = NoCacheMiddleware(mock_app)
    client = TestClient(app)

    response = client.get("/")

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store, no-cache, must-revalidate, max-age=0"
    assert response.headers["expires"] == "0"
    assert response.headers["pragma"] == "no-cache"


@pytest.fixture
def fastapi_client():
    app = FastAPI()

    @app.get("/api/available-code")
    async def available_code(address: str, linkType: int):
        return {"address": address, "linkType": linkType}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    setup_signature_verification(app, config=CONFIG, excluded_paths=["/health"])
    return TestClient(app)


def test_setup_on_fastapi_app(fastapi_client):
    params = create_signed_query({"address": "init", "linkType": "0"}, CONFIG)

    response = fastapi_client.get("/api/available-code", params=params)

    assert response.status_code == 200
    assert response.json() == {"address": "init", "linkType": 0}
    assert response.headers["pragma"] == "no-cache"


def test_setup_rejection_is_not_cached(fastapi_client):
    response = fastapi_client.get("/api/available-code", params={"address": "init"})

    assert response.status_code == 400
    assert response.headers["cache-control"].startswith("no-store")
    assert fastapi_client.get("/health").status_code == 200
