from __future__ import annotations

import pytest
import requests

import utils.edge_functions as edge
from api.services.errors import EdgeFunctionError


class _FakeResponse:
    def __init__(
        self, *, status_code: int, content: bytes = b"{}", headers: dict | None = None
    ):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}


class _FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers or {}, "timeout": timeout})
        if not self._responses:
            raise RuntimeError("No more fake responses")
        r = self._responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr(edge.time, "sleep", lambda s: sleeps.append(s))
    return sleeps


def test_posts_json_with_bearer_key():
    s = _FakeSession([_FakeResponse(status_code=200, content=b'{"status": "matched"}')])

    out = edge.invoke_edge_function(
        edge.P2P_MATCH,
        {"invoice_id": "i-1"},
        session=s,
        base_url="https://edge.example.test/functions/v1/",
        service_key="svc-key",
        timeout_seconds=5,
    )

    assert out == {"status": "matched"}
    call = s.calls[0]
    assert call["url"] == "https://edge.example.test/functions/v1/p2p-match"
    assert call["json"] == {"invoice_id": "i-1"}
    assert call["headers"]["Authorization"] == "Bearer svc-key"
    assert call["timeout"] == 5.0


def test_base_url_from_settings(monkeypatch):
    monkeypatch.setenv("EDGE_FUNCTION_BASE_URL", "https://edge.example.test")
    assert edge.function_url("p2p-anomalies") == "https://edge.example.test/p2p-anomalies"


def test_missing_base_url_raises():
    with pytest.raises(EdgeFunctionError) as exc:
        edge.invoke_edge_function(edge.P2P_MATCH, {}, session=_FakeSession([]))
    assert exc.value.status_code == 502
    assert "EDGE_FUNCTION_BASE_URL" in exc.value.message


@pytest.mark.parametrize("status_code", [429, 500, 502, 503, 504])
def test_retry_on_retryable_status_codes(status_code):
    s = _FakeSession(
        [
            _FakeResponse(status_code=status_code, content=b"busy"),
            _FakeResponse(status_code=200, content=b'{"ok": true}'),
        ]
    )

    out = edge.invoke_edge_function("f", {}, session=s, base_url="https://e.test", service_key="")
    assert out == {"ok": True}
    assert len(s.calls) == 2
    assert "Authorization" not in s.calls[0]["headers"]


def test_retry_after_header_is_honoured(_no_sleep):
    s = _FakeSession(
        [
            _FakeResponse(status_code=429, headers={"Retry-After": "7"}),
            _FakeResponse(status_code=200),
        ]
    )
    edge.invoke_edge_function("f", {}, session=s, base_url="https://e.test")
    assert _no_sleep == [7.0]


def test_client_error_is_not_retried():
    s = _FakeSession([_FakeResponse(status_code=400, content=b'{"error": "bad po"}')])

    with pytest.raises(EdgeFunctionError) as exc:
        edge.invoke_edge_function("f", {}, session=s, base_url="https://e.test")

    assert len(s.calls) == 1
    assert exc.value.details["status"] == 400
    assert "bad po" in exc.value.details["body_preview"]


def test_gives_up_after_max_attempts():
    s = _FakeSession([_FakeResponse(status_code=503)] * 3)

    with pytest.raises(EdgeFunctionError):
        edge.invoke_edge_function("f", {}, session=s, base_url="https://e.test", max_attempts=3)
    assert len(s.calls) == 3


def test_transport_errors_retry_then_raise():
    s = _FakeSession(
        [requests.ConnectionError("down"), requests.Timeout("slow")]
    )
    with pytest.raises(EdgeFunctionError) as exc:
        edge.invoke_edge_function("f", {}, session=s, base_url="https://e.test", max_attempts=2)
    assert "unreachable" in exc.value.message


def test_non_json_reply_raises():
    s = _FakeSession([_FakeResponse(status_code=200, content=b"<html>")])
    with pytest.raises(EdgeFunctionError):
        edge.invoke_edge_function("f", {}, session=s, base_url="https://e.test")


def test_headers_for_log_redacts_secrets():
    out = edge._headers_for_log({"Authorization": "Bearer x", "X-Trace": "1", "apikey": "k"})
    assert out == {"Authorization": "<redacted>", "X-Trace": "1", "apikey": "<redacted>"}


def test_wrappers_target_named_functions(monkeypatch):
    seen = []
    monkeypatch.setattr(edge, "invoke_edge_function", lambda name, payload, **kw: seen.append(name) or {})

    edge.match_invoice({})
    edge.detect_anomalies({})
    edge.run_payment_batch({})
    assert seen == ["p2p-match", "p2p-anomalies", "p2p-payment-batch"]


def test_owned_session_is_closed_on_success_and_failure(monkeypatch):
    created = []

    def make_session():
        s = _FakeSession(
            [_FakeResponse(status_code=200)] if not created else [_FakeResponse(status_code=400)]
        )
        created.append(s)
        return s

    monkeypatch.setattr(edge.requests, "Session", make_session)

    assert edge.invoke_edge_function("f", {}, base_url="https://e.test") == {}
    with pytest.raises(EdgeFunctionError):
        edge.invoke_edge_function("f", {}, base_url="https://e.test")

    assert [s.closed for s in created] == [True, True]


def test_caller_session_is_left_open():
    s = _FakeSession([_FakeResponse(status_code=200)])
    edge.invoke_edge_function("f", {}, session=s, base_url="https://e.test")
    assert s.closed is False
