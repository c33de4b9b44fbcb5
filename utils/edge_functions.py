"""Client for the hosted edge functions behind the P2P tools.

Matching, anomaly detection and payment batching run remotely; this module
only posts JSON to ``<EDGE_FUNCTION_BASE_URL>/<function>`` and returns the
decoded reply.
"""

from __future__ import annotations

import json
import time

import requests

from api.services.errors import EdgeFunctionError
from config import get_setting
from logging_utils import get_logger

logger = get_logger(__name__)

P2P_MATCH = "p2p-match"
P2P_ANOMALIES = "p2p-anomalies"
P2P_PAYMENT_BATCH = "p2p-payment-batch"

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


def _safe_preview_bytes(data: bytes | None, *, limit: int = 2000) -> str:
    if not data:
        return ""
    return data[:limit].decode("utf-8", errors="replace")


def _headers_for_log(headers: dict[str, str]) -> dict[str, str]:
    """Return a redacted copy of headers for logging."""

    redacted: dict[str, str] = {}
    for k, v in (headers or {}).items():
        lk = str(k).lower()
        if lk in {"authorization", "apikey", "x-api-key"} or "token" in lk or "secret" in lk:
            redacted[str(k)] = "<redacted>"
        else:
            redacted[str(k)] = str(v)
    return redacted


def _parse_retry_after_seconds(value: str | None) -> float | None:
    if not value or not value.strip():
        return None
    try:
        return float(int(value.strip()))
    except ValueError:
        return None


def _sleep_backoff(
    attempt_index: int, *, base_seconds: float = 0.5, cap_seconds: float = 8.0
) -> None:
    # 0.5, 1, 2 ... capped
    time.sleep(min(base_seconds * (2**attempt_index), cap_seconds))


def function_url(name: str, base_url: str | None = None) -> str:
    base = (base_url if base_url is not None else str(get_setting("EDGE_FUNCTION_BASE_URL", "") or ""))
    base = base.strip().rstrip("/")
    if not base:
        raise EdgeFunctionError(
            f"Edge function '{name}' cannot be called: EDGE_FUNCTION_BASE_URL is not set"
        )
    return f"{base}/{name}"


def invoke_edge_function(
    name: str,
    payload: dict,
    *,
    session: requests.Session | None = None,
    base_url: str | None = None,
    service_key: str | None = None,
    timeout_seconds: float | None = None,
    max_attempts: int = 3,
) -> dict:
    """POST `payload` to the named edge function (bearer service key, retry/backoff).

    Raises:
        EdgeFunctionError: base URL not configured, non-2xx after retries,
            transport failure on the last attempt, or a non-JSON reply.
    """

    if max_attempts <= 0:
        raise ValueError("max_attempts must be >= 1")

    url = function_url(name, base_url)
    key = service_key if service_key is not None else str(get_setting("EDGE_FUNCTION_SERVICE_KEY", "") or "")
    timeout = float(
        timeout_seconds
        if timeout_seconds is not None
        else get_setting("EDGE_FUNCTION_TIMEOUT_SECONDS", 30.0)
    )

    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if key:
        headers["Authorization"] = f"Bearer {key}"

    if session is not None:
        return _post_with_retries(session, name, url, payload, headers, timeout, max_attempts)
    with requests.Session() as s:
        return _post_with_retries(s, name, url, payload, headers, timeout, max_attempts)


def _post_with_retries(
    s: requests.Session,
    name: str,
    url: str,
    payload: dict,
    headers: dict[str, str],
    timeout: float,
    max_attempts: int,
) -> dict:
    for attempt in range(max_attempts):
        try:
            resp = s.post(url, json=payload, headers=headers, timeout=timeout)
        except requests.RequestException as e:
            logger.warning(
                "edge request failed | function=%s attempt=%s err=%s", name, attempt + 1, e
            )
            if attempt < max_attempts - 1:
                _sleep_backoff(attempt)
                continue
            raise EdgeFunctionError(f"Edge function '{name}' unreachable: {e}") from e

        if 200 <= resp.status_code < 300:
            try:
                return json.loads(resp.content.decode("utf-8") or "{}")
            except ValueError as e:
                raise EdgeFunctionError(
                    f"Edge function '{name}' returned invalid JSON",
                    details={"body_preview": _safe_preview_bytes(resp.content, limit=200)},
                ) from e

        retry_after_raw = resp.headers.get("Retry-After")
        logger.warning(
            "edge non-2xx response | function=%s status=%s attempt=%s/%s retry_after=%s headers=%s body_preview=%s",
            name,
            resp.status_code,
            attempt + 1,
            max_attempts,
            retry_after_raw,
            _headers_for_log(headers),
            _safe_preview_bytes(getattr(resp, "content", b"")),
        )

        if resp.status_code in RETRYABLE_STATUS and attempt < max_attempts - 1:
            retry_after = _parse_retry_after_seconds(retry_after_raw)
            if retry_after is not None:
                time.sleep(retry_after)
            else:
                _sleep_backoff(attempt)
            continue

        raise EdgeFunctionError(
            f"Edge function '{name}' failed status={resp.status_code}",
            details={
                "status": resp.status_code,
                "body_preview": _safe_preview_bytes(getattr(resp, "content", b""), limit=500),
            },
        )

    raise EdgeFunctionError(f"Edge function '{name}' failed")


def match_invoice(payload: dict, **kwargs) -> dict:
    return invoke_edge_function(P2P_MATCH, payload, **kwargs)


def detect_anomalies(payload: dict, **kwargs) -> dict:
    return invoke_edge_function(P2P_ANOMALIES, payload, **kwargs)


def run_payment_batch(payload: dict, **kwargs) -> dict:
    return invoke_edge_function(P2P_PAYMENT_BATCH, payload, **kwargs)
