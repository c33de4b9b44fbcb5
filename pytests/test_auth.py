from __future__ import annotations

import jwt

from api.auth import AuthContext, issue_token, verify_auth


def test_issue_and_verify_round_trip():
    token = issue_token("user-9", "org-1")
    assert verify_auth(f"Bearer {token}") == AuthContext(user_id="user-9", organization_id="org-1")


def test_scheme_is_case_insensitive():
    token = issue_token("user-9", "org-1")
    assert verify_auth(f"bearer {token}") is not None


def test_org_id_claim_alias(monkeypatch):
    monkeypatch.setenv("AUTH_JWT_SECRET", "unit-test-secret-that-is-long-enough-for-hs256")
    token = jwt.encode(
        {"sub": "u", "org_id": "org-2"},
        "unit-test-secret-that-is-long-enough-for-hs256",
        algorithm="HS256",
    )
    assert verify_auth(f"Bearer {token}").organization_id == "org-2"


def test_wrong_secret_is_rejected():
    token = jwt.encode(
        {"sub": "u", "organization_id": "o"},
        "some-other-secret-that-is-long-enough-too",
        algorithm="HS256",
    )
    assert verify_auth(f"Bearer {token}") is None


def test_missing_claims_are_rejected(monkeypatch):
    secret = "unit-test-secret-that-is-long-enough-for-hs256"
    monkeypatch.setenv("AUTH_JWT_SECRET", secret)
    token = jwt.encode({"sub": "u"}, secret, algorithm="HS256")
    assert verify_auth(f"Bearer {token}") is None


def test_empty_and_malformed_headers():
    assert verify_auth(None) is None
    assert verify_auth("") is None
    assert verify_auth("Bearer ") is None
    assert verify_auth("Token abc") is None
