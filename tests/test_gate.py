"""Tests for auth/gate.py and the auth_gate middleware in api/main.py.

Covers:
- evaluate_request() decision table: exempt, preflight, missing, malformed, invalid, valid
- Exempt paths and prefixes never need a token
- 401 / 403 bodies are the exact plain-text strings
- The authenticated payload reaches route handlers via request.state
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from auth.gate import (
    FORBIDDEN_BODY,
    UNAUTHORIZED_BODY,
    GateDecision,
    GateState,
    evaluate_request,
    gate_response,
    is_exempt_path,
)
from core.errors import FailureKind

# ---------------------------------------------------------------------------
# evaluate_request() -- pure decision
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "path",
    [
        "/api/auth/login",
        "/api/auth/forgot-password",
        "/api/auth/register",
        "/api/system/system_info",
        "/api/system/health_check",
        "/api/system/test_email",
        "/static/app.js",
        "/staticfiles/x.css",
        "/api/events/stream",
        "/api/events/stream/42",
        "/api/uploads/avatar.png",
    ],
)
def test_exempt_paths(path, token_service):
    assert is_exempt_path(path)
    decision = evaluate_request("GET", path, None, token_service)
    assert decision.state is GateState.EXEMPT
    assert decision.payload is None
    assert decision.allowed


@pytest.mark.parametrize("path", ["/api/auth/me", "/api/uploads", "/api/system/test_email/extra", "/"])
def test_non_exempt_paths(path):
    assert not is_exempt_path(path)


def test_options_preflight_passes_without_token(token_service):
    decision = evaluate_request("OPTIONS", "/api/users/u1", None, token_service)
    assert decision.state is GateState.EXEMPT


def test_missing_header_is_unauthenticated(token_service):
    decision = evaluate_request("GET", "/api/auth/me", None, token_service)
    assert decision.state is GateState.UNAUTHENTICATED
    assert not decision.allowed
    assert decision.kind is FailureKind.INVALID_CREDENTIAL


@pytest.mark.parametrize("header", ["", "Basic abc", "bearer abc", "Token abc", "Bearer"])
def test_wrong_scheme_is_unauthenticated(header, token_service):
    decision = evaluate_request("GET", "/api/auth/me", header, token_service)
    assert decision.state is GateState.UNAUTHENTICATED


def test_invalid_token_is_forbidden(token_service):
    decision = evaluate_request("GET", "/api/auth/me", "Bearer not.a.token", token_service)
    assert decision.state is GateState.FORBIDDEN
    assert not decision.allowed
    assert decision.kind is FailureKind.INVALID_CREDENTIAL


def test_empty_bearer_is_forbidden(token_service):
    decision = evaluate_request("GET", "/api/auth/me", "Bearer ", token_service)
    assert decision.state is GateState.FORBIDDEN


def test_valid_token_is_authenticated(token_service):
    raw = token_service.issue("u1", "ada@example.com", is_admin=False)
    decision = evaluate_request("POST", "/api/auth/2fa/setup", f"Bearer {raw}", token_service)
    assert decision.state is GateState.AUTHENTICATED
    assert decision.payload.user_id == "u1"
    assert decision.allowed
    assert decision.kind is None


def test_gate_response_bodies():
    unauthorized = gate_response(GateDecision(GateState.UNAUTHENTICATED))
    forbidden = gate_response(GateDecision(GateState.FORBIDDEN))
    assert unauthorized.status_code == 401
    assert unauthorized.body.decode() == UNAUTHORIZED_BODY
    assert forbidden.status_code == 403
    assert forbidden.body.decode() == FORBIDDEN_BODY
    assert gate_response(GateDecision(GateState.EXEMPT)) is None


# ---------------------------------------------------------------------------
# Middleware -- through the full ASGI stack
# ---------------------------------------------------------------------------


def test_exempt_route_needs_no_token(api):
    resp = api.client.get("/api/system/health_check")
    assert resp.status_code == 200


def test_missing_token_returns_401_plain_text(api):
    resp = api.client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.text == "Unauthorized: Missing or invalid token format."
    assert resp.headers["content-type"].startswith("text/plain")


def test_wrong_scheme_returns_401(api):
    resp = api.client.get("/api/auth/me", headers={"Authorization": "Basic dXNlcjpwdw=="})
    assert resp.status_code == 401
    assert resp.text == UNAUTHORIZED_BODY


def test_invalid_token_returns_403_plain_text(api):
    resp = api.client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 403
    assert resp.text == "Forbidden: Invalid or expired token."


def test_expired_token_returns_403(api):
    issued = datetime.now(timezone.utc) - timedelta(days=2)
    raw = api.tokens.issue("member-0001", "member@example.com", False, now=issued)
    resp = api.client.get("/api/auth/me", headers=api.auth(raw))
    assert resp.status_code == 403
    assert resp.text == FORBIDDEN_BODY


def test_gate_runs_before_routing(api):
    """Unknown non-exempt paths are still rejected by the gate, not 404."""
    assert api.client.get("/api/does-not-exist").status_code == 401


def test_exempt_prefix_reaches_router(api):
    assert api.client.get("/static/missing.js").status_code == 404


def test_cors_preflight_passes_gate(api):
    resp = api.client.options(
        "/api/auth/me",
        headers={"Origin": "http://localhost", "Access-Control-Request-Method": "GET"},
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost"


def test_valid_token_identity_reaches_handler(api):
    resp = api.client.get("/api/auth/me", headers=api.auth(api.member_token))
    assert resp.status_code == 200
    assert resp.json()["user_id"] == "member-0001"


def test_rejection_is_logged_as_invalid_credential(api, caplog):
    with caplog.at_level(logging.INFO, logger="appserver.api"):
        api.client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
    assert "Gate rejected GET /api/auth/me (forbidden: invalid_credential)" in caplog.text
