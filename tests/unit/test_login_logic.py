from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request

from mediaflow.login_logic import (
    _persist_user,
    _resolve_user_identifier,
    _sanitize_redirect_target,
    add_login_routes,
    get_user,
    session_id_of,
    session_user_id,
)
from mediaflow.session_gate import AUTH_EVENTS, AuthEvent


def _request_for(host: str) -> SimpleNamespace:
    return SimpleNamespace(url=SimpleNamespace(hostname=host))


class TestRedirectTargets:
    def test_relative_paths_are_kept(self) -> None:
        assert _sanitize_redirect_target("/dashboard/", None) == "/dashboard/"

    @pytest.mark.parametrize("target", ["", None, "//evil.example.com/", "javascript:alert(1)", "https:///nohost"])
    def test_unsafe_targets_are_dropped(self, target) -> None:
        assert _sanitize_redirect_target(target, _request_for("app.example.com")) is None

    def test_same_host_is_allowed_without_whitelist(self) -> None:
        request = _request_for("app.example.com")
        assert _sanitize_redirect_target("https://app.example.com/dashboard/", request) == (
            "https://app.example.com/dashboard/"
        )
        assert _sanitize_redirect_target("https://other.example.com/", request) is None

    def test_whitelist_replaces_request_host(self) -> None:
        with patch("mediaflow.login_logic._ALLOWED_REDIRECT_HOSTS", ("cdn.example.com",)):
            request = _request_for("app.example.com")
            assert _sanitize_redirect_target("https://cdn.example.com/x", request) == "https://cdn.example.com/x"
            assert _sanitize_redirect_target("https://app.example.com/x", request) is None


class TestSessionUser:
    def test_user_from_gradio_request(self) -> None:
        request = SimpleNamespace(request=SimpleNamespace(session={"user": {"user_id": 7}}))
        assert get_user(request) == {"user_id": 7}

    def test_no_session_means_no_user(self) -> None:
        assert get_user(SimpleNamespace()) is None
        assert get_user(SimpleNamespace(request=SimpleNamespace(session={}))) is None

    @pytest.mark.parametrize(
        "user, expected",
        [({"user_id": 7}, 7), ({"user_id": "12"}, 12), ({"user_id": 0}, None), ({}, None), (None, None)],
    )
    def test_session_user_id(self, user, expected) -> None:
        assert session_user_id(user) == expected

    def test_session_id_of(self) -> None:
        assert session_id_of({"user_id": 7, "session_id": "browser-a"}) == "browser-a"
        assert session_id_of({"user_id": 7}) is None
        assert session_id_of(None) is None


class TestPersistUser:
    def test_identifier_preference(self) -> None:
        assert _resolve_user_identifier({"email": " Ana@Example.com ", "sub": "123"}) == "ana@example.com"
        assert _resolve_user_identifier({"sub": "google-123"}) == "google-123"
        assert _resolve_user_identifier({"name": "Ana Lopez"}) == "ana-lopez"
        with pytest.raises(ValueError):
            _resolve_user_identifier({})

    def test_persist_returns_session_payload(self, db_session, scope_for) -> None:
        with patch("mediaflow.login_logic.ensure_uploads_db") as mock_ensure, patch(
            "mediaflow.login_logic.session_scope", scope_for(db_session)
        ), patch("mediaflow.login_logic.ensure_user", return_value=(5, "ana@example.com", "Ana")) as mock_user:
            payload = _persist_user({"email": "ana@example.com", "name": "Ana", "picture": "https://p/1.png"})

        mock_ensure.assert_called_once_with()
        assert mock_user.call_args.kwargs["user_identifier"] == "ana@example.com"
        assert len(payload.pop("session_id")) == 32
        assert payload == {
            "user_id": 5,
            "email": "ana@example.com",
            "name": "Ana",
            "picture": "https://p/1.png",
        }


def test_logout_clears_session_and_announces_sign_out() -> None:
    app = FastAPI()
    add_login_routes(app, "/dashboard")

    @app.get("/test-login")
    async def _login(request: Request):
        request.session["user"] = {"user_id": 7, "session_id": "browser-a"}
        return {"ok": True}

    app.add_middleware(SessionMiddleware, secret_key="test-secret")
    seen = []
    subscription = AUTH_EVENTS.on_auth_state_change(seen.append)
    try:
        client = TestClient(app)
        client.get("/test-login")
        response = client.get("/logout", follow_redirects=False)
    finally:
        subscription.unsubscribe()

    assert response.status_code == 307
    assert response.headers["location"] == "/?logged_out=1"
    assert [(change.event, change.user_id, change.has_session, change.session_id) for change in seen] == [
        (AuthEvent.SIGNED_OUT, 7, False, "browser-a")
    ]
