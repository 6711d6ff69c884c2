from typing import Dict, Any, List, Optional

import logging
import os
import time
import uuid
from urllib.parse import urlsplit, urlunsplit

from authlib.integrations.starlette_client import OAuth
from starlette.requests import Request
from starlette.requests import Request as StarletteRequest
from starlette.responses import RedirectResponse

from mediaflow.config import DASHBOARD_PATH, SIGN_IN_PATH
from mediaflow.db import session_scope
from mediaflow.session_gate import AUTH_EVENTS, AuthEvent
from mediaflow.uploads import ensure_uploads_db
from mediaflow.users import make_code, ensure_user

oauth = OAuth()
logger = logging.getLogger(__name__)
timing_logger = logging.getLogger("uvicorn.error")
login_providers: List[Dict[str, Any]] = []
_SESSION_USER_KEY = "user"
_REDIRECT_SESSION_KEY = "post_login_redirect"
_ALLOWED_REDIRECT_HOSTS: tuple[str, ...] = tuple(
    host.strip().lower()
    for host in os.getenv("LOGIN_ALLOWED_REDIRECT_HOSTS", "").split(",")
    if host.strip()
)


def _log_timing(event_name: str, start: float, **fields: object) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    if fields:
        field_text = " ".join(f"{key}={value}" for key, value in fields.items())
        timing_logger.info("login_logic.timing event=%s ms=%.2f %s", event_name, elapsed_ms, field_text)
        return
    timing_logger.info("login_logic.timing event=%s ms=%.2f", event_name, elapsed_ms)


def register_oauth_provider(*args, **kwargs):
    login_providers.append(kwargs)
    return oauth.register(*args, **kwargs)


def _session_of(request: Any):
    if hasattr(request, "request") and hasattr(request.request, "session"):
        return request.request.session
    if isinstance(request, StarletteRequest):
        return request.session
    return None


def get_user(request: Any) -> Optional[dict]:
    """Return the signed-in user stored in the cookie session, or None."""
    try:
        session = _session_of(request)
        user = session.get(_SESSION_USER_KEY) if session is not None else None
    except (AssertionError, AttributeError):
        # Starlette asserts when SessionMiddleware is not installed for this route.
        user = None
    return user or None


def session_user_id(user: Optional[dict]) -> Optional[int]:
    raw_value = (user or {}).get("user_id")
    try:
        parsed = int(raw_value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def session_id_of(user: Optional[dict]) -> Optional[str]:
    """Per-sign-in id stored with the session user; scopes auth events to one browser."""
    return str((user or {}).get("session_id") or "") or None


def add_login_routes(app, app_route: str = "/dashboard"):
    state_flag = "_mediaflow_login_routes_registered"
    if getattr(app.state, state_flag, False):
        return
    setattr(app.state, state_flag, True)

    default_target = f"{app_route.rstrip('/')}/" if app_route else DASHBOARD_PATH

    @app.get("/logout")
    async def logout(request: Request):
        user = request.session.pop(_SESSION_USER_KEY, None)
        AUTH_EVENTS.publish(
            AuthEvent.SIGNED_OUT, session_user_id(user), has_session=False, session_id=session_id_of(user)
        )
        return RedirectResponse(f"{SIGN_IN_PATH}?logged_out=1")

    @app.get(app_route)
    async def _redir_to_slash():
        return RedirectResponse(default_target)

    for p in login_providers:
        name = p["name"]
        cb_route_name = f"auth_callback_{name}"

        @app.get(f"/auth/{name}", name=f"auth_start_{name}")
        async def auth_start(request: Request, redirect_to: Optional[str] = None, _name=name, _cb=cb_route_name):
            user = get_user(request)
            _update_login_redirect_target(request, redirect_to, default_target=default_target)
            if user:
                # Already signed in: confirm the session instead of a new round-trip.
                AUTH_EVENTS.publish(
                    AuthEvent.TOKEN_REFRESHED, session_user_id(user), has_session=True, session_id=session_id_of(user)
                )
                return RedirectResponse(_resolve_login_redirect_target(request, fallback=default_target))
            client = oauth.create_client(_name)
            return await client.authorize_redirect(request, request.url_for(_cb))

        @app.get(f"/auth/{name}/callback", name=cb_route_name)
        async def auth_callback(request: Request, _name=name):
            start = time.perf_counter()
            client = oauth.create_client(_name)
            token = await client.authorize_access_token(request)
            userinfo = token.get("userinfo") or await client.parse_id_token(request, token)
            user = _persist_user(userinfo)
            request.session[_SESSION_USER_KEY] = user
            AUTH_EVENTS.publish(
                AuthEvent.SIGNED_IN, session_user_id(user), has_session=True, session_id=session_id_of(user)
            )
            _log_timing("auth_callback", start, provider=_name, user_id=user.get("user_id"))
            return RedirectResponse(_resolve_login_redirect_target(request, fallback=default_target))


def _persist_user(userinfo: Dict[str, Any]) -> Dict[str, Any]:
    """
    Ensure the authenticated account has a row in app."user" and return the
    compact payload kept in the session cookie.
    """
    identifier = _resolve_user_identifier(userinfo)
    display_name = (userinfo.get("name") or "").strip() or identifier
    ensure_uploads_db()

    with session_scope() as session:
        user_id, email, stored_name = ensure_user(
            session,
            user_identifier=(userinfo.get("email") or identifier),
            display_name=display_name,
        )

    return {
        "user_id": user_id,
        "email": email,
        "name": stored_name or display_name,
        "picture": (userinfo.get("picture") or "").strip(),
        "session_id": uuid.uuid4().hex,
    }


def _resolve_user_identifier(userinfo: Dict[str, Any]) -> str:
    email = (userinfo.get("email") or "").strip()
    if email:
        return email.lower()
    sub = (userinfo.get("sub") or "").strip()
    if sub:
        return sub
    name = (userinfo.get("name") or "").strip()
    if name:
        return make_code(name, default_prefix="user")
    raise ValueError("Unable to determine user identifier from login response")


def _update_login_redirect_target(request: Request, candidate: Optional[str], default_target: str) -> None:
    target = _sanitize_redirect_target(candidate, request) or default_target
    request.session[_REDIRECT_SESSION_KEY] = target


def _resolve_login_redirect_target(request: Request, fallback: str) -> str:
    target = request.session.pop(_REDIRECT_SESSION_KEY, None)
    return _sanitize_redirect_target(target, request) or fallback or DASHBOARD_PATH


def _sanitize_redirect_target(candidate: Optional[str], request: Optional[Request]) -> Optional[str]:
    """
    Allow relative paths or whitelisted hosts; block protocol-relative / malformed URLs.
    """
    target = (candidate or "").strip()
    if not target or target.startswith("//"):
        return None
    if target.startswith("/"):
        return target

    parsed = urlsplit(target)
    if parsed.scheme not in {"https", "http"}:
        return None
    host = (parsed.hostname or "").lower()
    if not host:
        return None

    if _ALLOWED_REDIRECT_HOSTS:
        allowed_hosts = _ALLOWED_REDIRECT_HOSTS
    else:
        request_host = ((request.url.hostname or "").lower() if request else "") or ""
        allowed_hosts = (request_host,) if request_host else ()

    if host not in allowed_hosts:
        return None
    return urlunsplit(parsed)
