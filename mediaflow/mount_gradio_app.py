import logging

import gradio as gr
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

from mediaflow.config import DASHBOARD_PATH, SIGN_IN_PATH
from mediaflow.login_logic import add_login_routes, get_user
from mediaflow.secrets import get_secret

logger = logging.getLogger(__name__)

GRADIO_PUBLIC_PREFIXES = (
    "/gradio_api", "/file", "/assets", "/static", "/config",
    "/proxy", "/localfiles", "/theme.css", "/favicon.ico",
    "/robots.txt", "/logo.png", "/images",
)


def _normalize_route(app_route: str) -> str:
    route = app_route or "/"
    if not route.startswith("/"):
        route = f"/{route}"
    return route.rstrip("/") or "/"


def is_protected_path(path: str, app_route: str) -> bool:
    route_no_slash = _normalize_route(app_route)
    if route_no_slash == "/":
        return True
    normalized_path = path or "/"
    if not normalized_path.startswith("/"):
        normalized_path = f"/{normalized_path}"
    if normalized_path != "/" and normalized_path.endswith("/"):
        normalized_path = normalized_path.rstrip("/")
    return normalized_path == route_no_slash or normalized_path.startswith(f"{route_no_slash}/")


def is_public_path(path: str) -> bool:
    return (
        path == "/"
        or path.startswith("/auth")
        or path.startswith("/logout")
        or any(path.startswith(prefix) for prefix in GRADIO_PUBLIC_PREFIXES)
    )


def is_mounted_gradio_internal(path: str, app_route: str) -> bool:
    route_no_slash = _normalize_route(app_route)
    if route_no_slash == "/" or not path.startswith(f"{route_no_slash}/"):
        return False
    sub_path = path[len(route_no_slash):]
    return any(sub_path.startswith(prefix) for prefix in GRADIO_PUBLIC_PREFIXES)


def add_middleware_redirect(app, app_route: str):
    """
    Require a signed-in session for everything under `app_route`.
    Visitors without one are sent to the sign-in page; signed-in visitors
    landing on the sign-in page go straight to the dashboard.
    """

    @app.middleware("http")
    async def check_authentication(request: Request, call_next):
        path = request.url.path

        if path == SIGN_IN_PATH and not request.query_params.get("home"):
            if get_user(request):
                return RedirectResponse(url=DASHBOARD_PATH)

        if is_public_path(path):
            return await call_next(request)

        # Gradio API calls of a mounted page stay reachable so an open page can
        # notice the sign-out and navigate itself; page handlers check the session.
        if is_mounted_gradio_internal(path, app_route):
            return await call_next(request)

        if is_protected_path(path, app_route) and not get_user(request):
            logger.info("Unauthenticated request to %s redirected to sign-in", path)
            return RedirectResponse(url=SIGN_IN_PATH)

        return await call_next(request)


def mount_gradio_app(*args, secret_key: str | None = None, **kwargs):
    app = args[0]
    path = args[2]

    add_middleware_redirect(app, path)
    add_login_routes(app, path)

    # Added last so it wraps the auth middleware and the session is populated first.
    secret = secret_key or get_secret("SESSION_SECRET", default="dev-session-secret")
    app.add_middleware(SessionMiddleware, secret_key=secret)

    return gr.mount_gradio_app(*args, **kwargs)
