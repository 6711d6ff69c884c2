# ---- Resolve & inject ALL secrets BEFORE importing modules that read env ----
from mediaflow.secrets import get_secret

import os
from pathlib import Path

import gradio as gr
from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse
from starlette.staticfiles import StaticFiles
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from mediaflow.login_logic import register_oauth_provider
from mediaflow.mount_gradio_app import mount_gradio_app
from mediaflow.pages.dashboard.app_dashboard import make_dashboard_app
from mediaflow.pages.ui_login import make_login_page

app = FastAPI()
# Cloud Run terminates TLS; OAuth callback URLs must keep the public scheme and host.
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


@app.get("/_routes")
def _routes():
    return [getattr(r, "path", str(r)) for r in app.router.routes]


# OAuth client config (now guaranteed in env; also available via get_secret)
GOOGLE_CLIENT_ID     = get_secret("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = get_secret("GOOGLE_CLIENT_SECRET")

register_oauth_provider(
    name="google",
    icon="google",
    server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
    client_id=GOOGLE_CLIENT_ID,
    client_secret=GOOGLE_CLIENT_SECRET,
    client_kwargs={
        "scope": "openid email profile",
        "timeout": 30,
    },
)

# --- Static assets
os.makedirs("images", exist_ok=True)
FAVICON_FILE = Path("images") / "mediaflow-logo.png"
app.mount(
    "/images",
    StaticFiles(directory="images", check_dir=False),
    name="images",
)


@app.get("/favicon.ico")
async def favicon() -> FileResponse:
    if FAVICON_FILE.exists():
        return FileResponse(FAVICON_FILE)
    raise HTTPException(status_code=404)


# --- Pages
dashboard_app = make_dashboard_app()
login_page    = make_login_page()

session_secret = get_secret("SESSION_SECRET", default="dev-session-secret")
mount_gradio_app(app, dashboard_app, "/dashboard", secret_key=session_secret)

gr.mount_gradio_app(app, login_page, "/")
