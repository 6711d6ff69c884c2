import logging

import gradio as gr

from mediaflow.config import DASHBOARD_PATH
from mediaflow.css.utils import load_css
from mediaflow.login_logic import get_user
from mediaflow.page_timing import timed_page_load
from mediaflow.pages.header import render_header, with_light_mode_head

logger = logging.getLogger(__name__)

FEATURES = (
    ("Easy Uploads", "Submit images and PDFs with a title, description and category in a few clicks."),
    ("Quick Reviews", "Administrators accept or reject every submission from one dashboard."),
    ("Real-time Updates", "Status changes show up on every open dashboard as soon as they happen."),
)


def _query_param(request: gr.Request, name: str) -> str:
    params = getattr(request, "query_params", None) or {}
    return str(params.get(name, "") or "").strip()


def _cta_html(signed_in: bool) -> str:
    if signed_in:
        return f'<a class="mf-cta" href="{DASHBOARD_PATH}">Go to dashboard</a>'
    return '<a class="mf-cta" href="/auth/google">Get Started</a>'


def _load_landing(request: gr.Request):
    user = get_user(request)
    if _query_param(request, "logged_out"):
        gr.Info("You've been successfully logged out.", title="Logged out")
    return render_header(user), _cta_html(bool(user))


def _features_html() -> str:
    cards = "\n".join(
        f'<div class="mf-feature"><h3>{title}</h3><p>{body}</p></div>' for title, body in FEATURES
    )
    return f'<div class="mf-features">\n{cards}\n</div>'


def make_login_page() -> gr.Blocks:
    with gr.Blocks(
        title="MediaFlow",
        css=load_css("landing.css"),
        head=with_light_mode_head(None),
    ) as login_page:
        hdr = gr.HTML()
        gr.HTML(
            '<section class="mf-hero"><h1>MediaFlow</h1>'
            "<p>Upload your files, get them reviewed, and follow every decision live.</p></section>"
        )
        cta = gr.HTML(_cta_html(False))
        gr.HTML(_features_html())

        login_page.load(timed_page_load("/", _load_landing), outputs=[hdr, cta])

    return login_page
