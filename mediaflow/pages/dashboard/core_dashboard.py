from __future__ import annotations

import logging
from typing import List, Optional

import gradio as gr

from mediaflow.config import SIGN_IN_PATH
from mediaflow.login_logic import get_user, session_id_of
from mediaflow.pages.dashboard.common import DashboardContext, build_context, same_identity, view_key_of
from mediaflow.pages.dashboard.core_upload_list import (
    LOADING_HTML,
    UploadListing,
    default_tab,
    list_view_updates,
    load_listings,
    reload_view,
)
from mediaflow.pages.header import render_header
from mediaflow.realtime import LIVE_VIEWS
from mediaflow.session_gate import GATED_VIEWS
from mediaflow.uploads import UPLOADS_TABLE

logger = logging.getLogger(__name__)

_NO_CHANGE_COUNT = 5


def _no_list_change():
    return tuple(gr.update() for _ in range(_NO_CHANGE_COUNT))


def _load_dashboard(request: gr.Request):
    """
    Outputs: context state, navigation target, header, submission column,
    review row, listings state, tab selector, list html, review selector,
    accept button, reject button.
    """
    user = get_user(request)
    ctx = build_context(user)
    if ctx is None:
        logger.info("Dashboard loaded without a session; sending visitor to sign-in.")
        return (
            None,
            gr.update(value=SIGN_IN_PATH),
            gr.update(value=render_header(None)),
            gr.update(visible=False),
            gr.update(visible=False),
            [],
            gr.update(),
            gr.update(value=LOADING_HTML),
            gr.update(choices=[], value=None),
            gr.update(interactive=False),
            gr.update(interactive=False),
        )

    view_key = view_key_of(request)
    if view_key:
        GATED_VIEWS.open(view_key, ctx.user_id, session_id=session_id_of(user))
        row_filter = None if ctx.is_admin else {"user_id": ctx.user_id}
        LIVE_VIEWS.attach(view_key, UPLOADS_TABLE, row_filter=row_filter)

    listings = load_listings(ctx)
    return (
        ctx,
        gr.update(value=""),
        gr.update(value=render_header(user, subtitle=ctx.subtitle)),
        gr.update(visible=not ctx.is_admin),
        gr.update(visible=ctx.is_admin),
        listings,
        *list_view_updates(listings, default_tab(ctx.is_admin), ctx),
    )


def _poll_dashboard(
    ctx: Optional[DashboardContext],
    tab: str,
    selected_id: object,
    listings: List[UploadListing],
    request: gr.Request,
):
    """
    Page timer. Leaves the page once the session is gone, otherwise re-fetches
    when the view's change subscription fired since the last tick.

    Outputs: navigation target, listings state, tab selector, list html,
    review selector, accept button, reject button.
    """
    view_key = view_key_of(request)
    current = listings or []

    gated = GATED_VIEWS.get(view_key)
    if gated is not None:
        session_user = get_user(request) if same_identity(ctx, request) else None
        gated.check_session(session_user)
        target = gated.navigator.take_due()
        if target:
            return (gr.update(value=target), current, *_no_list_change())

    flag = LIVE_VIEWS.flag(view_key)
    if ctx is None or flag is None or not flag.consume():
        return (gr.update(), current, *_no_list_change())

    refreshed = load_listings(ctx)
    return (gr.update(), refreshed, *list_view_updates(refreshed, tab, ctx, selected_id))


def _reload_after_submit(
    ctx: Optional[DashboardContext],
    tab: str,
    listings: List[UploadListing],
    request: gr.Request,
):
    if ctx is None:
        return (listings or [], *_no_list_change())
    refreshed = reload_view(ctx, view_key_of(request))
    return (refreshed, *list_view_updates(refreshed, tab, ctx))


def _unload_dashboard(request: gr.Request):
    view_key = view_key_of(request)
    if not view_key:
        return
    GATED_VIEWS.close(view_key)
    LIVE_VIEWS.detach(view_key)
