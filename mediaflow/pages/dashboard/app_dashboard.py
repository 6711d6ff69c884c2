from __future__ import annotations

import logging
from pathlib import Path

import gradio as gr

from mediaflow.config import REFRESH_POLL_SECONDS
from mediaflow.page_timing import timed_page_load
from mediaflow.pages.dashboard.common import PAGE_ROUTE
from mediaflow.pages.dashboard.core_dashboard import (
    _load_dashboard,
    _poll_dashboard,
    _reload_after_submit,
    _unload_dashboard,
)
from mediaflow.pages.dashboard.core_review import _accept_selected, _reject_selected, _start_review
from mediaflow.pages.dashboard.core_submission import _check_selected_file, _start_upload, _submit_upload
from mediaflow.pages.dashboard.core_upload_list import LOADING_HTML, USER_TABS, _change_tab, _select_review_record
from mediaflow.pages.header import with_light_mode_head

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).resolve().parent
CSS_PATH = ASSETS_DIR / "css" / "dashboard_page.css"

NAVIGATE_JS = "(target) => { if (target) { window.location.replace(target); } }"


def _read_asset(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("Missing dashboard asset at %s", path)
        return ""


def make_dashboard_app() -> gr.Blocks:
    stylesheet = _read_asset(CSS_PATH)

    with gr.Blocks(
        title="MediaFlow Dashboard",
        css=stylesheet or None,
        head=with_light_mode_head(None),
    ) as app:
        hdr = gr.HTML()

        ctx_state = gr.State(None)
        listings_state = gr.State([])
        refresh_key = gr.Number(value=0, precision=0, visible=False)
        nav_target = gr.Textbox(value="", visible=False)

        with gr.Row(elem_id="mf-dashboard-shell"):
            with gr.Column(elem_id="mf-submit-col", scale=2, visible=False) as submit_col:
                gr.Markdown("### Upload a file", elem_id="mf-submit-title")
                upload_input = gr.File(
                    label="File (image or PDF)",
                    file_count="single",
                    file_types=["image", ".pdf"],
                    type="filepath",
                    elem_id="mf-upload-file",
                )
                title_input = gr.Textbox(label="Title", placeholder="Give your upload a title", max_lines=1)
                description_input = gr.Textbox(
                    label="Description (optional)",
                    placeholder="What is this file about?",
                    lines=3,
                )
                category_input = gr.Textbox(
                    label="Category (optional)",
                    placeholder="e.g. Invoices, Photos",
                    max_lines=1,
                )
                submit_btn = gr.Button("Submit for review", variant="primary", elem_id="mf-submit-btn")

            with gr.Column(elem_id="mf-list-col", scale=3):
                gr.Markdown("### Uploads", elem_id="mf-list-title")
                tab_selector = gr.Radio(
                    choices=[(tab.capitalize(), tab) for tab in USER_TABS],
                    value=None,
                    show_label=False,
                    container=False,
                    interactive=True,
                    elem_id="mf-tab-selector",
                )

                with gr.Row(elem_id="mf-review-row", visible=False) as review_row:
                    review_selector = gr.Dropdown(
                        label="Upload to review",
                        choices=[],
                        value=None,
                        interactive=True,
                        elem_id="mf-review-selector",
                        scale=3,
                    )
                    accept_btn = gr.Button(
                        "Accept", variant="primary", interactive=False, elem_id="mf-accept-btn", scale=1
                    )
                    reject_btn = gr.Button(
                        "Reject", variant="stop", interactive=False, elem_id="mf-reject-btn", scale=1
                    )
                action_status = gr.Markdown(value="", visible=False, elem_id="mf-action-status")

                list_html = gr.HTML(LOADING_HTML, elem_id="mf-upload-list")

        list_outputs = [tab_selector, list_html, review_selector, accept_btn, reject_btn]

        app.load(
            timed_page_load(PAGE_ROUTE, _load_dashboard),
            outputs=[ctx_state, nav_target, hdr, submit_col, review_row, listings_state, *list_outputs],
        )

        nav_target.change(None, inputs=[nav_target], outputs=None, js=NAVIGATE_JS)

        timer = gr.Timer(REFRESH_POLL_SECONDS)
        timer.tick(
            timed_page_load(PAGE_ROUTE, _poll_dashboard, label="poll_dashboard"),
            inputs=[ctx_state, tab_selector, review_selector, listings_state],
            outputs=[nav_target, listings_state, *list_outputs],
            show_progress="hidden",
        )

        tab_selector.change(
            timed_page_load(PAGE_ROUTE, _change_tab, label="change_tab"),
            inputs=[tab_selector, listings_state, ctx_state],
            outputs=[list_html, review_selector, accept_btn, reject_btn],
            show_progress="hidden",
        )

        upload_input.change(
            _check_selected_file,
            inputs=[upload_input],
            outputs=[upload_input],
            show_progress="hidden",
        )

        submit_btn.click(
            _start_upload,
            outputs=[submit_btn],
            queue=False,
        ).then(
            timed_page_load(PAGE_ROUTE, _submit_upload, label="submit_upload"),
            inputs=[ctx_state, upload_input, title_input, description_input, category_input, refresh_key],
            outputs=[upload_input, title_input, description_input, category_input, submit_btn, refresh_key],
        )

        refresh_key.change(
            timed_page_load(PAGE_ROUTE, _reload_after_submit, label="reload_after_submit"),
            inputs=[ctx_state, tab_selector, listings_state],
            outputs=[listings_state, *list_outputs],
            show_progress="hidden",
        )

        review_selector.change(
            _select_review_record,
            inputs=[review_selector, listings_state],
            outputs=[accept_btn, reject_btn],
            show_progress="hidden",
        )

        review_outputs = [action_status, listings_state, *list_outputs]

        accept_btn.click(
            _start_review,
            outputs=[accept_btn, reject_btn],
            queue=False,
        ).then(
            timed_page_load(PAGE_ROUTE, _accept_selected, label="accept_upload"),
            inputs=[ctx_state, review_selector, tab_selector, listings_state],
            outputs=review_outputs,
        )

        reject_btn.click(
            _start_review,
            outputs=[accept_btn, reject_btn],
            queue=False,
        ).then(
            timed_page_load(PAGE_ROUTE, _reject_selected, label="reject_upload"),
            inputs=[ctx_state, review_selector, tab_selector, listings_state],
            outputs=review_outputs,
        )

        app.unload(_unload_dashboard)

    return app
