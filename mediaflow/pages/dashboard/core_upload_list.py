from __future__ import annotations

import contextvars
import html
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import gradio as gr

from mediaflow.config import SIGNED_URL_SECONDS, SIGNED_URL_WORKERS
from mediaflow.gcs_storage import signed_url
from mediaflow.pages.dashboard.common import DashboardContext, notify_error
from mediaflow.realtime import LIVE_VIEWS
from mediaflow.uploads import UploadRecord, UploadStatus, fetch_uploads, storage_key_for

logger = logging.getLogger(__name__)
timing_logger = logging.getLogger("uvicorn.error")

ALL_TAB = "all"
USER_TABS: Tuple[str, ...] = (ALL_TAB, "pending", "accepted", "rejected")
ADMIN_TABS: Tuple[str, ...] = ("pending", "accepted", "rejected")

LOADING_HTML = '<div class="mf-list-empty mf-list-loading">Loading uploads...</div>'

_STATUS_LABELS = {
    UploadStatus.PENDING: "Pending",
    UploadStatus.ACCEPTED: "Accepted",
    UploadStatus.REJECTED: "Rejected",
}


def _log_timing(event_name: str, start: float, **fields: object) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    field_text = " ".join(f"{key}={value}" for key, value in fields.items())
    timing_logger.info("upload_list.timing event=%s ms=%.2f %s", event_name, elapsed_ms, field_text)


@dataclass(frozen=True)
class UploadListing:
    """A fetched record plus its short-lived view link (None when signing failed)."""

    record: UploadRecord
    url: Optional[str] = None


def tabs_for(is_admin: bool) -> Tuple[str, ...]:
    return ADMIN_TABS if is_admin else USER_TABS


def default_tab(is_admin: bool) -> str:
    return tabs_for(is_admin)[0]


def normalize_tab(tab: object, is_admin: bool) -> str:
    value = str(tab or "").strip().lower()
    return value if value in tabs_for(is_admin) else default_tab(is_admin)


def attach_signed_urls(
    records: Sequence[UploadRecord],
    *,
    seconds: int = SIGNED_URL_SECONDS,
    workers: int = SIGNED_URL_WORKERS,
) -> List[UploadListing]:
    """
    Sign a GET link for every record. Links are generated concurrently; a
    failed signature leaves that record without a link and nothing else.
    """
    if not records:
        return []
    start = time.perf_counter()
    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(records)))) as executor:
        # Each task runs in its own copy of the caller's context so storage time
        # still lands on the active page timing.
        futures = [
            executor.submit(contextvars.copy_context().run, signed_url, storage_key_for(record), seconds)
            for record in records
        ]
        listings = []
        for record, future in zip(records, futures):
            try:
                url = future.result()
            except Exception:  # noqa: BLE001
                logger.warning("Signed link failed for upload %s", record.id, exc_info=True)
                url = None
            listings.append(UploadListing(record=record, url=url))
    _log_timing(
        "attach_signed_urls",
        start,
        records=len(records),
        missing=sum(1 for listing in listings if listing.url is None),
    )
    return listings


def fetch_listings(ctx: DashboardContext) -> List[UploadListing]:
    start = time.perf_counter()
    records = fetch_uploads(owner_id=ctx.owner_filter)
    _log_timing("fetch_uploads", start, user_id=ctx.user_id, is_admin=ctx.is_admin, records=len(records))
    return attach_signed_urls(records)


def load_listings(ctx: DashboardContext) -> List[UploadListing]:
    """Fetch for the view; a failure is reported and yields an empty list."""
    try:
        return fetch_listings(ctx)
    except Exception as exc:  # noqa: BLE001
        logger.error("Error loading uploads for user %s", ctx.user_id, exc_info=True)
        notify_error("Error loading uploads", str(exc) or exc.__class__.__name__)
        return []


def reload_view(ctx: DashboardContext, view_key: str) -> List[UploadListing]:
    """
    Re-fetch a mounted view after one of its own writes. The pending stale
    signal is consumed first so the page timer does not fetch the same state
    again; later changes still mark the view stale.
    """
    flag = LIVE_VIEWS.flag(view_key) if view_key else None
    if flag is not None:
        flag.consume()
    return load_listings(ctx)


def filter_listings(listings: Iterable[UploadListing], tab: str) -> List[UploadListing]:
    if tab == ALL_TAB:
        return list(listings)
    return [listing for listing in listings if listing.record.status.value == tab]


def tab_choices(listings: Sequence[UploadListing], is_admin: bool) -> List[Tuple[str, str]]:
    choices = []
    for tab in tabs_for(is_admin):
        count = len(filter_listings(listings, tab))
        choices.append((f"{tab.capitalize()} ({count})", tab))
    return choices


def _format_date(record: UploadRecord) -> str:
    if record.created_at is None:
        return ""
    return record.created_at.strftime("%b %d, %Y")


def _empty_state(tab: str, is_admin: bool) -> str:
    if tab == ALL_TAB and not is_admin:
        message = "No uploads yet"
    else:
        message = f"No {tab} uploads"
    return f'<div class="mf-list-empty">{html.escape(message)}</div>'


def _card_html(listing: UploadListing, is_admin: bool) -> str:
    record = listing.record
    icon = "🖼️" if record.is_image else "📄"
    status = record.status
    badge = (
        f'<span class="mf-badge mf-badge--{html.escape(status.value)}">'
        f"{html.escape(_STATUS_LABELS.get(status, status.value))}</span>"
    )

    meta_parts = []
    if is_admin:
        submitter = record.submitter_name or record.submitter_email or "Unknown"
        meta_parts.append(f"by {html.escape(submitter)}")
    date_text = _format_date(record)
    if date_text:
        meta_parts.append(html.escape(date_text))
    meta_html = f'<div class="mf-card-meta">{" · ".join(meta_parts)}</div>' if meta_parts else ""

    description_html = (
        f'<p class="mf-card-description">{html.escape(record.description)}</p>' if record.description else ""
    )
    category_html = (
        f'<span class="mf-card-category">{html.escape(record.category)}</span>' if record.category else ""
    )
    link_html = (
        f'<a class="mf-card-link" href="{html.escape(listing.url)}" target="_blank" rel="noopener">View file</a>'
        if listing.url
        else ""
    )

    return f"""
<div class="mf-card" data-upload-id="{record.id}">
  <div class="mf-card-icon" aria-hidden="true">{icon}</div>
  <div class="mf-card-body">
    <div class="mf-card-head">
      <span class="mf-card-title">{html.escape(record.title)}</span>
      {badge}
    </div>
    {description_html}
    <div class="mf-card-foot">
      {category_html}
      <span class="mf-card-file">{html.escape(record.file_name)}</span>
    </div>
    {meta_html}
  </div>
  <div class="mf-card-actions">{link_html}</div>
</div>""".strip()


def render_listings_html(listings: Sequence[UploadListing], tab: str, *, is_admin: bool) -> str:
    visible = filter_listings(listings, tab)
    if not visible:
        return _empty_state(tab, is_admin)
    cards = "\n".join(_card_html(listing, is_admin) for listing in visible)
    return f'<div class="mf-list">\n{cards}\n</div>'


def review_choices(listings: Sequence[UploadListing], tab: str) -> List[Tuple[str, int]]:
    choices = []
    for listing in filter_listings(listings, tab):
        record = listing.record
        submitter = record.submitter_name or record.submitter_email or "Unknown"
        choices.append((f"#{record.id} · {record.title} ({submitter})", record.id))
    return choices


def find_listing(listings: Sequence[UploadListing], upload_id: object) -> Optional[UploadListing]:
    try:
        wanted = int(upload_id)
    except (TypeError, ValueError):
        return None
    for listing in listings:
        if listing.record.id == wanted:
            return listing
    return None


def review_button_updates(listings: Sequence[UploadListing], upload_id: object):
    listing = find_listing(listings, upload_id)
    # Accepted or rejected records have no review path back to pending.
    can_review = bool(listing and listing.record.is_pending)
    return gr.update(interactive=can_review), gr.update(interactive=can_review)


def list_view_updates(
    listings: Sequence[UploadListing],
    tab: object,
    ctx: Optional[DashboardContext],
    selected_id: object = None,
):
    """Updates for (tab selector, list html, review selector, accept button, reject button)."""
    is_admin = bool(ctx and ctx.is_admin)
    resolved_tab = normalize_tab(tab, is_admin)
    choices = review_choices(listings, resolved_tab) if is_admin else []
    selected = selected_id if find_listing(filter_listings(listings, resolved_tab), selected_id) else None
    accept_update, reject_update = review_button_updates(listings, selected)
    return (
        gr.update(choices=tab_choices(listings, is_admin), value=resolved_tab),
        gr.update(value=render_listings_html(listings, resolved_tab, is_admin=is_admin)),
        gr.update(choices=choices, value=selected),
        accept_update,
        reject_update,
    )


def _change_tab(tab: str, listings: List[UploadListing], ctx: Optional[DashboardContext]):
    # Filtering only; the fetched set is reused as is.
    is_admin = bool(ctx and ctx.is_admin)
    resolved_tab = normalize_tab(tab, is_admin)
    choices = review_choices(listings or [], resolved_tab) if is_admin else []
    accept_update, reject_update = review_button_updates(listings or [], None)
    return (
        gr.update(value=render_listings_html(listings or [], resolved_tab, is_admin=is_admin)),
        gr.update(choices=choices, value=None),
        accept_update,
        reject_update,
    )


def _select_review_record(upload_id: object, listings: List[UploadListing]):
    return review_button_updates(listings or [], upload_id)
