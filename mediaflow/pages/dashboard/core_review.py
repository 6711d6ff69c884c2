from __future__ import annotations

import logging
import time
from typing import List, Optional

import gradio as gr

from mediaflow.gcs_storage import delete_blob
from mediaflow.pages.dashboard.common import DashboardContext, notify_error, notify_info, view_key_of
from mediaflow.pages.dashboard.core_upload_list import UploadListing, find_listing, list_view_updates, reload_view
from mediaflow.roles import resolve_is_admin
from mediaflow.uploads import UploadRecord, UploadStatus, delete_upload, storage_key_for, update_upload_status

logger = logging.getLogger(__name__)
timing_logger = logging.getLogger("uvicorn.error")


class ReviewError(RuntimeError):
    pass


def _log_timing(event_name: str, start: float, **fields: object) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    field_text = " ".join(f"{key}={value}" for key, value in fields.items())
    timing_logger.info("review.timing event=%s ms=%.2f %s", event_name, elapsed_ms, field_text)


def _require_admin(ctx: Optional[DashboardContext]) -> DashboardContext:
    # The grant is looked up again so a revoked admin cannot act from an open page.
    if ctx is None or not ctx.is_admin or not resolve_is_admin(ctx.user_id):
        raise PermissionError("Admin access is required to review uploads.")
    return ctx


def accept_upload(ctx: Optional[DashboardContext], upload_id: int) -> None:
    """Mark one upload accepted. Only the status column changes."""
    _require_admin(ctx)
    start = time.perf_counter()
    owner_id = update_upload_status(int(upload_id), UploadStatus.ACCEPTED)
    _log_timing("accept_upload", start, upload_id=upload_id, found=owner_id is not None)
    if owner_id is None:
        raise ReviewError(f"Upload {upload_id} no longer exists.")
    logger.info("Admin %s accepted upload %s", ctx.user_id, upload_id)


def reject_upload(ctx: Optional[DashboardContext], record: UploadRecord) -> None:
    """
    Delete the stored object, then the record. A storage failure aborts with
    the record intact. An object that is already gone counts as deleted.
    """
    _require_admin(ctx)
    storage_key = storage_key_for(record)
    start = time.perf_counter()
    try:
        delete_blob(storage_key)
    except FileNotFoundError:
        logger.warning("Stored object %s for upload %s was already missing.", storage_key, record.id)
    _log_timing("reject_upload.delete_blob", start, upload_id=record.id, path=storage_key)

    start = time.perf_counter()
    try:
        deleted = delete_upload(record.id)
    except Exception:
        logger.error(
            "Record delete failed after removing %s; upload %s now has no stored object.",
            storage_key,
            record.id,
            exc_info=True,
        )
        raise
    _log_timing("reject_upload.delete_upload", start, upload_id=record.id, deleted=deleted)
    logger.info("Admin %s rejected upload %s", ctx.user_id, record.id)


def _review_outputs(ctx, listings: List[UploadListing], tab: str, status_message: str, selected_id: object = None):
    return (
        gr.update(value=status_message, visible=bool(status_message)),
        listings,
        *list_view_updates(listings, tab, ctx, selected_id),
    )


def _start_review():
    return gr.update(interactive=False), gr.update(interactive=False)


def _accept_selected(
    ctx: Optional[DashboardContext],
    upload_id: object,
    tab: str,
    listings: List[UploadListing],
    request: gr.Request,
):
    """
    Outputs: action status, listings state, tab selector, list html,
    review selector, accept button, reject button.
    """
    listing = find_listing(listings or [], upload_id)
    if listing is None:
        notify_error("Action failed", "Select an upload to review first.")
        return _review_outputs(ctx, listings or [], tab, "")

    try:
        accept_upload(ctx, listing.record.id)
    except Exception as exc:  # noqa: BLE001
        logger.error("Accept failed for upload %s", listing.record.id, exc_info=True)
        notify_error("Action failed", str(exc) or exc.__class__.__name__)
        return _review_outputs(ctx, listings or [], tab, f"❌ Could not accept “{listing.record.title}”.", listing.record.id)

    notify_info("Upload accepted", "The user will be notified.")
    refreshed = reload_view(ctx, view_key_of(request))
    return _review_outputs(ctx, refreshed, tab, f"✅ Accepted “{listing.record.title}”.")


def _reject_selected(
    ctx: Optional[DashboardContext],
    upload_id: object,
    tab: str,
    listings: List[UploadListing],
    request: gr.Request,
):
    listing = find_listing(listings or [], upload_id)
    if listing is None:
        notify_error("Action failed", "Select an upload to review first.")
        return _review_outputs(ctx, listings or [], tab, "")

    try:
        reject_upload(ctx, listing.record)
    except Exception as exc:  # noqa: BLE001
        logger.error("Reject failed for upload %s", listing.record.id, exc_info=True)
        notify_error("Action failed", str(exc) or exc.__class__.__name__)
        return _review_outputs(ctx, listings or [], tab, f"❌ Could not reject “{listing.record.title}”.", listing.record.id)

    notify_info("Upload rejected", "The file has been deleted.")
    refreshed = reload_view(ctx, view_key_of(request))
    return _review_outputs(ctx, refreshed, tab, f"✅ Rejected “{listing.record.title}”.")
