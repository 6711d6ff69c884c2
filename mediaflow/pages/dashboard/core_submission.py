from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

import gradio as gr

from mediaflow.gcs_storage import upload_file
from mediaflow.pages.dashboard.common import DashboardContext, notify_error, notify_info
from mediaflow.uploads import (
    UploadRecord,
    UploadValidationError,
    build_storage_path,
    insert_upload,
    is_allowed_file_type,
    resolve_mime_type,
    validate_metadata,
)

logger = logging.getLogger(__name__)
timing_logger = logging.getLogger("uvicorn.error")

NO_FILE_MESSAGE = "Please select a file to upload."
INVALID_TYPE_MESSAGE = "Please upload an image (PNG, JPG, etc.) or a PDF file."

_ERROR_TITLES = {
    "file": "No file selected",
    "file_type": "Invalid file type",
}


def _log_timing(event_name: str, start: float, **fields: object) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    field_text = " ".join(f"{key}={value}" for key, value in fields.items())
    timing_logger.info("submission.timing event=%s ms=%.2f %s", event_name, elapsed_ms, field_text)


def _extract_upload_path(file_value: object) -> Optional[str]:
    if file_value is None:
        return None
    if isinstance(file_value, (list, tuple)):
        file_value = file_value[0] if file_value else None
        if file_value is None:
            return None
    if isinstance(file_value, (str, Path)):
        return str(file_value) or None
    if isinstance(file_value, dict):
        return file_value.get("path") or file_value.get("name")
    return getattr(file_value, "path", None) or getattr(file_value, "name", None)


def _extract_original_name(file_value: object, upload_path: str) -> str:
    if isinstance(file_value, dict):
        original = file_value.get("orig_name")
        if original:
            return Path(str(original)).name
    original = getattr(file_value, "orig_name", None)
    if original:
        return Path(str(original)).name
    return Path(upload_path).name


def submit_upload(
    ctx: DashboardContext,
    file_value: object,
    title: object,
    description: object = None,
    category: object = None,
    *,
    clock: Callable[[], float] = time.time,
) -> UploadRecord:
    """
    Store one file and create its pending record.

    Validation errors are raised before any network call. A storage failure
    aborts before the record is written. A record failure after a successful
    upload leaves the stored object behind; it is logged with its path.
    """
    upload_path = _extract_upload_path(file_value)
    if not upload_path:
        raise UploadValidationError("file", NO_FILE_MESSAGE)

    metadata = validate_metadata(title, description, category)

    file_name = _extract_original_name(file_value, upload_path)
    mime_type = resolve_mime_type(file_name)
    if not is_allowed_file_type(mime_type):
        raise UploadValidationError("file_type", INVALID_TYPE_MESSAGE)

    storage_path = build_storage_path(ctx.user_id, int(clock() * 1000), file_name)

    start = time.perf_counter()
    upload_file(upload_path, storage_path, content_type=mime_type)
    _log_timing("upload_file", start, user_id=ctx.user_id, path=storage_path)

    start = time.perf_counter()
    try:
        record = insert_upload(
            owner_id=ctx.user_id,
            metadata=metadata,
            storage_path=storage_path,
            file_type=mime_type,
            file_name=file_name,
        )
    except Exception:
        logger.error("Upload record insert failed; stored object %s is orphaned.", storage_path, exc_info=True)
        raise
    _log_timing("insert_upload", start, user_id=ctx.user_id, upload_id=record.id)
    return record


def _check_selected_file(file_value: object):
    """Reject disallowed types as soon as they are picked and clear the selection."""
    upload_path = _extract_upload_path(file_value)
    if not upload_path:
        return gr.update()
    mime_type = resolve_mime_type(_extract_original_name(file_value, upload_path))
    if is_allowed_file_type(mime_type):
        return gr.update()
    logger.info("Rejected file selection %s with type %r", upload_path, mime_type)
    notify_error("Invalid file type", INVALID_TYPE_MESSAGE)
    return gr.update(value=None)


def _start_upload():
    return gr.update(value="Uploading...", interactive=False)


def _submit_upload(
    ctx: Optional[DashboardContext],
    file_value: object,
    title: str,
    description: str,
    category: str,
    refresh_key: float,
):
    """
    Outputs: file input, title, description, category, submit button, refresh key.
    The refresh key only moves on success, which triggers exactly one re-fetch.
    """
    unchanged: List[object] = [gr.update(), gr.update(), gr.update(), gr.update()]
    submit_reset = gr.update(value="Submit for review", interactive=True)
    current_key = int(refresh_key or 0)

    if ctx is None:
        notify_error("Upload failed", "You must be signed in to upload files.")
        return (*unchanged, submit_reset, current_key)

    try:
        record = submit_upload(ctx, file_value, title, description, category)
    except UploadValidationError as exc:
        notify_error(_ERROR_TITLES.get(exc.field, "Validation error"), exc.message)
        return (*unchanged, submit_reset, current_key)
    except Exception as exc:  # noqa: BLE001
        logger.error("Upload failed for user %s", ctx.user_id, exc_info=True)
        notify_error("Upload failed", str(exc) or exc.__class__.__name__)
        return (*unchanged, submit_reset, current_key)

    logger.info("User %s submitted upload %s (%s)", ctx.user_id, record.id, record.storage_path)
    notify_info("Upload successful!", "Your file has been submitted for review.")
    return (
        gr.update(value=None),
        gr.update(value=""),
        gr.update(value=""),
        gr.update(value=""),
        submit_reset,
        current_key + 1,
    )
