from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Optional

from google.api_core.exceptions import NotFound
from google.cloud import storage
from google.oauth2 import service_account

from mediaflow.page_timing import storage_call_timing

logger = logging.getLogger(__name__)

# Defaults can be overridden via env vars without touching code
DEFAULT_BUCKET = os.getenv("BUCKET_NAME") or os.getenv("MEDIAFLOW_BUCKET", "mediaflow-uploads")
DEFAULT_KEYFILE = os.getenv("MEDIAFLOW_BUCKET_KEY_FILE", "secrets/mediaflow_bucket_key.json")


def _credentials():
    """
    Prefer an explicit service-account key file; return None to fall back to
    Application Default Credentials when it is missing or unreadable.
    """
    path = DEFAULT_KEYFILE
    if not path or not os.path.exists(path):
        return None
    try:
        return service_account.Credentials.from_service_account_file(path)
    except (OSError, ValueError):
        logger.warning("Could not read storage key file %s; using default credentials.", path, exc_info=True)
        return None


def storage_client() -> storage.Client:
    creds = _credentials()
    if creds is not None:
        return storage.Client(credentials=creds, project=creds.project_id)
    return storage.Client()  # ADC


def get_bucket(name: Optional[str] = None) -> storage.Bucket:
    return storage_client().bucket(name or DEFAULT_BUCKET)


def upload_file(local_path: str | Path, blob_name: str, *, content_type: Optional[str] = None) -> str:
    """Upload a local file to `blob_name`. Raises on any storage failure."""
    blob = get_bucket().blob(blob_name)
    with storage_call_timing("upload", blob_name):
        blob.upload_from_filename(str(local_path), content_type=content_type)
    return blob.name


def delete_blob(blob_name: str) -> None:
    """
    Delete one object. A missing object raises FileNotFoundError; any other
    storage error propagates unchanged.
    """
    blob = get_bucket().blob(blob_name)
    try:
        with storage_call_timing("delete", blob_name):
            blob.delete()
    except NotFound:
        raise FileNotFoundError(blob_name)


def signed_url(blob_name: str, seconds: int = 3600) -> Optional[str]:
    """Generate a V4 signed GET URL valid for `seconds`; return None on failure."""
    try:
        blob = get_bucket().blob(blob_name)
        with storage_call_timing("signed_url", blob_name):
            return blob.generate_signed_url(
                version="v4",
                expiration=timedelta(seconds=max(1, int(seconds))),
                method="GET",
            )
    except Exception:  # noqa: BLE001
        logger.warning("Could not sign URL for %s", blob_name, exc_info=True)
        return None
