from __future__ import annotations

import enum
import logging
import mimetypes
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional

from sqlalchemy import text

from mediaflow.config import RUNTIME_SCHEMA_BOOTSTRAP
from mediaflow.db import readonly_session_scope, session_scope
from mediaflow.realtime import CHANGE_FEED, ChangeEvent

logger = logging.getLogger(__name__)

UPLOADS_TABLE = "uploads"

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
CATEGORY_MAX_LENGTH = 50

PDF_MIME_TYPE = "application/pdf"

_DB_INIT_LOCK = threading.Lock()
_DB_INIT_DONE = False


class UploadStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class UploadValidationError(ValueError):
    """Raised before any network call when a submission is not acceptable."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


@dataclass(frozen=True)
class UploadMetadata:
    title: str
    description: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class UploadRecord:
    id: int
    owner_id: int
    title: str
    description: Optional[str]
    category: Optional[str]
    storage_path: str
    file_type: str
    file_name: str
    status: UploadStatus
    created_at: Optional[datetime]
    submitter_name: Optional[str] = None
    submitter_email: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return (self.file_type or "").lower().startswith("image/")

    @property
    def is_pending(self) -> bool:
        return self.status == UploadStatus.PENDING


def resolve_mime_type(file_name: object) -> str:
    name = str(file_name or "").strip()
    guessed = mimetypes.guess_type(name)[0] if name else None
    return (guessed or "").lower()


def is_allowed_file_type(mime_type: str) -> bool:
    """Images of any subtype, or exactly application/pdf."""
    value = (mime_type or "").strip().lower()
    return value.startswith("image/") or value == PDF_MIME_TYPE


def validate_metadata(title: object, description: object = None, category: object = None) -> UploadMetadata:
    """
    Check the submission fields in form order and raise on the first
    violation. Blank optional fields become None.
    """
    title_value = str(title or "")
    description_value = str(description or "")
    category_value = str(category or "")

    if len(title_value) < 1:
        raise UploadValidationError("title", "Title is required")
    if len(title_value) > TITLE_MAX_LENGTH:
        raise UploadValidationError("title", f"Title must be less than {TITLE_MAX_LENGTH} characters")
    if len(description_value) > DESCRIPTION_MAX_LENGTH:
        raise UploadValidationError(
            "description", f"Description must be less than {DESCRIPTION_MAX_LENGTH} characters"
        )
    if len(category_value) > CATEGORY_MAX_LENGTH:
        raise UploadValidationError("category", f"Category must be less than {CATEGORY_MAX_LENGTH} characters")

    return UploadMetadata(
        title=title_value,
        description=description_value or None,
        category=category_value or None,
    )


def file_extension(file_name: str) -> str:
    # Text after the last dot; a name without a dot is used whole.
    return str(file_name or "").rsplit(".", 1)[-1]


def build_storage_path(owner_id: int, timestamp_ms: int, file_name: str) -> str:
    return f"{int(owner_id)}/{int(timestamp_ms)}.{file_extension(file_name)}"


def storage_key_for(record: UploadRecord) -> str:
    """Object key for a record: the last two segments of its stored path."""
    return "/".join(str(record.storage_path or "").split("/")[-2:])


def record_from_row(row: Mapping[str, Any]) -> UploadRecord:
    return UploadRecord(
        id=int(row["id"]),
        owner_id=int(row["user_id"]),
        title=row["title"],
        description=row.get("description"),
        category=row.get("category"),
        storage_path=row["storage_path"],
        file_type=row.get("file_type") or "",
        file_name=row.get("file_name") or "",
        status=UploadStatus(str(row.get("status") or UploadStatus.PENDING.value).lower()),
        created_at=row.get("created_at"),
        submitter_name=row.get("submitter_name"),
        submitter_email=row.get("submitter_email"),
    )


def ensure_uploads_db() -> None:
    global _DB_INIT_DONE
    if _DB_INIT_DONE:
        return

    with _DB_INIT_LOCK:
        if _DB_INIT_DONE:
            return
        if RUNTIME_SCHEMA_BOOTSTRAP:
            _ensure_uploads_db_once()
            logger.info("Upload review schema verified.")
        _DB_INIT_DONE = True


def _ensure_uploads_db_once() -> None:
    with session_scope() as session:
        session.execute(text("CREATE SCHEMA IF NOT EXISTS app"))
        session.execute(
            text(
                """
                CREATE TABLE IF NOT EXISTS app."user" (
                    id BIGSERIAL PRIMARY KEY,
                    name TEXT NOT NULL,
                    username TEXT,
                    email TEXT NOT NULL UNIQUE,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                )
                """
            )
        )
        session.execute(
            text(
                """
                CREATE TABLE IF NOT EXISTS app.user_roles (
                    id BIGSERIAL PRIMARY KEY,
                    user_id BIGINT NOT NULL REFERENCES app."user"(id) ON UPDATE CASCADE ON DELETE CASCADE,
                    role TEXT NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                    CONSTRAINT uq_user_roles_user_role UNIQUE (user_id, role)
                )
                """
            )
        )
        session.execute(
            text(
                """
                CREATE TABLE IF NOT EXISTS app.uploads (
                    id BIGSERIAL PRIMARY KEY,
                    user_id BIGINT NOT NULL REFERENCES app."user"(id) ON UPDATE CASCADE ON DELETE CASCADE,
                    title TEXT NOT NULL,
                    description TEXT,
                    category TEXT,
                    storage_path TEXT NOT NULL UNIQUE,
                    file_type TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                    CONSTRAINT chk_uploads_title_length CHECK (char_length(title) BETWEEN 1 AND 100),
                    CONSTRAINT chk_uploads_description_length CHECK (
                        description IS NULL OR char_length(description) <= 500
                    ),
                    CONSTRAINT chk_uploads_category_length CHECK (
                        category IS NULL OR char_length(category) <= 50
                    ),
                    CONSTRAINT chk_uploads_status CHECK (status IN ('pending', 'accepted', 'rejected'))
                )
                """
            )
        )
        session.execute(
            text("CREATE INDEX IF NOT EXISTS ix_uploads_user_created ON app.uploads (user_id, created_at DESC)")
        )


_SELECT_COLUMNS = """
    u.id,
    u.user_id,
    u.title,
    u.description,
    u.category,
    u.storage_path,
    u.file_type,
    u.file_name,
    u.status,
    u.created_at
"""


def fetch_uploads(owner_id: Optional[int] = None) -> List[UploadRecord]:
    """
    Newest first. With `owner_id` only that user's uploads; without it every
    upload joined with its submitter's name and email.
    """
    ensure_uploads_db()
    with readonly_session_scope() as session:
        if owner_id is not None:
            rows = session.execute(
                text(
                    f"""
                    SELECT {_SELECT_COLUMNS}
                    FROM app.uploads u
                    WHERE u.user_id = :owner_id
                    ORDER BY u.created_at DESC, u.id DESC
                    """
                ),
                {"owner_id": int(owner_id)},
            ).mappings().all()
        else:
            rows = session.execute(
                text(
                    f"""
                    SELECT {_SELECT_COLUMNS},
                        COALESCE(usr.username, usr.name) AS submitter_name,
                        usr.email AS submitter_email
                    FROM app.uploads u
                    LEFT JOIN app."user" usr ON usr.id = u.user_id
                    ORDER BY u.created_at DESC, u.id DESC
                    """
                )
            ).mappings().all()
    return [record_from_row(row) for row in rows]


def insert_upload(
    *,
    owner_id: int,
    metadata: UploadMetadata,
    storage_path: str,
    file_type: str,
    file_name: str,
) -> UploadRecord:
    ensure_uploads_db()
    with session_scope() as session:
        row = session.execute(
            text(
                f"""
                INSERT INTO app.uploads AS u (
                    user_id, title, description, category,
                    storage_path, file_type, file_name, status
                )
                VALUES (
                    :user_id, :title, :description, :category,
                    :storage_path, :file_type, :file_name, :status
                )
                RETURNING {_SELECT_COLUMNS}
                """
            ),
            {
                "user_id": int(owner_id),
                "title": metadata.title,
                "description": metadata.description,
                "category": metadata.category,
                "storage_path": storage_path,
                "file_type": file_type,
                "file_name": file_name,
                "status": UploadStatus.PENDING.value,
            },
        ).mappings().one()
    record = record_from_row(row)
    CHANGE_FEED.publish(UPLOADS_TABLE, ChangeEvent.INSERT, {"id": record.id, "user_id": record.owner_id})
    return record


def update_upload_status(upload_id: int, status: UploadStatus) -> Optional[int]:
    """Set only the status column. Returns the owner id, or None when no row matched."""
    ensure_uploads_db()
    with session_scope() as session:
        owner_id = session.execute(
            text(
                """
                UPDATE app.uploads
                SET status = :status
                WHERE id = :upload_id
                RETURNING user_id
                """
            ),
            {"status": UploadStatus(status).value, "upload_id": int(upload_id)},
        ).scalar_one_or_none()
    if owner_id is not None:
        CHANGE_FEED.publish(UPLOADS_TABLE, ChangeEvent.UPDATE, {"id": int(upload_id), "user_id": int(owner_id)})
    return owner_id


def delete_upload(upload_id: int) -> bool:
    ensure_uploads_db()
    with session_scope() as session:
        owner_id = session.execute(
            text("DELETE FROM app.uploads WHERE id = :upload_id RETURNING user_id"),
            {"upload_id": int(upload_id)},
        ).scalar_one_or_none()
    if owner_id is None:
        logger.info("Upload %s was already deleted.", upload_id)
        return False
    CHANGE_FEED.publish(UPLOADS_TABLE, ChangeEvent.DELETE, {"id": int(upload_id), "user_id": int(owner_id)})
    return True
