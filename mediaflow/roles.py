from __future__ import annotations

import logging
import time

from sqlalchemy import text

from mediaflow.db import readonly_session_scope

logger = logging.getLogger(__name__)
timing_logger = logging.getLogger("uvicorn.error")

ADMIN_ROLE = "admin"


def _log_timing(event_name: str, start: float, **fields: object) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    field_text = " ".join(f"{key}={value}" for key, value in fields.items())
    timing_logger.info("roles.timing event=%s ms=%.2f %s", event_name, elapsed_ms, field_text)


def has_role(user_id: int, role: str) -> bool:
    """
    Point lookup of a (user_id, role) grant. Any failure of the lookup itself
    (driver, connector or engine setup) propagates; callers decide how to degrade.
    """
    with readonly_session_scope() as session:
        grant = session.execute(
            text(
                """
                SELECT 1
                FROM app.user_roles r
                WHERE r.user_id = :user_id
                  AND lower(r.role) = lower(:role)
                LIMIT 1
                """
            ),
            {"user_id": int(user_id), "role": role},
        ).scalar_one_or_none()
    return grant is not None


def resolve_is_admin(user_id: int | None) -> bool:
    """
    Decide which dashboard renders. A missing grant means a regular user; a
    failed lookup is logged and also treated as a regular user so the page
    still renders.
    """
    if not user_id:
        return False
    start = time.perf_counter()
    try:
        is_admin = has_role(int(user_id), ADMIN_ROLE)
    except Exception as exc:  # noqa: BLE001
        _log_timing("resolve_is_admin.error", start, user_id=user_id)
        logger.warning("Error checking admin status for user %s: %s", user_id, exc, exc_info=True)
        return False
    _log_timing("resolve_is_admin", start, user_id=user_id, is_admin=is_admin)
    return is_admin
