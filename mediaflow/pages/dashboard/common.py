from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import gradio as gr

from mediaflow.login_logic import get_user, session_user_id
from mediaflow.roles import resolve_is_admin

logger = logging.getLogger(__name__)

PAGE_ROUTE = "/dashboard"


@dataclass(frozen=True)
class DashboardContext:
    """Identity and role resolved once when the dashboard mounts."""

    user_id: int
    email: str
    name: str
    is_admin: bool

    @property
    def owner_filter(self) -> Optional[int]:
        # Admins see every upload; everyone else only their own.
        return None if self.is_admin else self.user_id

    @property
    def subtitle(self) -> str:
        return "Admin Dashboard" if self.is_admin else "User Dashboard"


def build_context(user: Optional[dict]) -> Optional[DashboardContext]:
    user_id = session_user_id(user)
    if user_id is None:
        return None
    return DashboardContext(
        user_id=user_id,
        email=str((user or {}).get("email") or ""),
        name=str((user or {}).get("name") or (user or {}).get("email") or ""),
        is_admin=resolve_is_admin(user_id),
    )


def view_key_of(request: Any) -> str:
    return str(getattr(request, "session_hash", None) or "")


def same_identity(ctx: Optional[DashboardContext], request: Any) -> bool:
    if ctx is None:
        return False
    return session_user_id(get_user(request)) == ctx.user_id


def notify_info(title: str, message: str) -> None:
    gr.Info(message, title=title)


def notify_error(title: str, message: str) -> None:
    gr.Warning(message, title=title)
