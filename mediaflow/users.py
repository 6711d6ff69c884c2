from __future__ import annotations

import re
from typing import Optional, Tuple

from sqlalchemy import text
from sqlalchemy.orm import Session

_PLACEHOLDER_DOMAIN = "placeholder.local"


def make_code(value: str, default_prefix: str = "user") -> str:
    """Lowercase slug of `value`, or `default_prefix` when nothing survives."""
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").strip().lower()).strip("-")
    return slug or default_prefix


def normalize_email(raw: Optional[str], *, default_prefix: str = "user") -> str:
    """
    Normalize an arbitrary identifier into an email-like string.
    Falls back to a placeholder domain when the identifier lacks an @ symbol.
    """
    value = (raw or "").strip().lower()
    if value and "@" in value:
        return value
    slug = make_code(value or default_prefix, default_prefix=default_prefix)
    return f"{slug}@{_PLACEHOLDER_DOMAIN}"


def ensure_user(
    session: Session,
    *,
    user_identifier: str,
    display_name: Optional[str] = None,
) -> Tuple[int, str, str]:
    """
    Upsert the app."user" row for a signed-in identity.
    Returns (id, email, name). No role is granted here.
    """
    email = normalize_email(user_identifier or display_name)
    name = (display_name or "").strip() or email.split("@", 1)[0]

    row = session.execute(
        text(
            """
            INSERT INTO app."user" (name, username, email)
            VALUES (:name, :username, :email)
            ON CONFLICT (email) DO UPDATE
            SET name = EXCLUDED.name,
                username = COALESCE("user".username, EXCLUDED.username)
            RETURNING id, email, name
            """
        ),
        {"name": name, "username": name, "email": email},
    ).mappings().one()

    return int(row["id"]), row["email"], row["name"]
