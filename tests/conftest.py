from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Callable
from unittest.mock import MagicMock

import pytest

from mediaflow.pages.dashboard.common import DashboardContext
from mediaflow.uploads import UploadRecord, UploadStatus


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def user_ctx() -> DashboardContext:
    return DashboardContext(user_id=7, email="ana@example.com", name="Ana", is_admin=False)


@pytest.fixture
def admin_ctx() -> DashboardContext:
    return DashboardContext(user_id=1, email="root@example.com", name="Root", is_admin=True)


@pytest.fixture
def make_record() -> Callable[..., UploadRecord]:
    def _make(**overrides) -> UploadRecord:
        upload_id = overrides.pop("id", 1)
        owner_id = overrides.pop("owner_id", 7)
        values = {
            "id": upload_id,
            "owner_id": owner_id,
            "title": f"Upload {upload_id}",
            "description": None,
            "category": None,
            "storage_path": f"{owner_id}/17000000000{upload_id:02d}.png",
            "file_type": "image/png",
            "file_name": f"photo-{upload_id}.png",
            "status": UploadStatus.PENDING,
            "created_at": datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc),
        }
        values.update(overrides)
        return UploadRecord(**values)

    return _make


@pytest.fixture
def fake_request() -> Callable[..., SimpleNamespace]:
    def _make(session_hash: str = "view-1", query_params: dict | None = None) -> SimpleNamespace:
        return SimpleNamespace(session_hash=session_hash, query_params=query_params or {})

    return _make


@pytest.fixture
def db_session() -> MagicMock:
    return MagicMock(name="session")


@pytest.fixture
def scope_for() -> Callable[[MagicMock], MagicMock]:
    """Build a stand-in for session_scope()/readonly_session_scope() yielding a given session."""

    def _make(session: MagicMock) -> MagicMock:
        scope = MagicMock(name="scope")
        scope.return_value.__enter__.return_value = session
        scope.return_value.__exit__.return_value = False
        return scope

    return _make
