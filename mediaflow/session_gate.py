"""Keeps gated pages in step with the signed-in session.

The login routes publish auth events; each mounted dashboard registers a
`GatedView` that listens for its own identity and asks its `SafeNavigator` to
leave the page once the session is gone.
"""
from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from mediaflow.config import SIGN_IN_PATH

logger = logging.getLogger(__name__)

# Redirects closer together than this are dropped.
NAVIGATION_DEBOUNCE_SECONDS = 0.5
# Accepted redirects wait this long so in-flight state can settle.
NAVIGATION_DELAY_SECONDS = 0.1


class AuthEvent(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


@dataclass(frozen=True)
class AuthChange:
    event: AuthEvent
    user_id: Optional[int]
    has_session: bool
    # Cookie session the event belongs to; None reaches every session of the user.
    session_id: Optional[str] = None


AuthListener = Callable[[AuthChange], None]


class AuthSubscription:
    def __init__(self, hub: "AuthEventHub", listener: AuthListener) -> None:
        self._hub = hub
        self._listener = listener
        self._active = True

    def notify(self, change: AuthChange) -> None:
        if self._active:
            self._listener(change)

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._hub._remove(self)


class AuthEventHub:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: List[AuthSubscription] = []

    def on_auth_state_change(self, listener: AuthListener) -> AuthSubscription:
        subscription = AuthSubscription(self, listener)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def publish(
        self,
        event: AuthEvent,
        user_id: Optional[int],
        *,
        has_session: bool,
        session_id: Optional[str] = None,
    ) -> None:
        change = AuthChange(event=AuthEvent(event), user_id=user_id, has_session=has_session, session_id=session_id)
        with self._lock:
            targets = list(self._subscriptions)
        for subscription in targets:
            try:
                subscription.notify(change)
            except Exception:  # noqa: BLE001
                logger.warning("Auth listener failed for %s", change.event.value, exc_info=True)

    def listener_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, subscription: AuthSubscription) -> None:
        with self._lock:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                pass


class SafeNavigator:
    """
    Debounced redirect requests for one mounted page.

    `navigate()` records a pending target unless the previous accepted request
    came less than NAVIGATION_DEBOUNCE_SECONDS ago; `take_due()` hands the target out
    once NAVIGATION_DELAY_SECONDS have passed.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last_navigation: Optional[float] = None
        self._pending: Optional[tuple[str, float]] = None

    def navigate(self, path: str) -> bool:
        now = self._clock()
        with self._lock:
            if self._last_navigation is not None and now - self._last_navigation < NAVIGATION_DEBOUNCE_SECONDS:
                return False
            self._last_navigation = now
            # A newer accepted request replaces any redirect still waiting for its delay.
            self._pending = (path, now + NAVIGATION_DELAY_SECONDS)
            return True

    def take_due(self) -> Optional[str]:
        now = self._clock()
        with self._lock:
            if self._pending is None:
                return None
            path, due_at = self._pending
            if now < due_at:
                return None
            self._pending = None
            return path

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def reset(self) -> None:
        with self._lock:
            self._last_navigation = None
            self._pending = None


class GatedView:
    """Auth subscription plus navigator for one mounted page."""

    def __init__(
        self,
        hub: AuthEventHub,
        user_id: int,
        *,
        session_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.user_id = int(user_id)
        self.session_id = session_id or None
        self.navigator = SafeNavigator(clock)
        self._subscription = hub.on_auth_state_change(self._on_auth_change)

    def _on_auth_change(self, change: AuthChange) -> None:
        if change.user_id is not None and int(change.user_id) != self.user_id:
            return
        if change.session_id and self.session_id and change.session_id != self.session_id:
            return
        if change.event == AuthEvent.SIGNED_OUT or not change.has_session:
            logger.info("Session ended for user %s (%s); leaving gated page.", self.user_id, change.event.value)
            self.navigator.navigate(SIGN_IN_PATH)

    def check_session(self, session_user: Optional[dict]) -> None:
        """Re-check the cookie session on every poll; a vanished session redirects too."""
        if not session_user:
            self.navigator.navigate(SIGN_IN_PATH)

    def close(self) -> None:
        self._subscription.unsubscribe()
        self.navigator.reset()


class GatedViewRegistry:
    def __init__(self, hub: AuthEventHub) -> None:
        self._hub = hub
        self._lock = threading.Lock()
        self._views: Dict[str, GatedView] = {}

    def open(self, view_key: str, user_id: int, *, session_id: Optional[str] = None) -> GatedView:
        self.close(view_key)
        view = GatedView(self._hub, user_id, session_id=session_id)
        with self._lock:
            self._views[view_key] = view
        return view

    def get(self, view_key: str) -> Optional[GatedView]:
        with self._lock:
            return self._views.get(view_key)

    def close(self, view_key: str) -> bool:
        with self._lock:
            view = self._views.pop(view_key, None)
        if view is None:
            return False
        view.close()
        return True


AUTH_EVENTS = AuthEventHub()
GATED_VIEWS = GatedViewRegistry(AUTH_EVENTS)
