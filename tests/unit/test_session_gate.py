from mediaflow.session_gate import (
    AuthEvent,
    AuthEventHub,
    GatedView,
    GatedViewRegistry,
    SafeNavigator,
)


class TestSafeNavigator:
    def test_navigation_waits_for_delay(self, clock) -> None:
        navigator = SafeNavigator(clock)
        assert navigator.navigate("/") is True
        assert navigator.take_due() is None
        clock.advance(0.1)
        assert navigator.take_due() == "/"
        assert navigator.take_due() is None

    def test_requests_within_debounce_window_are_suppressed(self, clock) -> None:
        navigator = SafeNavigator(clock)
        assert navigator.navigate("/") is True
        clock.advance(0.2)
        assert navigator.navigate("/other") is False
        clock.advance(0.1)
        assert navigator.take_due() == "/"

    def test_requests_after_window_are_accepted(self, clock) -> None:
        navigator = SafeNavigator(clock)
        navigator.navigate("/")
        clock.advance(0.6)
        assert navigator.navigate("/again") is True
        clock.advance(0.1)
        assert navigator.take_due() == "/again"

    def test_reset_clears_pending_and_window(self, clock) -> None:
        navigator = SafeNavigator(clock)
        navigator.navigate("/")
        navigator.reset()
        assert navigator.has_pending is False
        assert navigator.navigate("/") is True


class TestGatedView:
    def test_own_sign_out_schedules_redirect(self, clock) -> None:
        hub = AuthEventHub()
        view = GatedView(hub, 7, clock=clock)
        hub.publish(AuthEvent.SIGNED_OUT, 7, has_session=False)
        clock.advance(0.1)
        assert view.navigator.take_due() == "/"

    def test_other_users_events_are_ignored(self, clock) -> None:
        hub = AuthEventHub()
        view = GatedView(hub, 7, clock=clock)
        hub.publish(AuthEvent.SIGNED_OUT, 8, has_session=False)
        assert view.navigator.has_pending is False

    def test_sign_out_in_another_browser_is_ignored(self, clock) -> None:
        hub = AuthEventHub()
        phone = GatedView(hub, 7, session_id="browser-b", clock=clock)
        laptop = GatedView(hub, 7, session_id="browser-a", clock=clock)
        hub.publish(AuthEvent.SIGNED_OUT, 7, has_session=False, session_id="browser-a")
        assert phone.navigator.has_pending is False
        assert laptop.navigator.has_pending is True

    def test_unscoped_sign_out_reaches_every_session(self, clock) -> None:
        hub = AuthEventHub()
        view = GatedView(hub, 7, session_id="browser-b", clock=clock)
        hub.publish(AuthEvent.SIGNED_OUT, 7, has_session=False)
        assert view.navigator.has_pending is True

    def test_refresh_with_session_keeps_page(self, clock) -> None:
        hub = AuthEventHub()
        view = GatedView(hub, 7, clock=clock)
        hub.publish(AuthEvent.TOKEN_REFRESHED, 7, has_session=True)
        hub.publish(AuthEvent.SIGNED_IN, 7, has_session=True)
        assert view.navigator.has_pending is False

    def test_missing_session_on_recheck_redirects(self, clock) -> None:
        view = GatedView(AuthEventHub(), 7, clock=clock)
        view.check_session({"user_id": 7})
        assert view.navigator.has_pending is False
        view.check_session(None)
        assert view.navigator.has_pending is True

    def test_close_unsubscribes(self, clock) -> None:
        hub = AuthEventHub()
        view = GatedView(hub, 7, clock=clock)
        view.close()
        assert hub.listener_count() == 0
        hub.publish(AuthEvent.SIGNED_OUT, 7, has_session=False)
        assert view.navigator.has_pending is False


class TestGatedViewRegistry:
    def test_open_and_close_track_listeners(self) -> None:
        hub = AuthEventHub()
        registry = GatedViewRegistry(hub)
        view = registry.open("view-a", 7)
        assert registry.get("view-a") is view
        assert hub.listener_count() == 1

        registry.open("view-a", 7)
        assert hub.listener_count() == 1

        assert registry.close("view-a") is True
        assert registry.close("view-a") is False
        assert hub.listener_count() == 0
