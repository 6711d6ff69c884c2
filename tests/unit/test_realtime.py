import logging

from mediaflow.realtime import ChangeEvent, ChangeFeed, LiveViewRegistry, StaleFlag


class TestChangeFeed:
    def test_delivers_only_matching_rows(self) -> None:
        feed = ChangeFeed()
        received = []
        feed.subscribe("uploads", received.append, row_filter={"user_id": 7})

        assert feed.publish("uploads", ChangeEvent.INSERT, {"id": 1, "user_id": 7}) == 1
        assert feed.publish("uploads", ChangeEvent.INSERT, {"id": 2, "user_id": 8}) == 0
        assert feed.publish("other", ChangeEvent.INSERT, {"id": 3, "user_id": 7}) == 0

        assert [change.row["id"] for change in received] == [1]

    def test_filter_compares_as_text(self) -> None:
        feed = ChangeFeed()
        received = []
        feed.subscribe("uploads", received.append, row_filter={"user_id": "7"})
        feed.publish("uploads", ChangeEvent.UPDATE, {"id": 1, "user_id": 7})
        assert len(received) == 1

    def test_unfiltered_subscription_sees_every_event(self) -> None:
        feed = ChangeFeed()
        received = []
        feed.subscribe("uploads", received.append)
        for event in ChangeEvent:
            feed.publish("uploads", event, {"id": 1, "user_id": 3})
        assert [change.event for change in received] == list(ChangeEvent)

    def test_unsubscribe_stops_delivery(self) -> None:
        feed = ChangeFeed()
        received = []
        subscription = feed.subscribe("uploads", received.append)
        subscription.unsubscribe()
        subscription.unsubscribe()

        feed.publish("uploads", ChangeEvent.DELETE, {"id": 1})
        assert received == []
        assert feed.subscriber_count() == 0

    def test_scoped_subscription_is_released(self) -> None:
        feed = ChangeFeed()
        with feed.subscription("uploads", lambda change: None):
            assert feed.subscriber_count("uploads") == 1
        assert feed.subscriber_count("uploads") == 0

    def test_failing_listener_does_not_block_others(self, caplog) -> None:
        feed = ChangeFeed()
        received = []

        def _broken(change):
            raise RuntimeError("boom")

        feed.subscribe("uploads", _broken)
        feed.subscribe("uploads", received.append)
        with caplog.at_level(logging.WARNING, logger="mediaflow.realtime"):
            assert feed.publish("uploads", ChangeEvent.INSERT, {"id": 1}) == 2
        assert len(received) == 1
        assert "Change listener failed" in caplog.text


class TestStaleFlag:
    def test_consume_reports_each_invalidation_once(self) -> None:
        flag = StaleFlag()
        assert flag.consume() is False
        flag.invalidate()
        flag.invalidate()
        assert flag.consume() is True
        assert flag.consume() is False


class TestLiveViewRegistry:
    def test_attach_marks_view_stale_on_change(self) -> None:
        feed = ChangeFeed()
        registry = LiveViewRegistry(feed)
        flag = registry.attach("view-a", "uploads", row_filter={"user_id": 7})

        feed.publish("uploads", ChangeEvent.UPDATE, {"id": 1, "user_id": 8})
        assert flag.consume() is False
        feed.publish("uploads", ChangeEvent.UPDATE, {"id": 1, "user_id": 7})
        assert flag.consume() is True
        assert registry.flag("view-a") is flag

    def test_detach_releases_subscription(self) -> None:
        feed = ChangeFeed()
        registry = LiveViewRegistry(feed)
        registry.attach("view-a", "uploads")

        assert registry.detach("view-a") is True
        assert registry.detach("view-a") is False
        assert feed.subscriber_count() == 0
        assert len(registry) == 0
        assert registry.flag("view-a") is None

    def test_reattach_replaces_previous_subscription(self) -> None:
        feed = ChangeFeed()
        registry = LiveViewRegistry(feed)
        first = registry.attach("view-a", "uploads")
        second = registry.attach("view-a", "uploads")

        feed.publish("uploads", ChangeEvent.INSERT, {"id": 1})
        assert feed.subscriber_count() == 1
        assert first.consume() is False
        assert second.consume() is True
