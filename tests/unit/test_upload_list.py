from unittest.mock import patch

import pytest

from mediaflow.pages.dashboard.core_upload_list import (
    UploadListing,
    _change_tab,
    attach_signed_urls,
    default_tab,
    fetch_listings,
    filter_listings,
    list_view_updates,
    load_listings,
    reload_view,
    render_listings_html,
    review_button_updates,
    tab_choices,
)
from mediaflow.realtime import CHANGE_FEED, LIVE_VIEWS, ChangeEvent
from mediaflow.uploads import UploadStatus


@pytest.fixture
def listings(make_record):
    return [
        UploadListing(make_record(id=1, status=UploadStatus.PENDING), "https://signed/1"),
        UploadListing(make_record(id=2, status=UploadStatus.ACCEPTED), "https://signed/2"),
        UploadListing(make_record(id=3, status=UploadStatus.PENDING), None),
        UploadListing(make_record(id=4, status=UploadStatus.REJECTED), "https://signed/4"),
    ]


class TestTabs:
    def test_defaults_per_variant(self) -> None:
        assert default_tab(is_admin=False) == "all"
        assert default_tab(is_admin=True) == "pending"

    def test_filter_by_status(self, listings) -> None:
        assert [item.record.id for item in filter_listings(listings, "pending")] == [1, 3]
        assert [item.record.id for item in filter_listings(listings, "accepted")] == [2]
        assert [item.record.id for item in filter_listings(listings, "all")] == [1, 2, 3, 4]

    def test_counts_in_labels(self, listings) -> None:
        assert tab_choices(listings, is_admin=False) == [
            ("All (4)", "all"),
            ("Pending (2)", "pending"),
            ("Accepted (1)", "accepted"),
            ("Rejected (1)", "rejected"),
        ]
        assert [value for _, value in tab_choices(listings, is_admin=True)] == ["pending", "accepted", "rejected"]

    def test_switching_tabs_never_fetches(self, listings, user_ctx) -> None:
        with patch("mediaflow.pages.dashboard.core_upload_list.fetch_uploads") as mock_fetch:
            for tab in ("pending", "accepted", "rejected", "all"):
                _change_tab(tab, listings, user_ctx)
        mock_fetch.assert_not_called()

    def test_admin_tabs_filter_without_fetching(self, make_record, admin_ctx) -> None:
        listings = [
            UploadListing(make_record(id=1, title="Pending scan", status=UploadStatus.PENDING), None),
            UploadListing(make_record(id=2, title="Accepted scan", status=UploadStatus.ACCEPTED), None),
            UploadListing(make_record(id=3, title="Rejected scan", status=UploadStatus.REJECTED), None),
        ]
        with patch("mediaflow.pages.dashboard.core_upload_list.fetch_uploads") as mock_fetch:
            pending_html, pending_selector, _, _ = _change_tab("pending", listings, admin_ctx)
            accepted_html, accepted_selector, _, _ = _change_tab("accepted", listings, admin_ctx)

        assert "Pending scan" in pending_html["value"]
        assert "Accepted scan" not in pending_html["value"]
        assert "Rejected scan" not in pending_html["value"]
        assert [value for _, value in pending_selector["choices"]] == [1]

        assert "Accepted scan" in accepted_html["value"]
        assert "Pending scan" not in accepted_html["value"]
        assert "Rejected scan" not in accepted_html["value"]
        assert [value for _, value in accepted_selector["choices"]] == [2]
        mock_fetch.assert_not_called()


class TestRendering:
    def test_empty_states(self) -> None:
        assert "No uploads yet" in render_listings_html([], "all", is_admin=False)
        assert "No accepted uploads" in render_listings_html([], "accepted", is_admin=False)
        assert "No pending uploads" in render_listings_html([], "pending", is_admin=True)

    def test_view_link_only_when_signed(self, listings) -> None:
        html_value = render_listings_html(listings, "pending", is_admin=False)
        assert html_value.count("View file") == 1
        assert "https://signed/1" in html_value

    def test_user_text_is_escaped(self, make_record) -> None:
        listing = UploadListing(make_record(title="<script>alert(1)</script>"), None)
        html_value = render_listings_html([listing], "all", is_admin=False)
        assert "<script>" not in html_value
        assert "&lt;script&gt;" in html_value

    def test_admin_cards_show_submitter(self, make_record) -> None:
        listing = UploadListing(make_record(submitter_name="Ana"), None)
        assert "by Ana" in render_listings_html([listing], "pending", is_admin=True)
        assert "by Ana" not in render_listings_html([listing], "all", is_admin=False)

    def test_document_icon_for_pdf(self, make_record) -> None:
        listing = UploadListing(make_record(file_type="application/pdf"), None)
        assert "📄" in render_listings_html([listing], "all", is_admin=False)


class TestSignedUrls:
    def test_one_failed_signature_only_drops_that_link(self, make_record) -> None:
        records = [make_record(id=i) for i in range(1, 6)]

        def _sign(key, seconds):
            assert seconds == 3600
            return None if key == records[2].storage_path else f"https://signed/{key}"

        with patch("mediaflow.pages.dashboard.core_upload_list.signed_url", side_effect=_sign):
            result = attach_signed_urls(records, seconds=3600)

        assert [item.record.id for item in result] == [1, 2, 3, 4, 5]
        assert [item.url is None for item in result] == [False, False, True, False, False]

    def test_raising_signature_is_contained(self, make_record) -> None:
        records = [make_record(id=1), make_record(id=2)]

        def _sign(key, seconds):
            if key == records[0].storage_path:
                raise RuntimeError("signing backend down")
            return "https://signed/ok"

        with patch("mediaflow.pages.dashboard.core_upload_list.signed_url", side_effect=_sign):
            result = attach_signed_urls(records)

        assert [item.url for item in result] == [None, "https://signed/ok"]

    def test_no_records_means_no_signing(self) -> None:
        with patch("mediaflow.pages.dashboard.core_upload_list.signed_url") as mock_sign:
            assert attach_signed_urls([]) == []
        mock_sign.assert_not_called()


@patch("mediaflow.pages.dashboard.core_upload_list.attach_signed_urls", side_effect=lambda records: records)
@patch("mediaflow.pages.dashboard.core_upload_list.fetch_uploads", return_value=[])
class TestFetching:
    def test_user_view_is_owner_scoped(self, mock_fetch, _mock_sign, user_ctx) -> None:
        fetch_listings(user_ctx)
        mock_fetch.assert_called_once_with(owner_id=7)

    def test_admin_view_fetches_everything(self, mock_fetch, _mock_sign, admin_ctx) -> None:
        fetch_listings(admin_ctx)
        mock_fetch.assert_called_once_with(owner_id=None)

    def test_fetch_failure_reports_and_returns_empty(self, mock_fetch, _mock_sign, user_ctx) -> None:
        mock_fetch.side_effect = RuntimeError("db down")
        with patch("mediaflow.pages.dashboard.core_upload_list.notify_error") as mock_error:
            assert load_listings(user_ctx) == []
        mock_error.assert_called_once_with("Error loading uploads", "db down")


class TestReviewControls:
    def test_only_pending_records_are_reviewable(self, listings) -> None:
        accept, reject = review_button_updates(listings, 1)
        assert accept["interactive"] is True and reject["interactive"] is True
        accept, reject = review_button_updates(listings, 2)
        assert accept["interactive"] is False and reject["interactive"] is False

    def test_unknown_selection_disables_actions(self, listings) -> None:
        accept, _ = review_button_updates(listings, "not-an-id")
        assert accept["interactive"] is False

    def test_admin_updates_list_reviewable_choices(self, listings, admin_ctx) -> None:
        tab_update, _, selector_update, _, _ = list_view_updates(listings, None, admin_ctx)
        assert tab_update["value"] == "pending"
        assert [value for _, value in selector_update["choices"]] == [1, 3]

    def test_selection_outside_the_tab_is_dropped(self, listings, admin_ctx) -> None:
        _, _, selector_update, accept, _ = list_view_updates(listings, "pending", admin_ctx, selected_id=2)
        assert selector_update["value"] is None
        assert accept["interactive"] is False


class TestReloadView:
    def test_reload_consumes_pending_signal(self, user_ctx) -> None:
        flag = LIVE_VIEWS.attach("reload-view", "uploads", row_filter={"user_id": 7})
        try:
            CHANGE_FEED.publish("uploads", ChangeEvent.INSERT, {"id": 9, "user_id": 7})
            with patch("mediaflow.pages.dashboard.core_upload_list.load_listings", return_value=[]) as mock_load:
                reload_view(user_ctx, "reload-view")
            mock_load.assert_called_once_with(user_ctx)
            assert flag.consume() is False
        finally:
            LIVE_VIEWS.detach("reload-view")
