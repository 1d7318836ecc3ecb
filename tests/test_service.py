"""
Tests for the revive service: cache loading, refresh, load more and logout.
"""

from datetime import timezone
from unittest.mock import MagicMock

import pytest

from revive_logbook.config import Config
from revive_logbook.errors import RecordsFetchFailed
from revive_logbook.schemas import ExclusionSet, Mode
from revive_logbook.services import ReviveService
from revive_logbook.torn_client import TornAuthError, TornClient, TornConnectionError

ME = 1712955


@pytest.fixture
def mock_client():
    client = MagicMock(spec=TornClient)
    client.fetch_page.return_value = []
    return client


@pytest.fixture
def service(store, mock_client):
    return ReviveService(store, Config(), torn_client=mock_client, tz=timezone.utc)


class TestLoading:
    def test_load_from_cache(self, service, store, sample_page):
        store.put_records(Mode.INDIVIDUAL, sample_page)

        enriched = service.load_from_cache()

        assert len(enriched) == 5
        assert service.reference_actor_id == ME
        assert service.view.current_view().filtered_count == 5

    def test_refresh_enriches_whole_cache(self, service, store, mock_client, make_revive):
        store.put_records(
            Mode.INDIVIDUAL, [make_revive(1, 100, target_id=10, skill=50.0)]
        )
        mock_client.fetch_page.return_value = [make_revive(2, 200, target_id=11, skill=45.0)]

        assert service.refresh() == 1

        gains = {r.id: r.skill_gain for r in service.view.all_records()}
        assert gains == {1: 5.0, 2: None}

    def test_load_more_after_exhaustion_is_noop(self, service, mock_client, sample_page, store):
        store.put_records(Mode.INDIVIDUAL, sample_page)
        service.load_from_cache()

        assert service.load_more() == 0
        assert service.has_more() is False
        mock_client.fetch_page.reset_mock()

        assert service.load_more() == 0
        mock_client.fetch_page.assert_not_called()

    def test_last_page_triggers_load_more(self, service, store, mock_client, sample_page):
        store.put_records(Mode.INDIVIDUAL, sample_page)
        service.load_from_cache()

        service.view.go_to_page(1)

        mock_client.fetch_page.assert_called_once_with(Mode.INDIVIDUAL, before=1_700_000_100)

    def test_offline_last_page_still_served(self, service, store, mock_client, sample_page):
        store.put_records(Mode.INDIVIDUAL, sample_page)
        service.load_from_cache()
        mock_client.fetch_page.side_effect = TornConnectionError("offline")

        page = service.view.go_to_page(1)

        assert page.filtered_count == 5
        assert service.has_more() is True


class TestModes:
    def test_saved_mode_used(self, store, mock_client):
        store.save_api_mode("group")
        service = ReviveService(store, Config(), torn_client=mock_client)
        assert service.mode is Mode.GROUP

    def test_switch_mode_persists_and_loads(self, service, store, sample_page):
        store.put_records(Mode.GROUP, sample_page[:2])

        enriched = service.switch_mode("faction")

        assert service.mode is Mode.GROUP
        assert store.get_api_mode() is Mode.GROUP
        assert len(enriched) == 2


class TestPaymentsAndBilling:
    def test_toggle_payment(self, service, store, sample_page):
        store.put_records(Mode.INDIVIDUAL, sample_page)
        record = service.load_from_cache()[0]

        assert service.toggle_payment(record) is True
        assert store.get_payment(record.payment_key) is True
        assert service.view.summary().paid == 1

    def test_bill_ignores_view_filters(self, service, store, make_revive):
        store.put_records(
            Mode.INDIVIDUAL,
            [make_revive(i, 100 * i, target_name="Cat") for i in range(1, 4)],
        )
        service.load_from_cache()
        service.view.exclude_target("Cat")

        summary = service.bill("Cat")

        assert summary.billable == 3


class TestLogout:
    def test_client_required(self, store):
        service = ReviveService(store, Config())
        with pytest.raises(RecordsFetchFailed) as exc_info:
            service.refresh()
        assert exc_info.value.auth_failed is True

    def test_client_built_from_saved_key(self, store):
        store.save_api_key("abc")
        service = ReviveService(store, Config())
        assert service.client.session.headers["Authorization"] == "ApiKey abc"

    def test_logout_keeps_cache(self, service, store, sample_page):
        store.put_records(Mode.INDIVIDUAL, sample_page)
        store.save_api_key("abc")

        service.logout()

        assert store.get_api_key() is None
        assert store.count_records(Mode.INDIVIDUAL) == 5

    def test_clear_all_data(self, service, store, sample_page):
        store.put_records(Mode.INDIVIDUAL, sample_page)
        service.load_from_cache()
        service.view.exclude_target("Bob")
        service.view.set_filters(outcome="failure")

        service.clear_all_data()

        assert store.count_records(Mode.INDIVIDUAL) == 0
        assert service.view.all_records() == []
        assert service.view.exclusions == ExclusionSet()
        assert service.view.filters.outcome is None


class TestInteractionTimeline:
    def test_timeline_merges_logs_and_cached_revives(self, service, store, mock_client, sample_page):
        store.put_records(Mode.INDIVIDUAL, sample_page)
        service.load_from_cache()
        mock_client.fetch_logs.return_value = [
            {"id": "x", "timestamp": 1_700_000_600, "details": {"id": 4810, "title": "Money receive"}, "data": {"money": 1}},
        ]

        events = service.interaction_timeline(3005)

        mock_client.fetch_logs.assert_called_once_with(3005)
        assert [(e.kind, e.timestamp) for e in events] == [
            ("log", 1_700_000_600),
            ("revive", 1_700_000_500),
        ]

    def test_timeline_auth_failure(self, service, mock_client):
        mock_client.fetch_logs.side_effect = TornAuthError(200, "Incorrect key", 2)

        with pytest.raises(RecordsFetchFailed) as exc_info:
            service.interaction_timeline(3005)

        assert exc_info.value.auth_failed is True
        assert "logs" in str(exc_info.value)

    def test_timeline_network_failure(self, service, mock_client):
        mock_client.fetch_logs.side_effect = TornConnectionError("offline")

        with pytest.raises(RecordsFetchFailed) as exc_info:
            service.interaction_timeline(3005)

        assert exc_info.value.auth_failed is False
