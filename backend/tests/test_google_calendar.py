from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import httplib2
import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from calsync.core.config import Settings
from calsync.models import Event
from calsync.services import google_calendar
from calsync.services.google_calendar import (
    GoogleCalendarClient,
    MirroringDisabled,
    MirroringEnabled,
    RemoteEvent,
    build_remote_mirroring,
)
from calsync.utils.errors import AuthExpired, AuthRequired, InvalidArgument, RemoteUnavailable

from google_mocks import make_dummy_credentials, remote_item

UTC = timezone.utc


def http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b"{}")


class FakeEvents:
    """Records calls made against ``service.events()``."""

    def __init__(self, pages=None, error=None):
        self.pages = pages or {None: {"items": []}}
        self.error = error
        self.calls = []

    def _request(self, name, result, **kwargs):
        self.calls.append((name, kwargs))

        def execute():
            if self.error is not None:
                raise self.error
            return result

        return Mock(execute=execute)

    def list(self, **params):
        return self._request("list", self.pages[params.get("pageToken")], **dict(params))

    def insert(self, **kwargs):
        return self._request("insert", {"id": "g-new"}, **kwargs)

    def patch(self, **kwargs):
        return self._request("patch", {"id": kwargs["eventId"]}, **kwargs)

    def delete(self, **kwargs):
        return self._request("delete", "", **kwargs)


@pytest.fixture
def fake_events(monkeypatch):
    events = FakeEvents()

    def dummy_build(api, version, credentials=None, cache_discovery=True):
        assert (api, version) == ("calendar", "v3")
        return Mock(events=lambda: events)

    monkeypatch.setattr(google_calendar, "build", dummy_build)
    return events


@pytest.fixture
def client():
    oauth = Mock()
    oauth.get_credentials.return_value = make_dummy_credentials()
    return GoogleCalendarClient(oauth=oauth, cfg=Settings(GOOGLE_CALENDAR_ID="work@example.com"))


def local_event(google_event_id=None):
    return Event(
        id="e1",
        user_id=1,
        title="Standup",
        description=None,
        start_time=datetime(2025, 1, 6, 9, 0, tzinfo=UTC),
        end_time=datetime(2025, 1, 6, 9, 15, tzinfo=UTC),
        google_event_id=google_event_id,
    )


def test_from_api_timed_event():
    remote = RemoteEvent.from_api(
        remote_item("abc", "Lunch", "2025-01-07T12:00:00+02:00", "2025-01-07T13:00:00+02:00", description="Thai")
    )
    assert remote.id == "abc"
    assert remote.summary == "Lunch"
    assert remote.description == "Thai"
    assert remote.start == datetime(2025, 1, 7, 10, 0, tzinfo=UTC)
    assert remote.end == datetime(2025, 1, 7, 11, 0, tzinfo=UTC)
    assert remote.all_day is False
    assert not remote.cancelled


def test_from_api_all_day_event_starts_at_midnight_utc():
    remote = RemoteEvent.from_api(remote_item("day", "Holiday", "2025-01-07", "2025-01-08"))
    assert remote.all_day is True
    assert remote.start == datetime(2025, 1, 7, tzinfo=UTC)
    assert remote.end == datetime(2025, 1, 8, tzinfo=UTC)


def test_from_api_cancelled_stub_has_no_times():
    remote = RemoteEvent.from_api({"id": "g123", "status": "cancelled"})
    assert remote.cancelled
    assert remote.start is None and remote.end is None


@pytest.mark.parametrize(
    "item",
    [
        {"status": "confirmed"},
        {"id": "x", "start": {"dateTime": "2025-01-07T10:00:00Z"}},
        {"id": "x", "start": {"dateTime": "2025-01-07T10:00:00"}, "end": {"dateTime": "2025-01-07T11:00:00"}},
        {"id": "x", "start": {"date": "07/01/2025"}, "end": {"date": "2025-01-08"}},
        remote_item("x", start="2025-01-07T12:00:00Z", end="2025-01-07T11:00:00Z"),
    ],
)
def test_from_api_rejects_malformed_items(item):
    with pytest.raises(InvalidArgument):
        RemoteEvent.from_api(item)


def test_create_event_sends_utc_body(client, fake_events):
    remote_id = client.create_event(None, 1, local_event())

    assert remote_id == "g-new"
    name, kwargs = fake_events.calls[0]
    assert name == "insert"
    assert kwargs["calendarId"] == "work@example.com"
    assert kwargs["body"] == {
        "summary": "Standup",
        "description": "",
        "start": {"dateTime": "2025-01-06T09:00:00Z", "timeZone": "UTC"},
        "end": {"dateTime": "2025-01-06T09:15:00Z", "timeZone": "UTC"},
    }


def test_update_event_patches_remote_copy(client, fake_events):
    client.update_event(None, 1, local_event("g9"))

    name, kwargs = fake_events.calls[0]
    assert name == "patch"
    assert kwargs["eventId"] == "g9"


def test_update_without_remote_id_is_invalid(client, fake_events):
    with pytest.raises(InvalidArgument):
        client.update_event(None, 1, local_event())
    assert fake_events.calls == []


def test_insert_http_error_is_remote_unavailable(client, fake_events):
    fake_events.error = http_error(503)
    with pytest.raises(RemoteUnavailable):
        client.create_event(None, 1, local_event())


def test_network_error_is_remote_unavailable(client, fake_events):
    fake_events.error = httplib2.ServerNotFoundError("dns")
    with pytest.raises(RemoteUnavailable):
        client.create_event(None, 1, local_event())


@pytest.mark.parametrize("status", [404, 410])
def test_delete_of_missing_remote_event_succeeds(client, fake_events, status):
    fake_events.error = http_error(status)
    client.delete_event(None, 1, "gone")
    assert fake_events.calls == [("delete", {"calendarId": "work@example.com", "eventId": "gone"})]


def test_delete_server_error_is_remote_unavailable(client, fake_events):
    fake_events.error = http_error(500)
    with pytest.raises(RemoteUnavailable):
        client.delete_event(None, 1, "g1")


def test_list_events_follows_pages(client, fake_events):
    fake_events.pages = {
        None: {"items": [remote_item("a")], "nextPageToken": "p2"},
        "p2": {"items": [remote_item("b"), {"id": "c", "status": "cancelled"}]},
    }
    time_min = datetime(2025, 1, 1, tzinfo=UTC)

    items = client.list_events(
        None, 1, time_min, time_min + timedelta(days=365), updated_min=time_min
    )

    assert [item["id"] for item in items] == ["a", "b", "c"]
    first, second = (kwargs for _, kwargs in fake_events.calls)
    assert first["timeMin"] == "2025-01-01T00:00:00Z"
    assert first["timeMax"] == "2026-01-01T00:00:00Z"
    assert first["updatedMin"] == "2025-01-01T00:00:00Z"
    assert first["singleEvents"] is True
    assert first["showDeleted"] is True
    assert "pageToken" not in first
    assert second["pageToken"] == "p2"


def test_list_events_without_updated_min(client, fake_events):
    now = datetime(2025, 1, 6, tzinfo=UTC)
    client.list_events(None, 1, now, now + timedelta(days=1))
    assert "updatedMin" not in fake_events.calls[0][1]


def test_missing_credential_propagates(fake_events):
    oauth = Mock()
    oauth.get_credentials.side_effect = AuthRequired("not connected")
    client = GoogleCalendarClient(oauth=oauth, cfg=Settings())

    with pytest.raises(AuthRequired):
        client.create_event(None, 1, local_event())
    assert fake_events.calls == []


def test_build_remote_mirroring():
    disabled = build_remote_mirroring(Settings(GOOGLE_CLIENT_ID="", GOOGLE_CLIENT_SECRET=""))
    assert isinstance(disabled, MirroringDisabled)

    enabled = build_remote_mirroring(Settings(GOOGLE_CLIENT_ID="id", GOOGLE_CLIENT_SECRET="secret"))
    assert isinstance(enabled, MirroringEnabled)
    assert isinstance(enabled.client, GoogleCalendarClient)


def test_credential_rejected_mid_request_is_auth_expired(client, fake_events):
    fake_events.error = RefreshError("invalid_grant: Token has been expired or revoked.")

    with pytest.raises(AuthExpired):
        client.create_event(None, 1, local_event())
    with pytest.raises(AuthExpired):
        client.delete_event(None, 1, "g1")
    with pytest.raises(AuthExpired):
        client.list_events(None, 1, datetime(2025, 1, 1, tzinfo=UTC), datetime(2025, 2, 1, tzinfo=UTC))
