"""
Tests for check-in / check-out and the event zone.
"""
import pytest
from datetime import date, datetime, timedelta, timezone
from httpx import AsyncClient

from app.core.exceptions import NotFoundError
from app.services.checkin_service import CheckinService
from app.services.zone_service import ZoneService
from app.controllers.zone import ZoneController
from tests.utils.mocks import MockDBConnection, MockDatabase, FakeCheckinTable
from tests.utils.factories import SessionFactory, AnnouncementFactory


@pytest.fixture
def table(mock_conn):
    t = FakeCheckinTable()
    t.install(mock_conn)
    return t


class TestCheckinService:

    @pytest.mark.asyncio
    async def test_check_in_creates_row(self, mock_database, table):
        service = CheckinService(mock_database)

        checkin = await service.check_in("event-1", "user-1", location="Gate 2")

        assert checkin.is_active
        assert checkin.location == "Gate 2"
        assert len(table.rows) == 1
        assert mock_database.impersonated == ["user-1"]

    @pytest.mark.asyncio
    async def test_second_check_in_same_day_reuses_row(self, mock_database, table):
        """Check in, check out, check in again on the same day: still one row, active again."""
        service = CheckinService(mock_database)
        morning = datetime(2026, 5, 10, 9, 0, tzinfo=timezone.utc)

        first = await service.check_in("event-1", "user-1", now=morning)
        await service.check_out("event-1", "user-1", now=morning + timedelta(hours=2))
        again = await service.check_in("event-1", "user-1", now=morning + timedelta(hours=4))

        assert len(table.rows) == 1
        assert again.id == first.id
        assert again.checkout_time is None
        assert again.checkin_time == morning + timedelta(hours=4)

    @pytest.mark.asyncio
    async def test_new_day_gets_new_row(self, mock_database, table):
        service = CheckinService(mock_database)
        day1 = datetime(2026, 5, 10, 9, 0, tzinfo=timezone.utc)

        await service.check_in("event-1", "user-1", now=day1)
        await service.check_in("event-1", "user-1", now=day1 + timedelta(days=1))

        assert len(table.rows) == 2

    @pytest.mark.asyncio
    async def test_check_in_date_follows_event_timezone(self, mock_database, mock_conn, table):
        """20:00 UTC is already the next morning in Kolkata."""
        mock_conn.set_fetchval_return("FROM events", "Asia/Kolkata")
        evening_utc = datetime(2026, 5, 10, 20, 0, tzinfo=timezone.utc)

        checkin = await CheckinService(mock_database).check_in("event-1", "user-1", now=evening_utc)

        assert checkin.checkin_date == date(2026, 5, 11)
        assert checkin.checkin_time == evening_utc

    @pytest.mark.asyncio
    async def test_check_in_date_without_timezone_is_utc(self, mock_database, table):
        evening_utc = datetime(2026, 5, 10, 20, 0, tzinfo=timezone.utc)

        checkin = await CheckinService(mock_database).check_in("event-1", "user-1", now=evening_utc)

        assert checkin.checkin_date == date(2026, 5, 10)

    @pytest.mark.asyncio
    async def test_check_out_without_check_in(self, mock_database, table):
        with pytest.raises(NotFoundError):
            await CheckinService(mock_database).check_out("event-1", "user-1")

    @pytest.mark.asyncio
    async def test_current_event_and_attendee_count(self, mock_database, table):
        service = CheckinService(mock_database)
        await service.check_in("event-1", "user-1")
        await service.check_in("event-1", "user-2")

        assert await service.get_current_event_id("user-1") == "event-1"
        assert await service.get_attendee_count("event-1", "user-1") == 2


class TestZoneController:

    @pytest.mark.asyncio
    async def test_flag_set_during_round_trip_and_state_changes_on_ack(self, mock_database, table):
        controller = ZoneController(CheckinService(mock_database), ZoneService(mock_database), "user-1")
        seen = []
        controller.add_listener(lambda: seen.append((controller.is_checking_in, controller.is_checked_in)))

        status = await controller.check_in("event-1")

        assert status.is_checked_in
        # First notification: busy, not yet checked in. Last: done, checked in.
        assert seen[0] == (True, False)
        assert seen[-1] == (False, True)

    @pytest.mark.asyncio
    async def test_failed_check_out_leaves_state(self, mock_database, table):
        controller = ZoneController(CheckinService(mock_database), ZoneService(mock_database), "user-1")

        with pytest.raises(NotFoundError):
            await controller.check_out("event-1")

        assert not controller.is_checking_in
        assert not controller.is_checked_in

    @pytest.mark.asyncio
    async def test_overview_survives_partial_failure(self, mock_database, mock_conn, table):
        from app.core.exceptions import TransportError

        mock_conn.set_fetch_return("start_time <= $2", [SessionFactory.create(starts_in=timedelta(minutes=-10))])
        mock_conn.set_fetch_return("start_time > $2", TransportError("connection reset"))
        mock_conn.set_fetch_return("FROM event_announcements", [
            AnnouncementFactory.create(is_pinned=True, title="Pinned"),
            AnnouncementFactory.create(title="Other"),
        ])
        controller = ZoneController(CheckinService(mock_database), ZoneService(mock_database), "user-1")

        overview = await controller.load_overview("event-1")

        assert len(overview.live_sessions) == 1
        assert overview.upcoming_sessions == []
        assert [a.title for a in overview.announcements] == ["Pinned", "Other"]
        assert not overview.is_checked_in


class TestCheckinEndpoints:

    @pytest.mark.asyncio
    async def test_check_in_and_status(self, client: AsyncClient, table, auth_headers, test_user_id):
        response = await client.post("/events/event-1/checkin", json={"location": "Hall A"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["is_checked_in"] is True

        response = await client.get("/events/event-1/checkin", headers=auth_headers)
        assert response.json()["checkin"]["location"] == "Hall A"

    @pytest.mark.asyncio
    async def test_check_in_without_body(self, client: AsyncClient, table, auth_headers):
        response = await client.post("/events/event-1/checkin", headers=auth_headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_check_out_when_not_checked_in(self, client: AsyncClient, table, auth_headers):
        response = await client.post("/events/event-1/checkout", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"] is True

    @pytest.mark.asyncio
    async def test_zone_current(self, client: AsyncClient, table, auth_headers):
        await client.post("/events/event-1/checkin", headers=auth_headers)

        response = await client.get("/zone/current", headers=auth_headers)

        assert response.json() == {"event_id": "event-1", "is_checked_in": True}

    @pytest.mark.asyncio
    async def test_zone_overview(self, client: AsyncClient, table, auth_headers):
        await client.post("/events/event-1/checkin", headers=auth_headers)

        response = await client.get("/events/event-1/zone", headers=auth_headers)

        data = response.json()
        assert response.status_code == 200
        assert data["is_checked_in"] is True
        assert data["attendee_count"] == 1
