"""
Tests for the event detail page.
"""
import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient

from app.core.exceptions import NotFoundError, TransportError, ServerRejectedError
from app.models.event import Event, TicketTier, Registration, EventMode, SaveToggleOutcome
from app.controllers.event_detail import (
    EventDetailController, format_date, format_time, format_duration, MODE_BADGES, EMPTY_BADGE
)
from tests.utils.factories import EventFactory, TierFactory, RegistrationFactory


class FakeEventsService:
    def __init__(self, event=None, tiers=None, fail=None):
        self.event = event
        self.tiers = tiers or []
        self.fail = fail or {}
        self.saved = False
        self.save_calls = 0

    async def _maybe_fail(self, name):
        if name in self.fail:
            raise self.fail[name]

    async def get_event_by_id(self, event_id, user_id=None):
        await self._maybe_fail("event")
        return self.event

    async def get_ticket_tiers(self, event_id, user_id=None):
        await self._maybe_fail("tiers")
        return self.tiers

    async def get_published_faqs(self, event_id):
        await self._maybe_fail("faqs")
        return []

    async def is_event_saved(self, event_id, user_id):
        await self._maybe_fail("saved")
        return self.saved

    async def get_user_registration(self, event_id, user_id):
        await self._maybe_fail("registration")
        return None

    async def save_event(self, event_id, user_id):
        self.save_calls += 1
        await self._maybe_fail("save")
        self.saved = True

    async def unsave_event(self, event_id, user_id):
        self.save_calls += 1
        await self._maybe_fail("save")
        self.saved = False


def event(**kwargs) -> Event:
    return Event(**EventFactory.create(id="event-1", **kwargs))


class TestFormatting:

    def test_date(self):
        assert format_date(datetime(2026, 1, 5, 15, 5)) == "Jan 5, 2026"

    @pytest.mark.parametrize("hour,minute,expected", [
        (15, 5, "3:05 PM"),
        (0, 0, "12:00 AM"),
        (12, 30, "12:30 PM"),
        (9, 45, "9:45 AM"),
    ])
    def test_time(self, hour, minute, expected):
        assert format_time(datetime(2026, 1, 5, hour, minute)) == expected

    @pytest.mark.parametrize("delta,expected", [
        (timedelta(days=2, hours=3), "2d 3h"),
        (timedelta(hours=3, minutes=5), "3h 5m"),
        (timedelta(minutes=5), "5m"),
        (timedelta(hours=1), "1h 0m"),
    ])
    def test_duration(self, delta, expected):
        start = datetime(2026, 1, 5, 9, 0)
        assert format_duration(start, start + delta) == expected


class TestEventDetailController:

    @pytest.mark.asyncio
    async def test_initialize_loads_everything(self):
        tiers = [TicketTier(**t) for t in TierFactory.create_batch(2, sold_count=4)]
        service = FakeEventsService(event=event(mode="HYBRID"), tiers=tiers)
        service.saved = True
        controller = EventDetailController(service, "user-1")

        await controller.initialize("event-1")

        assert controller.event.id == "event-1"
        assert controller.is_saved
        assert controller.registered_count == 8
        assert controller.mode_badge == MODE_BADGES[EventMode.HYBRID]
        assert not controller.is_loading

    @pytest.mark.asyncio
    async def test_secondary_failures_leave_parts_empty(self):
        service = FakeEventsService(
            event=event(),
            fail={"tiers": TransportError("timeout"), "faqs": TransportError("timeout")}
        )
        controller = EventDetailController(service, "user-1")

        await controller.initialize("event-1")

        assert controller.event is not None
        assert controller.tiers == []
        assert controller.faqs == []

    @pytest.mark.asyncio
    async def test_missing_event(self):
        controller = EventDetailController(FakeEventsService(event=None), "user-1")

        with pytest.raises(NotFoundError):
            await controller.initialize("event-1")

    @pytest.mark.asyncio
    async def test_event_error_propagates(self):
        service = FakeEventsService(fail={"event": TransportError("db down")})

        with pytest.raises(TransportError):
            await EventDetailController(service, "user-1").initialize("event-1")

    def test_badge_without_event(self):
        assert EventDetailController(FakeEventsService(), "user-1").mode_badge == EMPTY_BADGE

    @pytest.mark.asyncio
    async def test_is_upcoming(self):
        start = datetime(2026, 6, 1, 10, 0, tzinfo=timezone.utc)
        controller = EventDetailController(FakeEventsService(event=event(start_date=start)), "user-1")
        await controller.initialize("event-1")

        assert controller.is_upcoming(start - timedelta(minutes=1))
        assert not controller.is_upcoming(start)

    @pytest.mark.asyncio
    async def test_refresh_after_registration_keeps_parts_that_fail(self):
        service = FakeEventsService(event=event(), tiers=[TicketTier(**TierFactory.create(id="t1"))])
        controller = EventDetailController(service, "user-1")
        await controller.initialize("event-1")
        previous = controller.registration = Registration(**RegistrationFactory.create(id="reg-1", form_responses={}))
        service.tiers = [TicketTier(**TierFactory.create(id="t1", sold_count=100))]
        service.fail = {"registration": TransportError("offline")}

        await controller.refresh_after_registration()

        assert controller.tiers[0].sold_count == 100
        assert controller.registration is previous

    @pytest.mark.asyncio
    async def test_toggle_save(self):
        service = FakeEventsService(event=event())
        controller = EventDetailController(service, "user-1")
        await controller.initialize("event-1")

        result = await controller.toggle_save()

        assert result.outcome == SaveToggleOutcome.SUCCESS
        assert result.is_saved

    @pytest.mark.asyncio
    async def test_toggle_save_failure_keeps_status(self):
        service = FakeEventsService(event=event(), fail={"save": ServerRejectedError("Not allowed", 403)})
        controller = EventDetailController(service, "user-1")
        await controller.initialize("event-1")

        result = await controller.toggle_save()

        assert result.outcome == SaveToggleOutcome.FAILED
        assert not result.is_saved
        assert not controller.is_saving

    @pytest.mark.asyncio
    async def test_toggle_save_while_busy(self):
        service = FakeEventsService(event=event())
        controller = EventDetailController(service, "user-1")
        controller.is_saving = True

        result = await controller.toggle_save()

        assert result.outcome == SaveToggleOutcome.BUSY
        assert service.save_calls == 0

    @pytest.mark.asyncio
    async def test_view_labels_use_event_timezone(self):
        start = datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc)
        service = FakeEventsService(event=event(
            start_date=start, end_date=start + timedelta(hours=2), timezone="Asia/Kolkata"
        ))
        controller = EventDetailController(service, "user-1")
        await controller.initialize("event-1")

        view = controller.to_view(now=start - timedelta(days=1))

        assert view.date_label == "Jan 5, 2026"
        assert view.time_label == "3:00 PM"
        assert view.duration_label == "2h 0m"
        assert view.price_range.label == ""


class TestEventEndpoints:

    @pytest.mark.asyncio
    async def test_detail(self, client: AsyncClient, mock_conn, auth_headers, test_user_id):
        mock_conn.set_fetchrow_return("FROM events", EventFactory.create(id="event-1", mode="ONLINE"))
        mock_conn.set_fetch_return("FROM ticket_tiers", [
            TierFactory.create(price=0, sort_order=1),
            TierFactory.create(price=500, sort_order=2, sold_count=3),
        ])
        mock_conn.set_fetchrow_return(
            "FROM registrations", RegistrationFactory.create(event_id="event-1", user_id=test_user_id)
        )

        response = await client.get("/events/event-1", headers=auth_headers)

        data = response.json()
        assert response.status_code == 200
        assert data["mode_badge"]["label"] == "Online"
        assert data["price_range"]["label"] == "Free – ₹500"
        assert data["is_registered"] is True
        assert data["registration"]["form_responses"] == {"attendees": []}
        assert data["registered_count"] == 3

    @pytest.mark.asyncio
    async def test_detail_not_found(self, client: AsyncClient, auth_headers):
        response = await client.get("/events/missing", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Event not found"

    @pytest.mark.asyncio
    async def test_detail_requires_auth(self, client: AsyncClient):
        response = await client.get("/events/event-1")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_toggle_save(self, client: AsyncClient, mock_conn, auth_headers):
        response = await client.post("/events/event-1/save", headers=auth_headers)

        assert response.json() == {"outcome": "success", "is_saved": True}
        assert mock_conn.was_called_with("execute", "INSERT INTO saved_events")

    @pytest.mark.asyncio
    async def test_unsave(self, client: AsyncClient, mock_conn, auth_headers):
        mock_conn.set_fetchrow_return("FROM saved_events", {"id": "saved-1"})

        response = await client.post("/events/event-1/save", headers=auth_headers)

        assert response.json() == {"outcome": "success", "is_saved": False}
        assert mock_conn.was_called_with("execute", "DELETE FROM saved_events")

    @pytest.mark.asyncio
    async def test_tiers(self, client: AsyncClient, mock_conn, auth_headers):
        mock_conn.set_fetch_return("FROM ticket_tiers", [
            TierFactory.create(name="Sold out", quantity=1, sold_count=1, sort_order=0),
            TierFactory.create(name="General", price=299, sort_order=1),
        ])

        response = await client.get("/events/event-1/tiers", headers=auth_headers)

        data = response.json()
        assert [t["name"] for t in data["tiers"]] == ["General"]
        assert data["price_range"]["label"] == "₹299"
        assert data["max_tickets_per_order"] == 10
