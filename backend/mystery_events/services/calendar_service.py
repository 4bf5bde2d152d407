# backend/mystery_events/services/calendar_service.py
"""
Google Calendar sync.

Each event gets one calendar entry. It is created on the first confirmed
booking, and its description is refreshed with the sold/capacity totals on
later bookings. Calendar problems never propagate: every public method logs
and returns ``None``/``False`` on failure.
"""

from dataclasses import dataclass
from datetime import timedelta
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..core.config import Settings, settings as default_settings
from ..core.timezone_utils import event_start
from ..models.event import Event
from .base import BaseService

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_API = "https://www.googleapis.com/calendar/v3"


@dataclass(frozen=True)
class CalendarSyncResult:
    updated: bool
    calendar_event_id: Optional[str] = None
    created: bool = False


class CalendarService(BaseService):
    def __init__(
        self,
        config: Optional[Settings] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        super().__init__(None)
        self.config = config or default_settings
        self._client = http_client
        self._access_token: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return self.config.calendar_configured

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.config.google_calendar_timeout_seconds)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _get_access_token(self) -> str:
        if self._access_token:
            return self._access_token
        resp = self._http().post(
            TOKEN_URL,
            data={
                "client_id": self.config.google_calendar_client_id,
                "client_secret": self.config.google_calendar_client_secret.get_secret_value(),
                "refresh_token": self.config.google_calendar_refresh_token.get_secret_value(),
                "grant_type": "refresh_token",
            },
        )
        resp.raise_for_status()
        self._access_token = resp.json()["access_token"]
        return self._access_token

    def _events_url(self, calendar_event_id: Optional[str] = None) -> str:
        base = f"{CALENDAR_API}/calendars/{quote(self.config.google_calendar_id, safe='')}/events"
        return f"{base}/{calendar_event_id}" if calendar_event_id else base

    def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._get_access_token()}"}
        resp = self._http().request(method, url, json=payload, headers=headers)
        if resp.status_code == 401:
            # Cached access token expired; refresh once
            self._access_token = None
            headers = {"Authorization": f"Bearer {self._get_access_token()}"}
            resp = self._http().request(method, url, json=payload, headers=headers)
        resp.raise_for_status()
        return resp

    def build_event_body(self, event: Event) -> Dict[str, Any]:
        tz = self.config.business_timezone
        start = event_start(event.event_date, event.start_time, tz)
        end = start + timedelta(minutes=int(event.duration_minutes or 120))
        description = "\n".join(
            part
            for part in (
                event.description or "",
                f"Price: €{event.price}",
                f"Tickets sold: {event.sold_tickets}/{event.capacity}",
                f"Available: {event.available_tickets}",
            )
            if part
        )
        return {
            "summary": event.title,
            "description": description,
            "location": event.location,
            "start": {"dateTime": start.isoformat(), "timeZone": tz},
            "end": {"dateTime": end.isoformat(), "timeZone": tz},
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 60},
                ],
            },
        }

    @BaseService.measure_operation("calendar_create_event")
    def create_event(self, event: Event) -> Optional[str]:
        if not self.is_configured:
            self.logger.info("Calendar not configured; skipping create for event %s", event.id)
            return None
        try:
            resp = self._request("POST", self._events_url(), self.build_event_body(event))
        except (httpx.HTTPError, KeyError, ValueError) as e:
            self.logger.error("Error creating calendar event for %s: %s", event.id, e)
            return None
        calendar_event_id = resp.json().get("id")
        self.logger.info("Calendar event created: %s", calendar_event_id)
        return calendar_event_id

    @BaseService.measure_operation("calendar_update_event")
    def update_event(self, calendar_event_id: str, event: Event) -> bool:
        if not self.is_configured:
            return False
        try:
            self._request("PATCH", self._events_url(calendar_event_id), self.build_event_body(event))
        except (httpx.HTTPError, KeyError, ValueError) as e:
            self.logger.error("Error updating calendar event %s: %s", calendar_event_id, e)
            return False
        return True

    @BaseService.measure_operation("calendar_delete_event")
    def delete_event(self, calendar_event_id: str) -> bool:
        if not self.is_configured:
            return False
        try:
            self._request("DELETE", self._events_url(calendar_event_id))
        except (httpx.HTTPError, KeyError, ValueError) as e:
            self.logger.error("Error deleting calendar event %s: %s", calendar_event_id, e)
            return False
        return True

    def upsert_event(self, event: Event) -> CalendarSyncResult:
        """Update the event's entry when it has one, create it otherwise."""
        if event.calendar_event_id:
            updated = self.update_event(event.calendar_event_id, event)
            return CalendarSyncResult(updated=updated, calendar_event_id=event.calendar_event_id)
        created_id = self.create_event(event)
        return CalendarSyncResult(
            updated=created_id is not None,
            calendar_event_id=created_id,
            created=created_id is not None,
        )
