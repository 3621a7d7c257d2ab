"""Calendar gateway.

``CalendarService`` is the capability the invitation engine relies on;
``GoogleCalendarService`` implements it against the Google Calendar REST API.
Every mutating call takes ``notify``: when false the provider is told not to
email attendees about the change.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Union
from urllib.parse import quote

import aiohttp
from dateutil.parser import isoparse

from .. import config
from ..exceptions import CalendarServiceError
from ..oauth_token import get_google_oauth_token

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"


@dataclass
class EventDetails:
    summary: str
    description: str = ""
    location: str = ""
    attendees: List[str] = field(default_factory=list)
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    timezone: Optional[str] = None
    recurrence: List[str] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class Occurrence:
    id: str
    original_start: Union[date, datetime]
    status: str = "confirmed"

    @property
    def day(self) -> date:
        # All-day instances come back as a bare date, timed ones as a datetime
        if isinstance(self.original_start, datetime):
            return self.original_start.date()
        return self.original_start

    @property
    def cancelled(self) -> bool:
        return self.status == CANCELLED


class CalendarService:
    async def create_recurring(
        self,
        event: EventDetails,
        attendees: List[str],
        start: datetime,
        end: datetime,
        rule: str,
        notify: bool = True,
    ) -> str:
        raise NotImplementedError

    async def update_recurring(
        self,
        event_id: str,
        event: EventDetails,
        attendees: List[str],
        start: datetime,
        end: datetime,
        rule: str,
        notify: bool = True,
    ) -> str:
        raise NotImplementedError

    async def delete_event(self, event_id: str, notify: bool = False) -> None:
        raise NotImplementedError

    async def list_occurrences(self, event_id: str) -> List[Occurrence]:
        raise NotImplementedError

    async def cancel_occurrence(self, occurrence: Occurrence, notify: bool = False) -> None:
        raise NotImplementedError

    async def create_standalone(self, event: EventDetails, notify: bool = True) -> str:
        raise NotImplementedError

    async def get_event(self, event_id: str) -> EventDetails:
        raise NotImplementedError


def _parse_moment(moment: dict) -> Union[date, datetime, None]:
    if not moment:
        return None
    if moment.get("dateTime"):
        return isoparse(moment["dateTime"])
    if moment.get("date"):
        return date.fromisoformat(moment["date"])
    return None


class GoogleCalendarService(CalendarService):
    def __init__(self, calendar_id: Optional[str] = None, timezone: Optional[str] = None):
        self.calendar_id = calendar_id or config.CALENDAR_ID
        self.timezone = timezone or config.CALENDAR_TIMEZONE

    def _events_path(self, event_id: Optional[str] = None) -> str:
        path = f"{config.CALENDAR_API_BASE}/calendars/{quote(self.calendar_id, safe='')}/events"
        if event_id:
            path += f"/{quote(event_id, safe='')}"
        return path

    async def _request(self, method: str, url: str, params=None, json=None, allow_missing=False):
        token = await get_google_oauth_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(method, url, params=params, json=json, headers=headers) as resp:
                    if allow_missing and resp.status in (404, 410):
                        return None
                    if resp.status >= 400:
                        raise CalendarServiceError(resp.status, await resp.text())
                    if resp.status == 204:
                        return {}
                    return await resp.json()
        except aiohttp.ClientError as exc:
            raise CalendarServiceError(0, str(exc)) from exc

    def _body(self, event: EventDetails, attendees, start, end, rule=None) -> dict:
        body = {
            "summary": event.summary,
            "description": event.description,
            "location": event.location,
            "start": {"dateTime": start.isoformat(), "timeZone": self.timezone},
            "end": {"dateTime": end.isoformat(), "timeZone": self.timezone},
            "attendees": [{"email": email} for email in attendees],
        }
        if rule:
            body["recurrence"] = [rule]
        return body

    @staticmethod
    def _send_updates(notify: bool) -> dict:
        return {"sendUpdates": "all" if notify else "none"}

    async def create_recurring(self, event, attendees, start, end, rule, notify=True):
        data = await self._request(
            "POST",
            self._events_path(),
            params=self._send_updates(notify),
            json=self._body(event, attendees, start, end, rule),
        )
        logger.info("Created recurring event %s with %d attendee(s)", data["id"], len(attendees))
        return data["id"]

    async def update_recurring(self, event_id, event, attendees, start, end, rule, notify=True):
        data = await self._request(
            "PUT",
            self._events_path(event_id),
            params=self._send_updates(notify),
            json=self._body(event, attendees, start, end, rule),
        )
        logger.info("Updated recurring event %s with %d attendee(s)", event_id, len(attendees))
        return data.get("id", event_id)

    async def delete_event(self, event_id, notify=False):
        data = await self._request(
            "DELETE",
            self._events_path(event_id),
            params=self._send_updates(notify),
            allow_missing=True,
        )
        if data is None:
            logger.warning("Calendar event %s was already gone", event_id)

    async def list_occurrences(self, event_id):
        occurrences = []
        params = {"showDeleted": "true", "maxResults": "250"}
        while True:
            data = await self._request("GET", f"{self._events_path(event_id)}/instances", params=params)
            for item in data.get("items", []):
                original = _parse_moment(item.get("originalStartTime")) or _parse_moment(item.get("start"))
                if original is None:
                    continue
                occurrences.append(
                    Occurrence(id=item["id"], original_start=original, status=item.get("status", "confirmed"))
                )
            page_token = data.get("nextPageToken")
            if not page_token:
                return occurrences
            params = dict(params, pageToken=page_token)

    async def cancel_occurrence(self, occurrence, notify=False):
        await self._request(
            "PATCH",
            self._events_path(occurrence.id),
            params=self._send_updates(notify),
            json={"status": CANCELLED},
        )
        occurrence.status = CANCELLED
        logger.info("Cancelled occurrence %s (%s)", occurrence.id, occurrence.day)

    async def create_standalone(self, event, notify=True):
        data = await self._request(
            "POST",
            self._events_path(),
            params=self._send_updates(notify),
            json=self._body(event, event.attendees, event.start, event.end),
        )
        logger.info("Created standalone event %s at %s", data["id"], event.start)
        return data["id"]

    async def get_event(self, event_id):
        data = await self._request("GET", self._events_path(event_id))
        return EventDetails(
            id=data.get("id"),
            summary=data.get("summary", ""),
            description=data.get("description", ""),
            location=data.get("location", ""),
            attendees=[a["email"] for a in data.get("attendees", []) if a.get("email")],
            start=_parse_moment(data.get("start")),
            end=_parse_moment(data.get("end")),
            timezone=(data.get("start") or {}).get("timeZone"),
            recurrence=data.get("recurrence", []),
        )
