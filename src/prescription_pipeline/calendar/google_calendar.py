# ============================================================================
# src/prescription_pipeline/calendar/google_calendar.py
# ============================================================================
"""
Google Calendar Client

Inserts one event per call through the Calendar v3 REST API.
"""

from abc import ABC, abstractmethod
import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

from ..config.calendar_config import calendar_settings
from ..utils.exceptions import CalendarEventInsertError
from .token_provider import CalendarToken

logger = logging.getLogger(__name__)


class CalendarClient(ABC):

    @abstractmethod
    async def insert_event(self, token: CalendarToken, payload: Dict[str, Any]) -> str:
        """
        Create one event and return its id.

        Raises:
            CalendarEventInsertError: the API rejected this event
            ConnectionError: API unreachable
            TimeoutError: no answer within the request timeout
        """
        pass

    async def close(self):
        """Release any open connections."""
        pass


class GoogleCalendarClient(CalendarClient):

    def __init__(
        self,
        api_base: Optional[str] = None,
        calendar_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_base = (api_base or calendar_settings.CALENDAR_API_BASE).rstrip("/")
        self.calendar_id = calendar_id or calendar_settings.CALENDAR_ID
        self.timeout = timeout or calendar_settings.CALENDAR_TIMEOUT

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def events_url(self) -> str:
        return f"{self.api_base}/calendars/{quote(self.calendar_id, safe='')}/events"

    async def _get_session(self) -> aiohttp.ClientSession:
        current_loop = asyncio.get_running_loop()
        if self._session is None or self._session.closed or self._session_loop is not current_loop:
            if self._session is not None and not self._session.closed:
                await self._session.close()
            self._session = aiohttp.ClientSession()
            self._session_loop = current_loop
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def insert_event(self, token: CalendarToken, payload: Dict[str, Any]) -> str:
        session = await self._get_session()
        headers = {"Authorization": f"Bearer {token.access_token}"}

        async def _do_request():
            async with session.post(self.events_url, json=payload, headers=headers) as response:
                if not 200 <= response.status < 300:
                    error_text = await response.text()
                    raise CalendarEventInsertError(
                        f"Calendar insert failed ({response.status}): {error_text[:200]}",
                        status=response.status,
                    )
                return await response.json()

        try:
            data = await asyncio.wait_for(_do_request(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Calendar insert timed out after {self.timeout}s")
        except aiohttp.ClientConnectorError as e:
            raise ConnectionError(f"Cannot connect to {self.api_base}: {e}")
        except aiohttp.ContentTypeError as e:
            raise CalendarEventInsertError(f"Invalid response JSON: {e}")

        event_id = data.get("id") if isinstance(data, dict) else None
        if not event_id:
            raise CalendarEventInsertError("Calendar response did not include an event id")

        logger.debug(f"Created calendar event {event_id}")
        return event_id
