# ============================================================================
# src/prescription_pipeline/calendar/token_provider.py
# ============================================================================
"""
Calendar access tokens

- CalendarToken: bearer token with optional expiry
- StaticTokenProvider: a token obtained elsewhere (e.g. a sign-in screen)
- OAuthRefreshTokenProvider: OAuth2 refresh-token grant over aiohttp
- CachingTokenProvider: reuses a token until it is about to expire
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import aiohttp

from ..config.calendar_config import calendar_settings
from ..utils.exceptions import CalendarTokenAcquisitionError

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CalendarToken:
    access_token: str
    expires_at: Optional[datetime] = None  # None means no known expiry

    def is_expired(self, now: Optional[datetime] = None, leeway_seconds: float = 0) -> bool:
        if self.expires_at is None:
            return False
        now = now or utc_now()
        return now + timedelta(seconds=leeway_seconds) >= self.expires_at


class TokenProvider(ABC):

    @abstractmethod
    async def get_token(self) -> CalendarToken:
        """
        Return a usable access token.

        Raises:
            CalendarTokenAcquisitionError: credentials rejected or missing
            ConnectionError / TimeoutError: token endpoint unreachable
        """
        pass


class StaticTokenProvider(TokenProvider):

    def __init__(self, token: CalendarToken):
        self.token = token

    async def get_token(self) -> CalendarToken:
        if self.token.is_expired():
            raise CalendarTokenAcquisitionError("Calendar access token has expired")
        return self.token


class OAuthRefreshTokenProvider(TokenProvider):
    """Exchanges a stored refresh token for a fresh access token."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        refresh_token: Optional[str] = None,
        token_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.client_id = client_id or calendar_settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or calendar_settings.GOOGLE_CLIENT_SECRET
        self.refresh_token = refresh_token or calendar_settings.GOOGLE_REFRESH_TOKEN
        self.token_url = token_url or calendar_settings.GOOGLE_TOKEN_URL
        self.timeout = timeout or calendar_settings.CALENDAR_TIMEOUT

    async def get_token(self) -> CalendarToken:
        if not (self.client_id and self.refresh_token):
            raise CalendarTokenAcquisitionError("Google OAuth client id / refresh token not configured")

        form = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "refresh_token": self.refresh_token,
        }
        if self.client_secret:
            form["client_secret"] = self.client_secret

        async def _do_request():
            async with aiohttp.ClientSession() as session:
                async with session.post(self.token_url, data=form) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise CalendarTokenAcquisitionError(
                            f"Token endpoint returned {response.status}: {error_text[:200]}"
                        )
                    return await response.json()

        try:
            data = await asyncio.wait_for(_do_request(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Token request timed out after {self.timeout}s")
        except aiohttp.ClientConnectorError as e:
            raise ConnectionError(f"Cannot connect to {self.token_url}: {e}")

        access_token = data.get("access_token")
        if not access_token:
            raise CalendarTokenAcquisitionError("Token response did not include an access_token")

        expires_in = data.get("expires_in")
        expires_at = utc_now() + timedelta(seconds=int(expires_in)) if expires_in else None
        logger.info("Acquired calendar access token")
        return CalendarToken(access_token=access_token, expires_at=expires_at)


class CachingTokenProvider(TokenProvider):
    """
    Holds the last token and only calls `acquire` again once it expires.

    Concurrent callers share one acquisition.
    """

    def __init__(
        self,
        acquire: Callable[[], Awaitable[CalendarToken]],
        leeway_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.acquire = acquire
        self.leeway_seconds = (
            leeway_seconds if leeway_seconds is not None
            else calendar_settings.TOKEN_EXPIRY_LEEWAY_SECONDS
        )
        self.clock = clock
        self._token: Optional[CalendarToken] = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> CalendarToken:
        async with self._lock:
            if self._token is None or self._token.is_expired(self.clock(), self.leeway_seconds):
                self._token = await self.acquire()
            return self._token

    def invalidate(self):
        self._token = None
