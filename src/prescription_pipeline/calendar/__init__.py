# src/prescription_pipeline/calendar/__init__.py
"""
Calendar synchronization - tokens, API client and per-reminder event sync
"""

from .token_provider import (
    CalendarToken,
    TokenProvider,
    StaticTokenProvider,
    OAuthRefreshTokenProvider,
    CachingTokenProvider,
)
from .google_calendar import CalendarClient, GoogleCalendarClient
from .synchronizer import CalendarSynchronizer

__all__ = [
    "CalendarToken",
    "TokenProvider",
    "StaticTokenProvider",
    "OAuthRefreshTokenProvider",
    "CachingTokenProvider",
    "CalendarClient",
    "GoogleCalendarClient",
    "CalendarSynchronizer",
]
