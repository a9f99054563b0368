# ============================================================================
# src/prescription_pipeline/config/calendar_config.py
# ============================================================================
"""
Calendar Synchronization Settings
- Google Calendar endpoint and OAuth refresh credentials
- Event shape
- Concurrency and timeout
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CalendarSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    CALENDAR_API_BASE: str = Field(
        default="https://www.googleapis.com/calendar/v3",
        description="Google Calendar REST base URL"
    )
    CALENDAR_ID: str = Field(
        default="primary",
        description="Calendar that receives reminder events"
    )
    CALENDAR_TIME_ZONE: Optional[str] = Field(
        default=None,
        description="IANA zone for event times; None uses the host's local zone"
    )
    CALENDAR_EVENT_MINUTES: int = Field(
        default=15,
        gt=0,
        description="Length of each reminder event"
    )
    CALENDAR_POPUP_MINUTES: List[int] = Field(
        default_factory=lambda: [0, 5],
        description="Popup reminder overrides, minutes before start"
    )
    CALENDAR_MAX_CONCURRENCY: int = Field(
        default=4,
        ge=1,
        description="Maximum event inserts in flight at once"
    )
    CALENDAR_TIMEOUT: float = Field(
        default=20.0,
        gt=0,
        description="Maximum seconds for one calendar API call"
    )

    GOOGLE_TOKEN_URL: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="OAuth2 token endpoint"
    )
    GOOGLE_CLIENT_ID: Optional[str] = Field(default=None)
    GOOGLE_CLIENT_SECRET: Optional[str] = Field(default=None)
    GOOGLE_REFRESH_TOKEN: Optional[str] = Field(default=None)
    TOKEN_EXPIRY_LEEWAY_SECONDS: int = Field(
        default=60,
        ge=0,
        description="Refresh a cached token this many seconds before it expires"
    )


calendar_settings = CalendarSettings()
