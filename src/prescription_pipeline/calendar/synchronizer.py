# ============================================================================
# src/prescription_pipeline/calendar/synchronizer.py
# ============================================================================
"""
Calendar Synchronizer

Creates one calendar event per scheduled reminder and records its id.

Failure policy:
- token acquisition: retried with backoff, then CalendarTokenAcquisitionError
- one rejected insert: recorded as a failure for that reminder, not retried;
  remaining reminders are still attempted
- insert timeout: retried, then recorded as a failure for that reminder
- connectivity lost: retried, then CalendarUnreachableError carrying the
  events created so far

Reminders already recorded in `existing` are never inserted again.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config.calendar_config import calendar_settings
from ..core.context.artifacts import (
    CalendarEventRef,
    CalendarFailure,
    CalendarSyncResult,
    ReminderSet,
    reminder_key,
)
from ..core.retry import RETRYABLE_ERRORS, retry_async
from ..utils.exceptions import (
    CalendarEventInsertError,
    CalendarTokenAcquisitionError,
    CalendarUnreachableError,
)
from .google_calendar import CalendarClient
from .token_provider import CalendarToken, TokenProvider

logger = logging.getLogger(__name__)


def describe_medication(entry: ReminderSet) -> str:
    med = entry.medication
    lines = [f"Medication reminder for {med.name}"]
    for label, value in (
        ("Dosage", med.dosage),
        ("Frequency", med.frequency),
        ("Route", med.route),
        ("Duration", med.duration),
    ):
        if value:
            lines.append(f"{label}: {value}")
    return "\n".join(lines)


class CalendarSynchronizer:

    def __init__(
        self,
        client: CalendarClient,
        token_provider: TokenProvider,
        max_concurrency: Optional[int] = None,
        event_minutes: Optional[int] = None,
        popup_minutes: Optional[Sequence[int]] = None,
        time_zone: Optional[str] = None,
    ):
        self.client = client
        self.token_provider = token_provider
        self.max_concurrency = max_concurrency or calendar_settings.CALENDAR_MAX_CONCURRENCY
        self.event_minutes = event_minutes or calendar_settings.CALENDAR_EVENT_MINUTES
        self.popup_minutes = list(popup_minutes if popup_minutes is not None else calendar_settings.CALENDAR_POPUP_MINUTES)
        self.time_zone = time_zone or calendar_settings.CALENDAR_TIME_ZONE

    # ------------------------------------------------------------------
    # Payload
    # ------------------------------------------------------------------
    def _event_time(self, at: datetime) -> Dict[str, str]:
        if at.tzinfo is None:
            at = at.astimezone()
        data = {"dateTime": at.isoformat()}
        if self.time_zone:
            data["timeZone"] = self.time_zone
        return data

    def build_event(self, prescription_id: str, entry: ReminderSet, reminder_at: datetime) -> Dict[str, Any]:
        return {
            "summary": f"Take {entry.medication.name}",
            "description": describe_medication(entry),
            "start": self._event_time(reminder_at),
            "end": self._event_time(reminder_at + timedelta(minutes=self.event_minutes)),
            "reminders": {
                "useDefault": False,
                "overrides": [{"method": "popup", "minutes": m} for m in self.popup_minutes],
            },
            "extendedProperties": {
                "shared": {
                    "medId": entry.medication.id,
                    "prescriptionId": prescription_id,
                    "reminderKey": reminder_key(entry.id, reminder_at),
                }
            },
        }

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------
    async def _acquire_token(self) -> CalendarToken:
        try:
            return await retry_async(self.token_provider.get_token, "calendar token acquisition")
        except CalendarTokenAcquisitionError:
            raise
        except RETRYABLE_ERRORS as e:
            raise CalendarTokenAcquisitionError(f"Token endpoint unreachable: {e}") from e

    async def _insert_one(
        self,
        prescription_id: str,
        token: CalendarToken,
        entry: ReminderSet,
        reminder_at: datetime,
        result: CalendarSyncResult,
        semaphore: asyncio.Semaphore,
        lock: asyncio.Lock,
    ):
        payload = self.build_event(prescription_id, entry, reminder_at)
        key = reminder_key(entry.id, reminder_at)

        async with semaphore:
            try:
                event_id = await retry_async(
                    lambda: self.client.insert_event(token, payload),
                    f"calendar insert {key}",
                )
            except CalendarEventInsertError as e:
                logger.warning(f"Calendar insert failed for {key}: {e}")
                async with lock:
                    result.failures.append(CalendarFailure(entry.id, reminder_at, str(e)))
                return
            except (TimeoutError, asyncio.TimeoutError) as e:
                logger.warning(f"Calendar insert timed out for {key}: {e}")
                async with lock:
                    result.failures.append(CalendarFailure(entry.id, reminder_at, f"timeout: {e}"))
                return

        async with lock:
            result.refs.append(CalendarEventRef(entry.id, reminder_at, event_id))

    @staticmethod
    def _sort(result: CalendarSyncResult, order: Dict[str, int]):
        result.refs.sort(key=lambda ref: (order.get(ref.entry_id, len(order)), ref.reminder_at))
        result.failures.sort(key=lambda f: (order.get(f.entry_id, len(order)), f.reminder_at))

    async def sync(
        self,
        prescription_id: str,
        schedule: List[ReminderSet],
        existing: Optional[CalendarSyncResult] = None,
        result: Optional[CalendarSyncResult] = None,
    ) -> CalendarSyncResult:
        """
        Create events for every reminder in `schedule` not yet in `existing`.

        When `result` is given it is filled in place, so a caller whose sync
        is cancelled still holds the events created before the cancel.

        Returns:
            CalendarSyncResult covering every schedule entry; entries whose
            inserts all failed map to an empty id list.

        Raises:
            CalendarTokenAcquisitionError: no token could be obtained
            CalendarUnreachableError: API unreachable (partial result attached)
        """
        if result is None:
            result = CalendarSyncResult()
        result.entry_ids = [entry.id for entry in schedule]
        order = {entry.id: index for index, entry in enumerate(schedule)}

        wanted = {key for entry in schedule for key in entry.reminder_keys()}
        if existing is not None:
            for ref in existing.refs:
                if ref.key in wanted:
                    result.refs.append(ref)
            stale = len(existing.refs) - len(result.refs)
            if stale:
                logger.warning(f"{stale} recorded event(s) no longer match the schedule of {prescription_id}")
        result.reused = len(result.refs)

        recorded = result.recorded_keys()
        pending: List[Tuple[ReminderSet, datetime]] = [
            (entry, at)
            for entry in schedule
            for at in entry.reminders
            if reminder_key(entry.id, at) not in recorded
        ]

        if not pending:
            logger.info(f"Calendar already up to date for {prescription_id} ({result.reused} event(s))")
            return result

        token = await self._acquire_token()

        semaphore = asyncio.Semaphore(self.max_concurrency)
        lock = asyncio.Lock()
        tasks = [
            asyncio.ensure_future(
                self._insert_one(prescription_id, token, entry, at, result, semaphore, lock)
            )
            for entry, at in pending
        ]

        try:
            await asyncio.gather(*tasks)
        except ConnectionError as e:
            raise CalendarUnreachableError(f"Calendar API unreachable: {e}", partial=result) from e
        finally:
            unfinished = [task for task in tasks if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)
            self._sort(result, order)

        logger.info(
            f"Calendar sync for {prescription_id}: {len(result.refs) - result.reused} created, "
            f"{result.reused} reused, {len(result.failures)} failed"
        )
        return result
