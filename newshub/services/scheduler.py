"""
Calendar scheduler for scrape runs.

Two cadences in a fixed local timezone:
- Business hours: every 30 minutes from 06:00 through 22:30
- Overnight: on the hour, every 2 hours (00:00, 02:00, 04:00)

The scheduler only decides when to call ``run_all()``; the orchestrator
knows nothing about the schedule. A run that is rejected because another
run is still active is logged and skipped.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import structlog

from newshub.config.settings import Settings, get_settings
from newshub.scraping.orchestrator import ScrapeOrchestrator

logger = structlog.get_logger(__name__)


def is_fire_time(
    moment: datetime,
    business_start: int = 6,
    business_end: int = 22,
    business_interval_minutes: int = 30,
    night_interval_hours: int = 2,
) -> bool:
    """Whether a local wall-clock minute is on either cadence."""
    hour, minute = moment.hour, moment.minute
    if business_start <= hour <= business_end:
        return minute % business_interval_minutes == 0
    return minute == 0 and hour % night_interval_hours == 0


def next_fire_time(
    now: datetime,
    business_start: int = 6,
    business_end: int = 22,
    business_interval_minutes: int = 30,
    night_interval_hours: int = 2,
) -> datetime:
    """
    First fire time strictly after ``now``, in ``now``'s timezone.

    Examples (local time):
        10:10 -> 10:30
        22:40 -> 00:00 next day
        03:15 -> 04:00
    """
    candidate = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
    for _ in range(24 * 60 + 1):
        if is_fire_time(
            candidate,
            business_start,
            business_end,
            business_interval_minutes,
            night_interval_hours,
        ):
            return candidate
        candidate += timedelta(minutes=1)
    raise ValueError("Schedule has no fire time within 24 hours")


class ScrapeScheduler:
    """
    Sleeps until the next fire time and triggers a full run.

    Usage:
        scheduler = ScrapeScheduler(orchestrator)
        await scheduler.start()  # Runs until stopped
    """

    def __init__(
        self,
        orchestrator: ScrapeOrchestrator,
        settings: Settings | None = None,
    ):
        self._orchestrator = orchestrator
        self._settings = settings or get_settings()
        self._tz = ZoneInfo(self._settings.schedule_timezone)
        self._running = False
        self._stop_event = asyncio.Event()

    def next_run(self, now: datetime | None = None) -> datetime:
        """Next fire time as a timezone-aware local datetime."""
        now = (now or datetime.now(timezone.utc)).astimezone(self._tz)
        s = self._settings
        return next_fire_time(
            now,
            business_start=s.business_hours_start,
            business_end=s.business_hours_end,
            business_interval_minutes=s.business_interval_minutes,
            night_interval_hours=s.night_interval_hours,
        )

    async def start(self, initial_run: bool | None = None) -> None:
        """
        Run the schedule until stop() is called.

        Args:
            initial_run: Trigger one run immediately (default from settings)
        """
        if initial_run is None:
            initial_run = self._settings.schedule_initial_run

        self._running = True
        self._stop_event.clear()
        logger.info("Starting scraping scheduler", timezone=str(self._tz))

        if initial_run:
            logger.info("Running initial scrape")
            await self._trigger("initial")

        while self._running:
            fire_at = self.next_run()
            delay = (fire_at - datetime.now(timezone.utc)).total_seconds()
            logger.info("Next scheduled scrape", at=fire_at.isoformat())

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=max(delay, 0))
                break  # stop requested
            except asyncio.TimeoutError:
                pass

            cadence = (
                "business hours"
                if self._settings.business_hours_start
                <= fire_at.hour
                <= self._settings.business_hours_end
                else "overnight"
            )
            logger.info("Scheduled scrape triggered", cadence=cadence)
            await self._trigger(cadence)

        logger.info("Scraping scheduler stopped")

    async def stop(self) -> None:
        """Stop after the current run (if any) finishes."""
        self._running = False
        self._stop_event.set()

    async def _trigger(self, reason: str) -> None:
        try:
            result = await self._orchestrator.run_all()
        except Exception as e:
            logger.error("Scheduled scrape failed", reason=reason, error=str(e))
            return

        if not result.success:
            logger.warning("Scheduled scrape skipped", reason=reason, message=result.message)
