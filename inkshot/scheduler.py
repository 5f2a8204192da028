"""Refresh-interval scheduling for capture profiles."""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from .models import Profile, is_number, parse_timestamp

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DEFAULT_POLL_INTERVAL = 30  # seconds


def is_due(profile: Profile, now: datetime) -> bool:
    """True when an enabled profile's refresh interval has elapsed since its last run.

    A refresh interval of 0 means manual only; a profile that never ran is
    treated as last run at the epoch, so it is due straight away.
    """
    if not profile.get('enabled'):
        return False

    interval = profile.get('refreshInterval') or 0
    if not is_number(interval) or interval <= 0:
        return False

    last_run = parse_timestamp(profile.get('lastRun')) or EPOCH
    return now >= last_run + timedelta(seconds=interval)


def due_profiles(profiles: Iterable[Profile], now: datetime) -> List[Profile]:
    return [profile for profile in profiles if is_due(profile, now)]


class Scheduler:
    """Polls for due profiles and captures them through the capture service"""

    def __init__(self, service, poll_interval: float = DEFAULT_POLL_INTERVAL,
                 retention: Optional[dict] = None):
        self.service = service
        self.poll_interval = poll_interval
        self.retention = retention
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self):
        results = await self.service.capture_due()
        if results:
            succeeded = len([r for r in results.values() if r.success])
            logger.info(f"Scheduled run: {len(results)} profiles captured, {succeeded} successful")

        if self.retention:
            self.service.cleanup(self.retention['max_age_hours'], self.retention['max_count'])
        return results

    async def run(self):
        logger.info(f"Scheduler started (poll interval {self.poll_interval}s)")
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in scheduler: {e}")
            await asyncio.sleep(self.poll_interval)

    def start(self):
        if not self.running:
            self._task = asyncio.create_task(self.run())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Scheduler stopped")
