"""SweepScheduler — runs the reconciliation sweep once a day at a fixed UTC hour.

Started as an asyncio background task by the FastAPI lifespan. Every
instance polls; a token-owned Redis lock (``SET NX PX``, released only by its
holder) lets one of them sweep at a time and a per-day marker stops the
others from repeating it. On-demand runs go through the same lock.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime

import redis.asyncio as aioredis
from redis.exceptions import LockError, RedisError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.rb_common.datetime_utils import utc_now
from src.rb_reconciliation.application.sweep import ReconciliationSweep, SweepReport

logger = logging.getLogger(__name__)

SWEEP_LOCK_KEY = "billing:sweep:lock"
SWEEP_DONE_KEY_PREFIX = "billing:sweep:done:"
SWEEP_DONE_TTL_SECONDS = 2 * 24 * 3600


def cutoff_today(now: datetime, sweep_hour_utc: int) -> datetime:
    hour = max(0, min(sweep_hour_utc, 23))
    return now.replace(hour=hour, minute=0, second=0, microsecond=0)


class SweepScheduler:
    def __init__(
        self,
        sweep: ReconciliationSweep,
        session_factory: async_sessionmaker[AsyncSession],
        redis_factory: Callable[[], Awaitable[aioredis.Redis]],
        *,
        sweep_hour_utc: int = 2,
        lock_ttl_seconds: int = 900,
        poll_interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.sweep_hour_utc = max(0, min(sweep_hour_utc, 23))
        self.lock_ttl_seconds = max(30, lock_ttl_seconds)
        self.poll_interval_seconds = poll_interval_seconds
        self._sweep = sweep
        self._session_factory = session_factory
        self._redis_factory = redis_factory
        self._clock = clock
        self._last_run_date: date | None = None
        self._task: asyncio.Task[None] | None = None

    def _is_due(self, now: datetime) -> bool:
        if now < cutoff_today(now, self.sweep_hour_utc):
            return False
        return self._last_run_date is None or self._last_run_date < now.date()

    async def run_now(self, now: datetime | None = None) -> SweepReport | None:
        """Run one sweep if no other process holds the lock; None when skipped."""
        now = now or self._clock()
        redis = await self._redis_factory()
        lock = redis.lock(SWEEP_LOCK_KEY, timeout=self.lock_ttl_seconds, blocking=False)
        if not await lock.acquire():
            logger.info("Sweep skipped: another process holds %s", SWEEP_LOCK_KEY)
            return None
        try:
            async with self._session_factory() as db:
                report = await self._sweep.run(db, now)
            await redis.set(
                f"{SWEEP_DONE_KEY_PREFIX}{now.date().isoformat()}",
                report.transitioned,
                ex=SWEEP_DONE_TTL_SECONDS,
            )
            return report
        finally:
            try:
                await lock.release()
            except LockError:
                # TTL ran out mid-sweep; the key may belong to another process now
                logger.warning("Sweep lock %s expired before release", SWEEP_LOCK_KEY)

    async def process_if_due(self) -> SweepReport | None:
        now = self._clock()
        if not self._is_due(now):
            return None
        try:
            redis = await self._redis_factory()
            if await redis.exists(f"{SWEEP_DONE_KEY_PREFIX}{now.date().isoformat()}"):
                self._last_run_date = now.date()
                return None
            report = await self.run_now(now)
        except RedisError as exc:
            logger.warning("Sweep postponed, Redis unavailable: %s", exc)
            return None
        if report is not None:
            self._last_run_date = now.date()
        return report

    async def _loop(self) -> None:
        while True:
            try:
                await self.process_if_due()
            except Exception:
                logger.exception("Scheduled sweep failed")
            await asyncio.sleep(self.poll_interval_seconds)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop(), name="reconciliation-sweep")
            logger.info("Sweep scheduler started (daily at %02d:00 UTC)", self.sweep_hour_utc)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
