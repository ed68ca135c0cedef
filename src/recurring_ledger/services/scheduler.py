import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from datetime import datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from recurring_ledger.logger import get_logger

logger = get_logger(__name__)


def compute_next_run(now: datetime, at: time, timezone: ZoneInfo) -> datetime:
    """Next wall-clock ``at`` in ``timezone`` strictly after ``now``."""
    local_now = now.astimezone(timezone)
    candidate = datetime.combine(local_now.date(), at, tzinfo=timezone)
    if candidate <= local_now:
        candidate = datetime.combine(local_now.date() + timedelta(days=1), at, tzinfo=timezone)
    return candidate


class DailyScheduler:
    """Runs one coroutine job a day at a fixed local time.

    A failed run is logged and left for the next day; nothing is retried.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        at: time,
        timezone: ZoneInfo,
        clock: Callable[[ZoneInfo], datetime] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.job = job
        self.at = at
        self.timezone = timezone
        self._clock = clock or (lambda tz: datetime.now(tz))
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.next_run_at: datetime | None = None
        self.last_run_at: datetime | None = None
        self.last_result: Any = None
        self.last_error: str | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> Any:
        self.last_run_at = self._clock(self.timezone)
        try:
            result = await self.job()
        except Exception as exc:
            logger.exception("[SCHEDULER] Scheduled run failed.")
            self.last_error = str(exc)
            return None
        self.last_result = result
        self.last_error = None
        return result

    async def _run_loop(self) -> None:
        last_slot: datetime | None = None
        while True:
            now = self._clock(self.timezone)
            # A wake-up just short of the slot on the wall clock must not rerun it
            reference = now if last_slot is None else max(now, last_slot)
            self.next_run_at = last_slot = compute_next_run(reference, self.at, self.timezone)
            delay = max(0.0, (self.next_run_at - now).total_seconds())
            logger.info("[SCHEDULER] Next run at %s.", self.next_run_at.isoformat())
            await self._sleep(delay)
            await self.tick()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run_loop(), name="daily-scheduler")
        logger.info(
            "[SCHEDULER] Started; daily at %s %s.",
            self.at.strftime("%H:%M"),
            self.timezone.key,
        )

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self.next_run_at = None
        logger.info("[SCHEDULER] Stopped.")

    def status(self) -> dict[str, Any]:
        last_result = self.last_result
        if hasattr(last_result, "model_dump"):
            last_result = last_result.model_dump(mode="json")
        return {
            "running": self.is_running,
            "schedule": f"{self.at.strftime('%H:%M')} {self.timezone.key}",
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_error": self.last_error,
            "last_result": last_result,
        }
