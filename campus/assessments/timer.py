"""
Countdown Timer

A cancellable alarm owned by an attempt session. Its only effect is to
await the callback it was given once the time runs out.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from campus.common.logger import app_logger

logger = app_logger.getChild("assessments.timer")

ExpireCallback = Callable[[], Awaitable[object]]


class CountdownTimer:
    """Fires ``on_expire`` once after ``seconds``, unless cancelled first."""

    def __init__(self, seconds: float, on_expire: ExpireCallback):
        self.seconds = max(0.0, float(seconds))
        self.on_expire = on_expire
        self._task: Optional[asyncio.Task] = None
        self._started_at: Optional[float] = None
        self._fired = False
        self._cancelled = False

    @property
    def expired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Arm the timer. Must be called from a running event loop."""
        if self._task is not None:
            return
        self._started_at = time.monotonic()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        """Disarm the timer. A no-op once it has fired."""
        if self._fired or self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def remaining(self) -> float:
        """Seconds left before expiry (zero once fired)."""
        if self._fired:
            return 0.0
        if self._started_at is None:
            return self.seconds
        return max(0.0, self.seconds - (time.monotonic() - self._started_at))

    async def wait(self) -> None:
        """Wait for the timer task to finish, whether it fired or was cancelled."""
        if self._task is None:
            return
        await asyncio.wait([self._task])

    async def _run(self) -> None:
        await asyncio.sleep(self.seconds)
        if self._cancelled:
            return
        self._fired = True
        try:
            await self.on_expire()
        except Exception as e:
            logger.error(f"Timer expiry callback failed: {e}")


def format_remaining(seconds: float) -> str:
    """Render a countdown as m:ss."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"
