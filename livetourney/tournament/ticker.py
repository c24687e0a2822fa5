"""
Clock Ticker - background loop driving automatic clock transitions.

일정 간격으로 runtime.tick_all()을 호출한다. 초 단위 정밀도는 필요 없으며,
중복 tick은 런타임이 흡수한다.
"""

import asyncio
from typing import Optional

from livetourney.logging_config import clear_context, get_logger

from .engine import TickAction, TournamentRuntime

logger = get_logger(__name__)

_QUIET_ACTIONS = (TickAction.NONE, TickAction.HELD, TickAction.DEBOUNCED)


class ClockTicker:
    """Calls ``runtime.tick_all()`` every ``interval_seconds``."""

    def __init__(
        self,
        runtime: TournamentRuntime,
        interval_seconds: Optional[float] = None,
    ):
        self.runtime = runtime
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else runtime.settings.tick_interval_seconds
        )
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """티커 시작."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._tick_loop(), name="clock_ticker")
        logger.info("ticker_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """티커 종료."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("ticker_stopped", ticks=self.ticks)

    async def _tick_loop(self) -> None:
        while self._running:
            try:
                clear_context()
                results = await self.runtime.tick_all()
                self.ticks += 1

                changed = {
                    tid: action.value
                    for tid, action in results.items()
                    if action not in _QUIET_ACTIONS
                }
                if changed:
                    logger.debug("tick_applied", transitions=changed)

                await asyncio.sleep(self.interval_seconds)

            except asyncio.CancelledError:
                break
            except Exception as e:
                # 저장소 오류 등 - 다음 주기에 재시도
                logger.error("tick_loop_error", error=str(e))
                await asyncio.sleep(self.interval_seconds)
