"""
Tournament Clock - level/break state machine.

벽시계 기반 타이머. 남은 시간은 저장하지 않고 매번 계산한다.

State machine (initial SCHEDULED, terminal FINISHED):
─────────────────────────────────────────────────────────────────────────────────

    SCHEDULED ──start──▶ RUNNING ──pause──▶ PAUSED ──resume──▶ RUNNING
                         RUNNING ──start_break──▶ BREAK ──resume──▶ RUNNING
                 RUNNING|PAUSED ──change_level──▶ RUNNING
                 any non-FINISHED ──finish──▶ FINISHED

Remaining time across pause/break is preserved by storing the remaining
seconds and, on resume, back-dating ``level_started_at`` so that
``duration - (now - level_started_at)`` equals the stored value.

─────────────────────────────────────────────────────────────────────────────────
"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional

from livetourney.utils.errors import InvalidRequestError, InvalidStateError

from .levels import Level, LevelSchedule
from .models import ClockState, LevelDirection, TournamentStatus


def elapsed_seconds(since: Optional[datetime], now: datetime) -> int:
    """Whole seconds between ``since`` and ``now`` (0 when unknown or negative)."""
    if since is None:
        return 0
    return max(0, int((now - since).total_seconds()))


class TournamentClock:
    """
    Clock state machine over one tournament's level schedule.

    Transitions replace ``self.state`` with a new ClockState; callers persist
    ``clock.state`` afterwards. ``now`` is always passed in so the clock has no
    hidden time source.
    """

    def __init__(self, levels: LevelSchedule, state: Optional[ClockState] = None):
        self.levels = levels
        self.state = state or ClockState()

    # ─────────────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────────────

    @property
    def status(self) -> TournamentStatus:
        return self.state.status

    @property
    def current_level(self) -> Optional[Level]:
        return self.levels.at(self.state.current_level_index)

    @property
    def next_level(self) -> Optional[Level]:
        return self.levels.at(self.state.current_level_index + 1)

    @property
    def is_last_level(self) -> bool:
        return self.state.current_level_index >= self.levels.last_index

    def _level_duration_seconds(self) -> int:
        level = self.current_level
        return level.duration_seconds if level else 0

    def remaining_seconds(self, now: datetime) -> int:
        """Seconds left in the current level (or break) at ``now``."""
        state = self.state

        if state.status == TournamentStatus.BREAK:
            break_seconds = (state.break_duration_minutes or 0) * 60
            return max(0, break_seconds - elapsed_seconds(state.break_started_at, now))

        if state.status == TournamentStatus.PAUSED:
            return state.timer_seconds_remaining or 0

        if state.status == TournamentStatus.RUNNING:
            if self.current_level is None:
                return 0
            return max(
                0,
                self._level_duration_seconds()
                - elapsed_seconds(state.level_started_at, now),
            )

        return 0

    def to_dict(self, now: datetime) -> Dict[str, Any]:
        current = self.current_level
        upcoming = self.next_level
        return {
            **self.state.to_dict(),
            "remaining_seconds": self.remaining_seconds(now),
            "current_level": current.to_dict() if current else None,
            "next_level": upcoming.to_dict() if upcoming else None,
            "total_levels": len(self.levels),
        }

    # ─────────────────────────────────────────────────────────────────────────────
    # Transitions
    # ─────────────────────────────────────────────────────────────────────────────

    def _require(self, allowed: Iterable[TournamentStatus], action: str) -> None:
        if self.state.status not in allowed:
            raise InvalidStateError(
                f"Cannot {action} a {self.state.status.value} tournament",
                status=self.state.status.value,
            )

    def _capture_remaining(self, now: datetime) -> int:
        return max(
            0,
            self._level_duration_seconds()
            - elapsed_seconds(self.state.level_started_at, now),
        )

    def start(self, now: datetime) -> ClockState:
        self._require((TournamentStatus.SCHEDULED,), "start")
        if len(self.levels) == 0:
            raise InvalidStateError("Tournament has no levels", status="SCHEDULED")

        self.state = ClockState(
            status=TournamentStatus.RUNNING,
            current_level_index=0,
            level_started_at=now,
        )
        return self.state

    def pause(self, now: datetime) -> ClockState:
        self._require((TournamentStatus.RUNNING,), "pause")

        self.state = replace(
            self.state,
            status=TournamentStatus.PAUSED,
            timer_paused_at=now,
            timer_seconds_remaining=self._capture_remaining(now),
        )
        return self.state

    def start_break(self, duration_minutes: int, now: datetime) -> ClockState:
        self._require((TournamentStatus.RUNNING,), "start a break in")
        if duration_minutes <= 0:
            raise InvalidRequestError(
                "Break duration must be positive",
                details={"durationMinutes": duration_minutes},
            )

        self.state = replace(
            self.state,
            status=TournamentStatus.BREAK,
            timer_paused_at=now,
            timer_seconds_remaining=self._capture_remaining(now),
            break_started_at=now,
            break_duration_minutes=duration_minutes,
        )
        return self.state

    def resume(self, now: datetime) -> ClockState:
        self._require((TournamentStatus.PAUSED, TournamentStatus.BREAK), "resume")

        duration = self._level_duration_seconds()
        remaining = self.state.timer_seconds_remaining or 0
        # 남은 시간이 이어지도록 레벨 시작 시각을 역산
        started_at = now - timedelta(seconds=duration - remaining)

        self.state = ClockState(
            status=TournamentStatus.RUNNING,
            current_level_index=self.state.current_level_index,
            level_started_at=started_at,
        )
        return self.state

    def change_level(self, direction: LevelDirection, now: datetime) -> ClockState:
        """Move one level forward or back and restart the level timer.

        The new level always starts with its full duration, and the clock runs
        afterwards whether it was RUNNING or PAUSED before.
        """
        self._require(
            (TournamentStatus.RUNNING, TournamentStatus.PAUSED), "change level of"
        )

        step = 1 if direction == LevelDirection.NEXT else -1
        new_index = self.state.current_level_index + step
        if new_index < 0:
            raise InvalidStateError("Already at the first level", status=self.state.status.value)
        if new_index > self.levels.last_index:
            raise InvalidStateError("Already at the last level", status=self.state.status.value)

        self.state = ClockState(
            status=TournamentStatus.RUNNING,
            current_level_index=new_index,
            level_started_at=now,
        )
        return self.state

    def bump_level(self) -> bool:
        """Advance one level without touching ``level_started_at``.

        Used by the FREE ruleset on every elimination. Because the level start
        time is kept, the new level's remaining time is measured from the old
        level's start, so unequal durations make the remaining time jump.
        Returns False when the clock is not RUNNING or already on the last level.
        """
        if self.state.status != TournamentStatus.RUNNING:
            return False
        if self.state.current_level_index >= self.levels.last_index:
            return False

        self.state = replace(
            self.state, current_level_index=self.state.current_level_index + 1
        )
        return True

    def finish(self, now: datetime) -> ClockState:
        if self.state.status == TournamentStatus.FINISHED:
            raise InvalidStateError("Tournament already finished", status="FINISHED")

        self.state = replace(
            self.state,
            status=TournamentStatus.FINISHED,
            timer_paused_at=None,
            timer_seconds_remaining=None,
            break_started_at=None,
            break_duration_minutes=None,
        )
        return self.state

    def replace_levels(self, levels: LevelSchedule) -> ClockState:
        """Swap in a new schedule, clamping the level index to its last level."""
        if self.state.status == TournamentStatus.FINISHED:
            raise InvalidStateError("Tournament already finished", status="FINISHED")
        if len(levels) == 0 and self.state.status != TournamentStatus.SCHEDULED:
            raise InvalidRequestError("A started tournament needs at least one level")

        self.levels = levels
        if self.state.current_level_index > levels.last_index:
            self.state = replace(
                self.state, current_level_index=max(levels.last_index, 0)
            )

        # 멈춘 레벨의 남은 시간은 새 레벨 길이를 넘지 않는다
        remaining = self.state.timer_seconds_remaining
        duration = self._level_duration_seconds()
        if (
            self.state.status in (TournamentStatus.PAUSED, TournamentStatus.BREAK)
            and remaining is not None
            and remaining > duration
        ):
            self.state = replace(self.state, timer_seconds_remaining=duration)
        return self.state
