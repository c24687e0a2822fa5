"""
Tournament Runtime - orchestration of clock, roster, seating and balancing.

라이브 토너먼트 운영 엔진.
Every mutation follows the same sequence under the per-tournament lock:

    lock -> load aggregate -> mutate -> save -> unlock -> publish events

Bulk seating operations save whatever they applied before a failure and then
re-raise. Ticks never raise: failures are logged and retried on the next tick.
"""

import random
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import (
    Any,
    AsyncGenerator,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

import redis.asyncio as redis

from livetourney.config import Settings, get_settings
from livetourney.logging_config import bind_context, get_logger, unbind_context
from livetourney.utils.errors import (
    CrossTournamentReferenceError,
    InvalidStateError,
    NotFoundError,
    TournamentError,
)

from .balancer import BreakTableRecommendation, Recommendation, TableBalancer
from .clock import TournamentClock
from .distributed_lock import DistributedLockManager, LocalLockManager
from .event_bus import TournamentEventBus
from .levels import LevelSchedule, create_standard_blind_structure
from .models import (
    LevelDirection,
    Player,
    Registration,
    Table,
    Tournament,
    TournamentEvent,
    TournamentEventType,
    TournamentStatus,
    TournamentType,
    utcnow,
)
from .repository import (
    InMemoryTournamentRepository,
    RedisTournamentRepository,
    TournamentRepository,
)
from .roster import RosterService
from .seating import SeatAssignment, SeatingService

logger = get_logger(__name__)

LevelsInput = Union[LevelSchedule, Sequence[Mapping[str, Any]]]


class TickAction(str, Enum):
    """What one tick did to a tournament."""

    NONE = "none"
    LEVEL_ADVANCED = "level_advanced"
    BREAK_ENDED = "break_ended"
    FINISHED = "finished"
    HELD = "held"  # 마지막 레벨 시간 종료, 대기
    DEBOUNCED = "debounced"
    FAILED = "failed"


class TournamentRuntime:
    """
    라이브 토너먼트 런타임.

    핵심 기능:
    ─────────────────────────────────────────────────────────────────

    1. 시계 (Clock):
       - start / pause / resume / change_level / start_break / finish
       - 벽시계 기반 남은 시간 계산
       - tick()으로 자동 레벨업, 브레이크 종료

    2. 로스터 (Roster):
       - 등록, 탈락 (순위/포인트), 제거, 리바이, 애드온
       - FREE 토너먼트: 탈락 시 레벨 1 증가

    3. 좌석 (Seating):
       - 전체 추첨, 부분 배정, 이동, 해제
       - 테이블 해체 권고 적용

    4. 밸런싱 권고:
       - 탈락 후 및 조회 시 매번 새로 계산 (저장하지 않음)

    ─────────────────────────────────────────────────────────────────
    """

    def __init__(
        self,
        repository: TournamentRepository,
        lock_manager: Optional[Any] = None,
        event_bus: Optional[TournamentEventBus] = None,
        settings: Optional[Settings] = None,
        now: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or get_settings()
        self.repository = repository
        self.lock_manager = lock_manager or LocalLockManager(
            default_acquire_timeout_ms=self.settings.lock_acquire_timeout_ms
        )
        self.event_bus = event_bus or TournamentEventBus()
        self._now = now or utcnow

        self.balancer = TableBalancer()
        self.seating = SeatingService(rng or random.Random())
        self.roster = RosterService(self.seating)

        # tournament_id -> time of the last automatic transition
        self._last_auto_transition: Dict[str, datetime] = {}

    # =========================================================================
    # Internals
    # =========================================================================

    async def _load(self, tournament_id: str) -> Tournament:
        tournament = await self.repository.get(tournament_id)
        if tournament is None:
            raise NotFoundError("tournament", tournament_id)
        return tournament

    @asynccontextmanager
    async def _locked(
        self,
        tournament_id: str,
        persist_on_error: bool = False,
    ) -> AsyncGenerator[Tournament, None]:
        """Load the aggregate under the tournament lock and save it afterwards.

        With ``persist_on_error`` a TournamentError still saves the partially
        mutated aggregate before propagating.
        """
        async with self.lock_manager.lock(tournament_id):
            tournament = await self._load(tournament_id)
            try:
                yield tournament
            except TournamentError:
                if persist_on_error:
                    await self.repository.save(tournament)
                raise
            else:
                await self.repository.save(tournament)

    async def _resolve_registration(self, registration_id: str) -> str:
        tournament_id = await self.repository.tournament_id_for_registration(
            registration_id
        )
        if tournament_id is None:
            raise NotFoundError("registration", registration_id)
        return tournament_id

    async def _resolve_table(self, table_id: str) -> str:
        tournament_id = await self.repository.tournament_id_for_table(table_id)
        if tournament_id is None:
            raise NotFoundError("table", table_id)
        return tournament_id

    async def _require_local_table(self, tournament: Tournament, table_id: str) -> None:
        if table_id in tournament.tables:
            return
        owner = await self.repository.tournament_id_for_table(table_id)
        if owner is not None:
            raise CrossTournamentReferenceError(table_id, tournament.tournament_id)
        raise NotFoundError("table", table_id)

    def _event(
        self,
        event_type: TournamentEventType,
        tournament: Tournament,
        data: Optional[Dict[str, Any]] = None,
        table_id: Optional[str] = None,
        registration_id: Optional[str] = None,
    ) -> TournamentEvent:
        return TournamentEvent(
            event_type=event_type,
            tournament_id=tournament.tournament_id,
            timestamp=self._now(),
            data=data or {},
            table_id=table_id,
            registration_id=registration_id,
        )

    def _clock_event(
        self,
        event_type: TournamentEventType,
        tournament: Tournament,
        now: datetime,
        **extra: Any,
    ) -> TournamentEvent:
        clock = TournamentClock(tournament.levels, tournament.clock)
        return self._event(event_type, tournament, {**clock.to_dict(now), **extra})

    def _recommendation_event(
        self, tournament: Tournament, recommendation: Recommendation
    ) -> TournamentEvent:
        return self._event(
            TournamentEventType.BALANCING_RECOMMENDED,
            tournament,
            recommendation.to_dict(),
        )

    async def _publish(self, events: List[TournamentEvent]) -> None:
        await self.event_bus.publish_batch(events)

    @staticmethod
    def _to_schedule(levels: LevelsInput) -> LevelSchedule:
        if isinstance(levels, LevelSchedule):
            return levels
        return LevelSchedule.from_dicts(levels)

    # =========================================================================
    # Tournament Lifecycle
    # =========================================================================

    async def create_tournament(
        self,
        name: str,
        levels: Optional[LevelsInput] = None,
        tournament_type: TournamentType = TournamentType.PAID,
        buy_in: Optional[int] = None,
        starting_stack: int = 10000,
    ) -> Tournament:
        """새 토너먼트 생성 (레벨 미지정 시 표준 블라인드 구조)."""
        schedule = (
            create_standard_blind_structure()
            if levels is None
            else self._to_schedule(levels)
        )
        tournament = Tournament(
            name=name,
            tournament_type=tournament_type,
            levels=schedule,
            buy_in=buy_in,
            starting_stack=starting_stack,
            created_at=self._now(),
        )
        await self.repository.save(tournament)

        logger.info(
            "tournament_created",
            tournament_id=tournament.tournament_id,
            tournament_type=tournament_type.value,
            levels=len(schedule),
        )
        await self._publish([
            self._event(
                TournamentEventType.TOURNAMENT_CREATED,
                tournament,
                {"name": name, "tournament_type": tournament_type.value},
            )
        ])
        return tournament

    async def update_structure(self, tournament_id: str, levels: LevelsInput) -> Tournament:
        """Replace the level schedule wholesale; the level index is clamped."""
        schedule = self._to_schedule(levels)
        async with self._locked(tournament_id) as tournament:
            clock = TournamentClock(tournament.levels, tournament.clock)
            tournament.clock = clock.replace_levels(schedule)
            tournament.levels = clock.levels

        await self._publish([
            self._event(
                TournamentEventType.STRUCTURE_UPDATED,
                tournament,
                {"levels": schedule.to_list()},
            )
        ])
        return tournament

    async def toggle_registration(self, tournament_id: str) -> bool:
        """Open/close registration. Returns True when registration is now closed."""
        async with self._locked(tournament_id) as tournament:
            tournament.registration_closed = not tournament.registration_closed
        logger.info(
            "registration_toggled",
            tournament_id=tournament_id,
            closed=tournament.registration_closed,
        )
        return tournament.registration_closed

    # =========================================================================
    # Clock
    # =========================================================================

    async def start(self, tournament_id: str) -> Tournament:
        now = self._now()
        async with self._locked(tournament_id) as tournament:
            clock = TournamentClock(tournament.levels, tournament.clock)
            tournament.clock = clock.start(now)

        logger.info("tournament_started", tournament_id=tournament_id)
        await self._publish([
            self._clock_event(TournamentEventType.TOURNAMENT_STARTED, tournament, now)
        ])
        return tournament

    async def pause(self, tournament_id: str) -> Tournament:
        now = self._now()
        async with self._locked(tournament_id) as tournament:
            clock = TournamentClock(tournament.levels, tournament.clock)
            tournament.clock = clock.pause(now)

        logger.info(
            "tournament_paused",
            tournament_id=tournament_id,
            remaining_seconds=tournament.clock.timer_seconds_remaining,
        )
        await self._publish([
            self._clock_event(TournamentEventType.TOURNAMENT_PAUSED, tournament, now)
        ])
        return tournament

    async def resume(self, tournament_id: str) -> Tournament:
        now = self._now()
        async with self._locked(tournament_id) as tournament:
            clock = TournamentClock(tournament.levels, tournament.clock)
            tournament.clock = clock.resume(now)

        logger.info("tournament_resumed", tournament_id=tournament_id)
        await self._publish([
            self._clock_event(TournamentEventType.TOURNAMENT_RESUMED, tournament, now)
        ])
        return tournament

    async def toggle_status(self, tournament_id: str) -> Tournament:
        """Single start/pause/resume control."""
        tournament = await self._load(tournament_id)
        status = tournament.status

        if status == TournamentStatus.SCHEDULED:
            return await self.start(tournament_id)
        if status == TournamentStatus.RUNNING:
            return await self.pause(tournament_id)
        if status in (TournamentStatus.PAUSED, TournamentStatus.BREAK):
            return await self.resume(tournament_id)
        raise InvalidStateError("Tournament already finished", status=status.value)

    async def change_level(
        self,
        tournament_id: str,
        direction: Union[LevelDirection, str],
    ) -> Tournament:
        direction = LevelDirection(direction)
        now = self._now()
        async with self._locked(tournament_id) as tournament:
            clock = TournamentClock(tournament.levels, tournament.clock)
            tournament.clock = clock.change_level(direction, now)

        logger.info(
            "level_changed",
            tournament_id=tournament_id,
            direction=direction.value,
            level_index=tournament.clock.current_level_index,
        )
        await self._publish([
            self._clock_event(
                TournamentEventType.LEVEL_CHANGED, tournament, now, reason="manual"
            )
        ])
        return tournament

    async def start_break(
        self,
        tournament_id: str,
        duration_minutes: Optional[int] = None,
    ) -> Tournament:
        minutes = (
            self.settings.default_break_minutes
            if duration_minutes is None
            else duration_minutes
        )
        now = self._now()
        async with self._locked(tournament_id) as tournament:
            clock = TournamentClock(tournament.levels, tournament.clock)
            tournament.clock = clock.start_break(minutes, now)

        logger.info("break_started", tournament_id=tournament_id, minutes=minutes)
        await self._publish([
            self._clock_event(TournamentEventType.BREAK_STARTED, tournament, now)
        ])
        return tournament

    async def finish(
        self,
        tournament_id: str,
        winner_bounty_count: Optional[int] = None,
    ) -> Tournament:
        """Finish the tournament, crowning the sole remaining player if any."""
        now = self._now()
        async with self._locked(tournament_id) as tournament:
            clock = TournamentClock(tournament.levels, tournament.clock)
            tournament.clock = clock.finish(now)
            winner = self.roster.crown_winner(tournament, winner_bounty_count)

        self._last_auto_transition.pop(tournament_id, None)
        logger.info(
            "tournament_finished",
            tournament_id=tournament_id,
            winner=winner.registration_id if winner else None,
        )
        await self._publish([
            self._clock_event(
                TournamentEventType.TOURNAMENT_FINISHED,
                tournament,
                now,
                winner=winner.to_dict() if winner else None,
            )
        ])
        return tournament

    def _due_action(self, tournament: Tournament, now: datetime) -> TickAction:
        clock = TournamentClock(tournament.levels, tournament.clock)

        if clock.status == TournamentStatus.RUNNING:
            if clock.remaining_seconds(now) > 0:
                return TickAction.NONE
            if clock.is_last_level:
                if self.settings.finish_after_last_level:
                    return TickAction.FINISHED
                return TickAction.HELD
            return TickAction.LEVEL_ADVANCED

        if clock.status == TournamentStatus.BREAK:
            if clock.remaining_seconds(now) > 0:
                return TickAction.NONE
            return TickAction.BREAK_ENDED

        return TickAction.NONE

    async def tick(self, tournament_id: str) -> TickAction:
        """
        Evaluate one tournament's clock and apply an automatic transition.

        자동 전환 규칙:
        - RUNNING, 남은 시간 0 -> 다음 레벨 (마지막 레벨이면 대기 또는 종료)
        - BREAK, 남은 시간 0 -> resume

        The due check is repeated under the lock, and a cooldown after the last
        automatic transition absorbs duplicate ticks. Never raises.
        """
        bind_context(tournament_id=tournament_id)
        try:
            return await self._tick(tournament_id)
        except Exception as e:
            # 다음 tick에서 재시도
            logger.error("tick_failed", error=str(e), exc_info=True)
            return TickAction.FAILED
        finally:
            unbind_context("tournament_id")

    async def _tick(self, tournament_id: str) -> TickAction:
        now = self._now()
        tournament = await self.repository.get(tournament_id)
        if tournament is None:
            return TickAction.NONE

        action = self._due_action(tournament, now)
        if action in (TickAction.NONE, TickAction.HELD):
            return action

        last = self._last_auto_transition.get(tournament_id)
        cooldown = self.settings.auto_advance_cooldown_seconds
        if last is not None and (now - last).total_seconds() < cooldown:
            return TickAction.DEBOUNCED

        events: List[TournamentEvent] = []
        async with self._locked(tournament_id) as tournament:
            now = self._now()
            action = self._due_action(tournament, now)
            clock = TournamentClock(tournament.levels, tournament.clock)

            if action == TickAction.LEVEL_ADVANCED:
                tournament.clock = clock.change_level(LevelDirection.NEXT, now)
                events.append(self._clock_event(
                    TournamentEventType.LEVEL_CHANGED, tournament, now, reason="timer"
                ))
            elif action == TickAction.BREAK_ENDED:
                tournament.clock = clock.resume(now)
                events.append(self._clock_event(
                    TournamentEventType.TOURNAMENT_RESUMED, tournament, now, reason="break_over"
                ))
            elif action == TickAction.FINISHED:
                tournament.clock = clock.finish(now)
                winner = self.roster.crown_winner(tournament)
                events.append(self._clock_event(
                    TournamentEventType.TOURNAMENT_FINISHED,
                    tournament,
                    now,
                    winner=winner.to_dict() if winner else None,
                ))

        if events:
            if action == TickAction.FINISHED:
                self._last_auto_transition.pop(tournament_id, None)
            else:
                self._last_auto_transition[tournament_id] = now
            logger.info(
                "auto_transition",
                action=action.value,
                level_index=tournament.clock.current_level_index,
            )
            await self._publish(events)
        return action

    async def tick_all(self) -> Dict[str, TickAction]:
        results: Dict[str, TickAction] = {}
        for tournament_id in await self.repository.list_ids():
            results[tournament_id] = await self.tick(tournament_id)
        return results

    # =========================================================================
    # Roster
    # =========================================================================

    async def register_player(self, tournament_id: str, player: Player) -> Registration:
        async with self._locked(tournament_id) as tournament:
            registration = self.roster.register(tournament, player)

        logger.info(
            "player_registered",
            tournament_id=tournament_id,
            registration_id=registration.registration_id,
            seated=registration.is_seated,
        )
        events = [
            self._event(
                TournamentEventType.PLAYER_REGISTERED,
                tournament,
                registration.to_dict(),
                registration_id=registration.registration_id,
            )
        ]
        if registration.is_seated:
            events.append(self._event(
                TournamentEventType.PLAYER_SEATED,
                tournament,
                {"seat_number": registration.seat_number},
                table_id=registration.table_id,
                registration_id=registration.registration_id,
            ))
        await self._publish(events)
        return registration

    async def remove_player(self, registration_id: str) -> Registration:
        tournament_id = await self._resolve_registration(registration_id)
        async with self._locked(tournament_id) as tournament:
            registration = self.roster.remove(tournament, registration_id)

        await self._publish([
            self._event(
                TournamentEventType.PLAYER_REMOVED,
                tournament,
                registration.to_dict(),
                registration_id=registration_id,
            )
        ])
        return registration

    async def eliminate(
        self,
        registration_id: str,
        bounty_count: int = 0,
    ) -> Optional[Recommendation]:
        """
        Knock a player out and return the fresh balancing recommendation.

        FREE tournaments also move the clock one level up (level start time
        unchanged) while RUNNING and not on the last level.
        """
        tournament_id = await self._resolve_registration(registration_id)
        now = self._now()
        async with self._locked(tournament_id) as tournament:
            registration = self.roster.eliminate(tournament, registration_id, bounty_count)

            bumped = False
            if tournament.tournament_type == TournamentType.FREE:
                clock = TournamentClock(tournament.levels, tournament.clock)
                bumped = clock.bump_level()
                tournament.clock = clock.state

            recommendation = self.balancer.recommend(tournament)

        logger.info(
            "player_eliminated",
            tournament_id=tournament_id,
            registration_id=registration_id,
            place=registration.finishing_place,
            level_bumped=bumped,
        )

        events = [
            self._event(
                TournamentEventType.PLAYER_ELIMINATED,
                tournament,
                registration.to_dict(),
                registration_id=registration_id,
            )
        ]
        if bumped:
            events.append(self._clock_event(
                TournamentEventType.LEVEL_CHANGED, tournament, now, reason="elimination"
            ))
        if recommendation is not None:
            events.append(self._recommendation_event(tournament, recommendation))
        await self._publish(events)
        return recommendation

    async def rebuy(self, registration_id: str) -> Registration:
        tournament_id = await self._resolve_registration(registration_id)
        async with self._locked(tournament_id) as tournament:
            registration = self.roster.rebuy(tournament, registration_id)

        await self._publish([
            self._event(
                TournamentEventType.PLAYER_REBUY,
                tournament,
                {"rebuy_count": registration.rebuy_count},
                registration_id=registration_id,
            )
        ])
        return registration

    async def addon(self, registration_id: str) -> Registration:
        tournament_id = await self._resolve_registration(registration_id)
        async with self._locked(tournament_id) as tournament:
            registration = self.roster.addon(tournament, registration_id)

        await self._publish([
            self._event(
                TournamentEventType.PLAYER_ADDON,
                tournament,
                {"addon_count": registration.addon_count},
                registration_id=registration_id,
            )
        ])
        return registration

    # =========================================================================
    # Tables
    # =========================================================================

    async def create_table(
        self, tournament_id: str, max_seats: Optional[int] = None
    ) -> Table:
        seats = self.settings.default_max_seats if max_seats is None else max_seats
        async with self._locked(tournament_id) as tournament:
            table = self.seating.create_table(tournament, seats)

        logger.info(
            "table_created",
            tournament_id=tournament_id,
            table_id=table.table_id,
            table_number=table.table_number,
        )
        await self._publish([
            self._event(
                TournamentEventType.TABLE_CREATED,
                tournament,
                table.to_dict(),
                table_id=table.table_id,
            )
        ])
        return table

    async def delete_table(self, table_id: str) -> List[str]:
        """Delete a table; everyone seated there becomes unseated."""
        tournament_id = await self._resolve_table(table_id)
        async with self._locked(tournament_id) as tournament:
            unseated = self.seating.delete_table(tournament, table_id)

        logger.info(
            "table_closed",
            tournament_id=tournament_id,
            table_id=table_id,
            unseated=len(unseated),
        )
        await self._publish([
            self._event(
                TournamentEventType.TABLE_CLOSED,
                tournament,
                {"unseated": unseated},
                table_id=table_id,
            )
        ])
        return unseated

    async def update_table(self, table_id: str, max_seats: int) -> Table:
        tournament_id = await self._resolve_table(table_id)
        async with self._locked(tournament_id) as tournament:
            table = self.seating.update_table(tournament, table_id, max_seats)

        await self._publish([
            self._event(
                TournamentEventType.TABLE_UPDATED,
                tournament,
                table.to_dict(),
                table_id=table_id,
            )
        ])
        return table

    # =========================================================================
    # Seating
    # =========================================================================

    async def assign_seating(self, tournament_id: str) -> List[SeatAssignment]:
        async with self._locked(tournament_id, persist_on_error=True) as tournament:
            assignments = self.seating.assign_seating(tournament)

        await self._publish([
            self._event(
                TournamentEventType.SEATING_ASSIGNED,
                tournament,
                {"assignments": [list(a) for a in assignments]},
            )
        ])
        return assignments

    async def seat_players(
        self, tournament_id: str, registration_ids: Sequence[str]
    ) -> List[SeatAssignment]:
        async with self._locked(tournament_id, persist_on_error=True) as tournament:
            assignments = self.seating.seat_players(tournament, registration_ids)

        await self._publish([
            self._event(
                TournamentEventType.PLAYER_SEATED,
                tournament,
                {"seat_number": seat},
                table_id=table_id,
                registration_id=registration_id,
            )
            for registration_id, table_id, seat in assignments
        ])
        return assignments

    async def move_player(
        self,
        tournament_id: str,
        registration_id: str,
        table_id: str,
        seat_number: int,
    ) -> Registration:
        async with self._locked(tournament_id) as tournament:
            self.seating.get_registration(tournament, registration_id)
            await self._require_local_table(tournament, table_id)
            registration = self.seating.move_player(
                tournament, registration_id, table_id, seat_number
            )

        logger.info(
            "player_moved",
            tournament_id=tournament_id,
            registration_id=registration_id,
            table_id=table_id,
            seat_number=seat_number,
        )
        await self._publish([
            self._event(
                TournamentEventType.PLAYER_MOVED,
                tournament,
                {"seat_number": seat_number},
                table_id=table_id,
                registration_id=registration_id,
            )
        ])
        return registration

    async def unseat_player(self, tournament_id: str, registration_id: str) -> Registration:
        async with self._locked(tournament_id) as tournament:
            registration = self.seating.unseat_player(tournament, registration_id)

        await self._publish([
            self._event(
                TournamentEventType.PLAYER_UNSEATED,
                tournament,
                registration_id=registration_id,
            )
        ])
        return registration

    async def clear_seating(self, tournament_id: str) -> int:
        async with self._locked(tournament_id) as tournament:
            cleared = self.seating.clear_seating(tournament)

        await self._publish([
            self._event(
                TournamentEventType.SEATING_CLEARED, tournament, {"cleared": cleared}
            )
        ])
        return cleared

    async def apply_break_table_recommendation(
        self,
        tournament_id: str,
        recommendation: Union[BreakTableRecommendation, Mapping[str, Any]],
    ) -> int:
        """Apply a break-table recommendation; every move is re-validated."""
        if not isinstance(recommendation, BreakTableRecommendation):
            recommendation = BreakTableRecommendation.from_dict(recommendation)

        async with self._locked(tournament_id, persist_on_error=True) as tournament:
            await self._require_local_table(tournament, recommendation.table_id)
            for move in recommendation.moves:
                await self._require_local_table(tournament, move.target_table_id)
            moved = self.seating.apply_break_table(tournament, recommendation)

        logger.info(
            "break_table_applied",
            tournament_id=tournament_id,
            table_id=recommendation.table_id,
            moved=moved,
        )
        events = [
            self._event(
                TournamentEventType.PLAYER_MOVED,
                tournament,
                {"seat_number": move.target_seat},
                table_id=move.target_table_id,
                registration_id=move.registration_id,
            )
            for move in recommendation.moves
        ]
        events.append(self._event(
            TournamentEventType.TABLE_CLOSED,
            tournament,
            {"table_number": recommendation.table_number},
            table_id=recommendation.table_id,
        ))
        await self._publish(events)
        return moved

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_remaining_seconds(self, tournament_id: str) -> int:
        tournament = await self._load(tournament_id)
        clock = TournamentClock(tournament.levels, tournament.clock)
        return clock.remaining_seconds(self._now())

    async def get_recommendation(self, tournament_id: str) -> Optional[Recommendation]:
        tournament = await self._load(tournament_id)
        if tournament.is_finished:
            return None
        return self.balancer.recommend(tournament)

    async def get_tournament(self, tournament_id: str) -> Dict[str, Any]:
        """Tournament document plus live clock values and a fresh recommendation."""
        tournament = await self._load(tournament_id)
        clock = TournamentClock(tournament.levels, tournament.clock)
        now = self._now()

        view = tournament.to_dict()
        view["remaining_seconds"] = clock.remaining_seconds(now)
        view["current_level"] = clock.current_level.to_dict() if clock.current_level else None
        view["next_level"] = clock.next_level.to_dict() if clock.next_level else None
        view["active_players"] = tournament.active_player_count

        if not tournament.is_finished:
            recommendation = self.balancer.recommend(tournament)
            view["balancing_recommendation"] = (
                recommendation.to_dict() if recommendation else None
            )
        return view

    async def get_seating_chart(self, tournament_id: str) -> Dict[str, Any]:
        tournament = await self._load(tournament_id)

        tables = []
        for table in tournament.sorted_tables():
            by_seat = {r.seat_number: r for r in tournament.seated_at(table.table_id)}
            seats = []
            for seat in range(1, table.max_seats + 1):
                registration = by_seat.get(seat)
                seats.append({
                    "seat_number": seat,
                    "registration_id": registration.registration_id if registration else None,
                    "player_name": registration.player.display_name if registration else None,
                })
            tables.append({**table.to_dict(), "seats": seats, "active_players": len(by_seat)})

        unseated = [
            {"registration_id": r.registration_id, "player_name": r.player.display_name}
            for r in tournament.active_registrations
            if not r.is_seated
        ]
        return {"tournament_id": tournament_id, "tables": tables, "unseated": unseated}


def create_runtime(
    settings: Optional[Settings] = None,
    redis_client: Optional[redis.Redis] = None,
    now: Optional[Callable[[], datetime]] = None,
    rng: Optional[random.Random] = None,
) -> TournamentRuntime:
    """
    Wire a runtime from settings.

    redis_url 설정 시 Redis 저장소/분산 락/이벤트 스트림, 아니면 인메모리.
    """
    settings = settings or get_settings()
    if redis_client is None and settings.redis_url:
        redis_client = redis.from_url(settings.redis_url)

    if redis_client is None:
        return TournamentRuntime(
            repository=InMemoryTournamentRepository(),
            lock_manager=LocalLockManager(settings.lock_acquire_timeout_ms),
            event_bus=TournamentEventBus(),
            settings=settings,
            now=now,
            rng=rng,
        )

    return TournamentRuntime(
        repository=RedisTournamentRepository(
            redis_client,
            ttl_seconds=settings.state_ttl_seconds,
            hmac_key=settings.state_hmac_key.encode(),
        ),
        lock_manager=DistributedLockManager(
            redis_client,
            default_lock_timeout_ms=settings.lock_timeout_ms,
            default_acquire_timeout_ms=settings.lock_acquire_timeout_ms,
        ),
        event_bus=TournamentEventBus(redis_client),
        settings=settings,
        now=now,
        rng=rng,
    )
