"""
Seating Service - table and seat primitives.

모든 좌석 쓰기는 직전에 검증한다 (범위, 중복, 활성 여부, 토너먼트 일치).
Bulk operations validate each write immediately before applying it, so a
failure part-way keeps the earlier writes; the runtime persists whatever was
applied before re-raising.

Randomness (shuffles, tie-breaks) comes from the injected ``random.Random``
so seating is reproducible under a fixed seed.
"""

import random
from typing import Dict, List, Optional, Sequence, Tuple

from livetourney.logging_config import get_logger
from livetourney.utils.errors import (
    CrossTournamentReferenceError,
    InactivePlayerError,
    InvalidRequestError,
    InvalidSeatError,
    InvalidStateError,
    NotFoundError,
)

from .balancer import BreakTableRecommendation
from .models import Registration, Table, Tournament

logger = get_logger(__name__)

MIN_TABLE_SEATS = 2
MAX_TABLE_SEATS = 10

SeatAssignment = Tuple[str, str, int]  # (registration_id, table_id, seat_number)


def validate_max_seats(max_seats: int) -> None:
    if not MIN_TABLE_SEATS <= max_seats <= MAX_TABLE_SEATS:
        raise InvalidRequestError(
            f"Tables seat between {MIN_TABLE_SEATS} and {MAX_TABLE_SEATS} players",
            details={"maxSeats": max_seats},
        )


class SeatingService:
    """Seat and table mutations on a loaded Tournament aggregate."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    # ─────────────────────────────────────────────────────────────────────────────
    # Lookups and validation
    # ─────────────────────────────────────────────────────────────────────────────

    @staticmethod
    def get_registration(tournament: Tournament, registration_id: str) -> Registration:
        registration = tournament.registrations.get(registration_id)
        if registration is None:
            raise NotFoundError("registration", registration_id)
        return registration

    @staticmethod
    def get_table(tournament: Tournament, table_id: str) -> Table:
        table = tournament.tables.get(table_id)
        if table is None:
            raise NotFoundError("table", table_id)
        return table

    def _validate_seat(
        self,
        tournament: Tournament,
        registration: Registration,
        table: Table,
        seat_number: int,
    ) -> None:
        if not registration.is_active:
            raise InactivePlayerError(registration.registration_id)
        if table.tournament_id != registration.tournament_id:
            raise CrossTournamentReferenceError(table.table_id, registration.tournament_id)
        if not 1 <= seat_number <= table.max_seats:
            raise InvalidSeatError(table.table_id, seat_number, "seat out of range")

        for other in tournament.seated_at(table.table_id):
            if (
                other.seat_number == seat_number
                and other.registration_id != registration.registration_id
            ):
                raise InvalidSeatError(table.table_id, seat_number, "seat already taken")

    def _seat(
        self,
        tournament: Tournament,
        registration: Registration,
        table: Table,
        seat_number: int,
    ) -> None:
        self._validate_seat(tournament, registration, table, seat_number)
        registration.seat_at(table.table_id, seat_number)

    def _active_counts(
        self, tournament: Tournament, exclude: Optional[str] = None
    ) -> Dict[str, int]:
        counts = {table_id: 0 for table_id in tournament.tables}
        for registration in tournament.active_registrations:
            if registration.registration_id == exclude:
                continue
            if registration.table_id in counts:
                counts[registration.table_id] += 1
        return counts

    def _free_seats(
        self, tournament: Tournament, table: Table, exclude: Optional[str] = None
    ) -> List[int]:
        taken = {
            r.seat_number
            for r in tournament.seated_at(table.table_id)
            if r.registration_id != exclude
        }
        return [s for s in range(1, table.max_seats + 1) if s not in taken]

    def _pick_seat(
        self, tournament: Tournament, exclude: Optional[str] = None
    ) -> Optional[Tuple[Table, int]]:
        """Random free seat at a random least-populated table that has room."""
        counts = self._active_counts(tournament, exclude=exclude)
        candidates = [
            table for table in tournament.sorted_tables()
            if self._free_seats(tournament, table, exclude=exclude)
        ]
        if not candidates:
            return None

        fewest = min(counts[table.table_id] for table in candidates)
        table = self.rng.choice(
            [t for t in candidates if counts[t.table_id] == fewest]
        )
        seat = self.rng.choice(self._free_seats(tournament, table, exclude=exclude))
        return table, seat

    # ─────────────────────────────────────────────────────────────────────────────
    # Seat primitives
    # ─────────────────────────────────────────────────────────────────────────────

    def move_player(
        self,
        tournament: Tournament,
        registration_id: str,
        table_id: str,
        seat_number: int,
    ) -> Registration:
        """Put one active player into a specific seat."""
        registration = self.get_registration(tournament, registration_id)
        if not registration.is_active:
            raise InactivePlayerError(registration_id)
        table = self.get_table(tournament, table_id)

        self._seat(tournament, registration, table, seat_number)
        return registration

    def auto_assign(
        self, tournament: Tournament, registration: Registration
    ) -> Optional[Tuple[Table, int]]:
        """Seat a late registration at a least-populated table.

        Returns None (player stays unseated) when every table is full.
        """
        choice = self._pick_seat(tournament, exclude=registration.registration_id)
        if choice is None:
            logger.warning(
                "auto_assign_no_free_seat",
                tournament_id=tournament.tournament_id,
                registration_id=registration.registration_id,
            )
            return None

        table, seat = choice
        self._seat(tournament, registration, table, seat)
        return choice

    def assign_seating(self, tournament: Tournament) -> List[SeatAssignment]:
        """
        Full random draw of every active player.

        배치 규칙:
        - 플레이어 순서와 각 테이블의 좌석 순서를 섞는다
        - 테이블당 floor(N/T)명, 앞쪽 N mod T개 테이블은 1명 추가
        """
        tables = tournament.sorted_tables()
        if not tables:
            raise InvalidStateError(
                "No tables available. Create tables first.",
                status=tournament.status.value,
            )

        players = list(tournament.active_registrations)
        base, extra = divmod(len(players), len(tables))
        quotas = [base + (1 if i < extra else 0) for i in range(len(tables))]

        for table, quota in zip(tables, quotas):
            if quota > table.max_seats:
                raise InvalidStateError(
                    f"Not enough seats at Table {table.table_number} "
                    f"for {quota} players",
                    status=tournament.status.value,
                )

        self.rng.shuffle(players)
        for registration in players:
            registration.unseat()

        assignments: List[SeatAssignment] = []
        cursor = 0
        for table, quota in zip(tables, quotas):
            seats = list(range(1, table.max_seats + 1))
            self.rng.shuffle(seats)
            for seat in seats[:quota]:
                registration = players[cursor]
                cursor += 1
                self._seat(tournament, registration, table, seat)
                assignments.append((registration.registration_id, table.table_id, seat))

        logger.info(
            "seating_assigned",
            tournament_id=tournament.tournament_id,
            players=len(players),
            tables=len(tables),
        )
        return assignments

    def seat_players(
        self, tournament: Tournament, registration_ids: Sequence[str]
    ) -> List[SeatAssignment]:
        """Seat the given players one by one at the least-populated tables.

        Table counts are recomputed after every seat. Players that find no free
        seat anywhere are left where they are.
        """
        assignments: List[SeatAssignment] = []
        for registration_id in registration_ids:
            registration = self.get_registration(tournament, registration_id)
            if not registration.is_active:
                raise InactivePlayerError(registration_id)

            choice = self._pick_seat(tournament, exclude=registration_id)
            if choice is None:
                logger.warning(
                    "seat_players_no_free_seat",
                    tournament_id=tournament.tournament_id,
                    registration_id=registration_id,
                )
                continue

            table, seat = choice
            self._seat(tournament, registration, table, seat)
            assignments.append((registration_id, table.table_id, seat))

        return assignments

    def unseat_player(self, tournament: Tournament, registration_id: str) -> Registration:
        registration = self.get_registration(tournament, registration_id)
        registration.unseat()
        return registration

    def clear_seating(self, tournament: Tournament) -> int:
        """Unseat everyone. Returns how many seats were freed."""
        cleared = 0
        for registration in tournament.registrations.values():
            if registration.is_seated:
                registration.unseat()
                cleared += 1
        return cleared

    def apply_break_table(
        self, tournament: Tournament, recommendation: BreakTableRecommendation
    ) -> int:
        """Perform every move of a break-table recommendation, then close the table.

        Each move is re-validated against current state; a failing move aborts
        with earlier moves applied.
        """
        source = self.get_table(tournament, recommendation.table_id)

        applied = 0
        for move in recommendation.moves:
            if move.target_table_id == source.table_id:
                raise InvalidRequestError(
                    "Cannot move a player onto the table being broken",
                    details={"tableId": source.table_id},
                )
            self.move_player(
                tournament, move.registration_id, move.target_table_id, move.target_seat
            )
            applied += 1

        self.delete_table(tournament, source.table_id)
        return applied

    # ─────────────────────────────────────────────────────────────────────────────
    # Tables
    # ─────────────────────────────────────────────────────────────────────────────

    def create_table(self, tournament: Tournament, max_seats: int) -> Table:
        validate_max_seats(max_seats)

        # 번호는 재사용하지 않음
        number = max(
            [tournament.last_table_number]
            + [t.table_number for t in tournament.tables.values()]
        ) + 1
        table = Table(
            tournament_id=tournament.tournament_id,
            table_number=number,
            max_seats=max_seats,
        )
        tournament.tables[table.table_id] = table
        tournament.last_table_number = number
        return table

    def delete_table(self, tournament: Tournament, table_id: str) -> List[str]:
        """Remove a table, unseating everyone at it. Returns unseated ids."""
        table = self.get_table(tournament, table_id)

        unseated = []
        for registration in tournament.registrations.values():
            if registration.table_id == table.table_id:
                registration.unseat()
                unseated.append(registration.registration_id)

        del tournament.tables[table.table_id]
        return unseated

    def update_table(self, tournament: Tournament, table_id: str, max_seats: int) -> Table:
        validate_max_seats(max_seats)
        table = self.get_table(tournament, table_id)

        for registration in tournament.seated_at(table.table_id):
            if (registration.seat_number or 0) > max_seats:
                raise InvalidSeatError(
                    table.table_id,
                    registration.seat_number or 0,
                    "seat is occupied and beyond the new table size",
                )

        table.max_seats = max_seats
        return table
