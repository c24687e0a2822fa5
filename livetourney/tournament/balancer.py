"""
Table Balancing Recommendations.

탈락자 발생 시 테이블 인원을 점검하고 관리자에게 재배치를 권고한다.
The balancer is a pure function of a tournament snapshot: it never mutates
state and its output is never persisted. Recommendations are recomputed on
every read and applied (re-validated) by the seating service.

Two recommendation kinds form a tagged union:
- BreakTableRecommendation: close the last table, moving everyone on it
- BalanceTablesRecommendation: move K players from the fullest to the
  emptiest table
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Union

from livetourney.logging_config import get_logger

from .models import Registration, Table, Tournament

logger = get_logger(__name__)


@dataclass(frozen=True)
class TableStats:
    """Active player count of one table."""

    table_id: str
    table_number: int
    max_seats: int
    active_players: int

    @property
    def free_seats(self) -> int:
        return max(0, self.max_seats - self.active_players)


@dataclass(frozen=True)
class SeatMove:
    """Single player move instruction."""

    registration_id: str
    target_table_id: str
    target_seat: int
    player_name: str = ""
    target_table_number: int = 0

    @property
    def assignment(self) -> str:
        return (
            f"{self.player_name} → Table {self.target_table_number}, "
            f"Seat {self.target_seat}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "registration_id": self.registration_id,
            "player_name": self.player_name,
            "target_table_id": self.target_table_id,
            "target_table_number": self.target_table_number,
            "target_seat": self.target_seat,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SeatMove":
        return cls(
            registration_id=data["registration_id"],
            target_table_id=data["target_table_id"],
            target_seat=int(data["target_seat"]),
            player_name=data.get("player_name", ""),
            target_table_number=int(data.get("target_table_number", 0)),
        )


@dataclass(frozen=True)
class BreakTableRecommendation:
    """Close ``table_id`` and move every active player on it."""

    action: ClassVar[str] = "break_table"

    table_id: str
    table_number: int
    moves: Tuple[SeatMove, ...] = ()

    @property
    def players_to_move(self) -> int:
        return len(self.moves)

    @property
    def assignments(self) -> List[str]:
        return [move.assignment for move in self.moves]

    @property
    def message(self) -> str:
        return f"Break Table {self.table_number}:\n" + "\n".join(self.assignments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "table_id": self.table_id,
            "table_number": self.table_number,
            "players_to_move": self.players_to_move,
            "assignments": self.assignments,
            "moves": [move.to_dict() for move in self.moves],
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BreakTableRecommendation":
        return cls(
            table_id=data["table_id"],
            table_number=int(data.get("table_number", 0)),
            moves=tuple(SeatMove.from_dict(m) for m in data.get("moves", [])),
        )


@dataclass(frozen=True)
class BalanceTablesRecommendation:
    """Move ``count`` players from one table to another."""

    action: ClassVar[str] = "balance_tables"

    from_table_id: str
    from_table_number: int
    to_table_id: str
    to_table_number: int
    count: int

    @property
    def message(self) -> str:
        return (
            f"Move {self.count} player(s) from Table {self.from_table_number} "
            f"to Table {self.to_table_number}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "from_table_id": self.from_table_id,
            "from_table_number": self.from_table_number,
            "to_table_id": self.to_table_id,
            "to_table_number": self.to_table_number,
            "count": self.count,
            "message": self.message,
        }


Recommendation = Union[BreakTableRecommendation, BalanceTablesRecommendation]


class TableBalancer:
    """
    Tournament table balancing advisor.

    권고 알고리즘:
    ─────────────────────────────────────────────────────────────────

    1. 테이블 해체 (Breaking Table) 우선:
       - 대상은 마지막 테이블 (가장 큰 table_number)
       - 0 < 마지막 테이블 인원 <= 다른 테이블 빈 좌석 합계
       - 각 플레이어를 table_number 순, 좌석 1..max_seats 순으로
         첫 번째 빈 좌석에 배정

    2. 인원 균형:
       - 최대 인원 - 최소 인원 > 1 이면
       - floor((max - min) / 2)명을 첫 번째 최대 테이블에서
         첫 번째 최소 테이블로 이동

    3. 테이블이 2개 미만이면 권고 없음

    ─────────────────────────────────────────────────────────────────
    """

    def table_stats(self, tournament: Tournament) -> List[TableStats]:
        """Per-table active counts, ordered by table number."""
        counts: Dict[str, int] = {table_id: 0 for table_id in tournament.tables}
        for registration in tournament.active_registrations:
            if registration.table_id in counts:
                counts[registration.table_id] += 1

        return [
            TableStats(
                table_id=table.table_id,
                table_number=table.table_number,
                max_seats=table.max_seats,
                active_players=counts[table.table_id],
            )
            for table in tournament.sorted_tables()
        ]

    def recommend(self, tournament: Tournament) -> Optional[Recommendation]:
        """Compute the current recommendation, or None when tables are fine."""
        stats = self.table_stats(tournament)
        if len(stats) < 2:
            return None

        recommendation: Optional[Recommendation] = self._plan_break_table(
            tournament, stats
        )
        if recommendation is None:
            recommendation = self._plan_balance(stats)

        if recommendation is not None:
            logger.debug(
                "balancing_recommended",
                tournament_id=tournament.tournament_id,
                action=recommendation.action,
            )
        return recommendation

    def _plan_break_table(
        self,
        tournament: Tournament,
        stats: List[TableStats],
    ) -> Optional[BreakTableRecommendation]:
        last = stats[-1]
        others = stats[:-1]
        free_elsewhere = sum(s.free_seats for s in others)

        if not 0 < last.active_players <= free_elsewhere:
            return None

        # 다른 테이블의 빈 좌석을 순서대로 채움
        open_seats: List[Tuple[Table, int]] = []
        for stat in others:
            table = tournament.tables[stat.table_id]
            taken = tournament.occupied_seats(table.table_id)
            open_seats.extend(
                (table, seat)
                for seat in range(1, table.max_seats + 1)
                if seat not in taken
            )

        moving: List[Registration] = tournament.seated_at(last.table_id)
        moves = tuple(
            SeatMove(
                registration_id=registration.registration_id,
                target_table_id=table.table_id,
                target_seat=seat,
                player_name=registration.player.display_name,
                target_table_number=table.table_number,
            )
            for registration, (table, seat) in zip(moving, open_seats)
        )

        return BreakTableRecommendation(
            table_id=last.table_id,
            table_number=last.table_number,
            moves=moves,
        )

    def _plan_balance(
        self, stats: List[TableStats]
    ) -> Optional[BalanceTablesRecommendation]:
        fullest = max(stats, key=lambda s: s.active_players)
        emptiest = min(stats, key=lambda s: s.active_players)
        difference = fullest.active_players - emptiest.active_players

        if difference <= 1:
            return None

        return BalanceTablesRecommendation(
            from_table_id=fullest.table_id,
            from_table_number=fullest.table_number,
            to_table_id=emptiest.table_id,
            to_table_number=emptiest.table_number,
            count=difference // 2,
        )
