"""
Tournament Data Models.

State representations for tournament entities. ClockState is immutable and only
replaced through TournamentClock transitions; registrations and tables are
mutated only by the roster/seating services under the tournament lock.
"""

from enum import Enum, auto
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set
from uuid import uuid4

from .levels import LevelSchedule


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _str_to_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class TournamentStatus(Enum):
    """Tournament clock states."""

    SCHEDULED = "SCHEDULED"  # 시작 전
    RUNNING = "RUNNING"  # 진행 중
    PAUSED = "PAUSED"  # 일시정지 (관리자)
    BREAK = "BREAK"  # 휴식
    FINISHED = "FINISHED"  # 종료


class TournamentType(Enum):
    """Ruleset. FREE tournaments are ranked: points and elimination level bumps."""

    PAID = "PAID"
    FREE = "FREE"


class RegistrationStatus(Enum):
    REGISTERED = "REGISTERED"
    ELIMINATED = "ELIMINATED"


class LevelDirection(Enum):
    NEXT = "next"
    PREV = "prev"


class TournamentEventType(Enum):
    """Event types for tournament event bus."""

    # Lifecycle
    TOURNAMENT_CREATED = auto()
    TOURNAMENT_STARTED = auto()
    TOURNAMENT_PAUSED = auto()
    TOURNAMENT_RESUMED = auto()
    TOURNAMENT_FINISHED = auto()
    STRUCTURE_UPDATED = auto()

    # Clock
    LEVEL_CHANGED = auto()
    BREAK_STARTED = auto()

    # Player
    PLAYER_REGISTERED = auto()
    PLAYER_REMOVED = auto()
    PLAYER_ELIMINATED = auto()
    PLAYER_SEATED = auto()
    PLAYER_MOVED = auto()
    PLAYER_UNSEATED = auto()
    PLAYER_REBUY = auto()
    PLAYER_ADDON = auto()

    # Table
    TABLE_CREATED = auto()
    TABLE_UPDATED = auto()
    TABLE_CLOSED = auto()
    SEATING_ASSIGNED = auto()
    SEATING_CLEARED = auto()
    BALANCING_RECOMMENDED = auto()


@dataclass(frozen=True)
class ClockState:
    """
    Tournament clock state - immutable.

    level_started_at is meaningful only while RUNNING, timer_seconds_remaining
    while PAUSED or BREAK, break_* only while BREAK.
    """

    status: TournamentStatus = TournamentStatus.SCHEDULED
    current_level_index: int = 0
    level_started_at: Optional[datetime] = None
    timer_paused_at: Optional[datetime] = None
    timer_seconds_remaining: Optional[int] = None
    break_started_at: Optional[datetime] = None
    break_duration_minutes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "current_level_index": self.current_level_index,
            "level_started_at": _dt_to_str(self.level_started_at),
            "timer_paused_at": _dt_to_str(self.timer_paused_at),
            "timer_seconds_remaining": self.timer_seconds_remaining,
            "break_started_at": _dt_to_str(self.break_started_at),
            "break_duration_minutes": self.break_duration_minutes,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClockState":
        return cls(
            status=TournamentStatus(data["status"]),
            current_level_index=int(data.get("current_level_index", 0)),
            level_started_at=_str_to_dt(data.get("level_started_at")),
            timer_paused_at=_str_to_dt(data.get("timer_paused_at")),
            timer_seconds_remaining=data.get("timer_seconds_remaining"),
            break_started_at=_str_to_dt(data.get("break_started_at")),
            break_duration_minutes=data.get("break_duration_minutes"),
        )


@dataclass(frozen=True)
class Player:
    """Player identity, owned by the roster collaborator."""

    player_id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.username:
            return self.username
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or self.player_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Player":
        return cls(
            player_id=data["player_id"],
            username=data.get("username"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )


@dataclass
class Registration:
    """A player's participation record in one tournament."""

    tournament_id: str
    player: Player
    registration_id: str = field(default_factory=lambda: str(uuid4()))
    status: RegistrationStatus = RegistrationStatus.REGISTERED
    finishing_place: Optional[int] = None
    points: int = 0
    bounty_count: int = 0
    rebuy_count: int = 0
    addon_count: int = 0

    # 좌석 (table_id와 seat_number는 항상 함께 설정/해제)
    table_id: Optional[str] = None
    seat_number: Optional[int] = None

    registered_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == RegistrationStatus.REGISTERED

    @property
    def is_seated(self) -> bool:
        return self.table_id is not None

    def seat_at(self, table_id: str, seat_number: int) -> None:
        self.table_id = table_id
        self.seat_number = seat_number

    def unseat(self) -> None:
        self.table_id = None
        self.seat_number = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "registration_id": self.registration_id,
            "tournament_id": self.tournament_id,
            "player": self.player.to_dict(),
            "player_name": self.player.display_name,
            "status": self.status.value,
            "finishing_place": self.finishing_place,
            "points": self.points,
            "bounty_count": self.bounty_count,
            "rebuy_count": self.rebuy_count,
            "addon_count": self.addon_count,
            "table_id": self.table_id,
            "seat_number": self.seat_number,
            "registered_at": _dt_to_str(self.registered_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Registration":
        return cls(
            registration_id=data["registration_id"],
            tournament_id=data["tournament_id"],
            player=Player.from_dict(data["player"]),
            status=RegistrationStatus(data["status"]),
            finishing_place=data.get("finishing_place"),
            points=data.get("points", 0),
            bounty_count=data.get("bounty_count", 0),
            rebuy_count=data.get("rebuy_count", 0),
            addon_count=data.get("addon_count", 0),
            table_id=data.get("table_id"),
            seat_number=data.get("seat_number"),
            registered_at=_str_to_dt(data.get("registered_at")) or utcnow(),
        )


@dataclass
class Table:
    """Physical table. table_number is never reused within a run."""

    tournament_id: str
    table_number: int
    max_seats: int = 9
    table_id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_id": self.table_id,
            "tournament_id": self.tournament_id,
            "table_number": self.table_number,
            "max_seats": self.max_seats,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Table":
        return cls(
            table_id=data["table_id"],
            tournament_id=data["tournament_id"],
            table_number=int(data["table_number"]),
            max_seats=int(data["max_seats"]),
        )


@dataclass(frozen=True)
class TournamentEvent:
    """
    Tournament event for event bus.

    All tournament state changes emit events for admin screens, displays and
    audit logging.
    """

    event_id: str = field(default_factory=lambda: str(uuid4()))
    event_type: TournamentEventType = TournamentEventType.TOURNAMENT_CREATED
    tournament_id: str = ""
    timestamp: datetime = field(default_factory=utcnow)

    # Event-specific data
    data: Dict[str, Any] = field(default_factory=dict)

    # Optional references
    table_id: Optional[str] = None
    registration_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.name,
            "tournament_id": self.tournament_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
            "table_id": self.table_id,
            "registration_id": self.registration_id,
        }


@dataclass
class Tournament:
    """
    Complete tournament aggregate.

    Loaded from and saved to a TournamentRepository as a whole; every mutation
    happens under the per-tournament lock held by the runtime.
    """

    name: str
    tournament_id: str = field(default_factory=lambda: str(uuid4()))
    tournament_type: TournamentType = TournamentType.PAID
    levels: LevelSchedule = field(default_factory=LevelSchedule)
    clock: ClockState = field(default_factory=ClockState)

    # registration_id -> Registration
    registrations: Dict[str, Registration] = field(default_factory=dict)
    # table_id -> Table
    tables: Dict[str, Table] = field(default_factory=dict)

    registration_closed: bool = False
    last_table_number: int = 0
    buy_in: Optional[int] = None
    starting_stack: int = 10000
    created_at: datetime = field(default_factory=utcnow)

    @property
    def status(self) -> TournamentStatus:
        return self.clock.status

    @property
    def is_finished(self) -> bool:
        return self.clock.status == TournamentStatus.FINISHED

    @property
    def active_registrations(self) -> List[Registration]:
        return [r for r in self.registrations.values() if r.is_active]

    @property
    def active_player_count(self) -> int:
        return sum(1 for r in self.registrations.values() if r.is_active)

    @property
    def has_seating(self) -> bool:
        """True once any registration holds a seat."""
        return any(r.is_seated for r in self.registrations.values())

    def sorted_tables(self) -> List[Table]:
        return sorted(self.tables.values(), key=lambda t: t.table_number)

    def seated_at(self, table_id: str) -> List[Registration]:
        """Active registrations seated at a table, ordered by seat."""
        seated = [
            r for r in self.registrations.values()
            if r.is_active and r.table_id == table_id
        ]
        return sorted(seated, key=lambda r: r.seat_number or 0)

    def occupied_seats(self, table_id: str) -> Set[int]:
        return {r.seat_number for r in self.seated_at(table_id) if r.seat_number}

    def find_registration_by_player(self, player_id: str) -> Optional[Registration]:
        for registration in self.registrations.values():
            if registration.player.player_id == player_id:
                return registration
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "name": self.name,
            "tournament_type": self.tournament_type.value,
            "levels": self.levels.to_list(),
            "clock": self.clock.to_dict(),
            "registrations": [r.to_dict() for r in self.registrations.values()],
            "tables": [t.to_dict() for t in self.sorted_tables()],
            "registration_closed": self.registration_closed,
            "last_table_number": self.last_table_number,
            "buy_in": self.buy_in,
            "starting_stack": self.starting_stack,
            "created_at": _dt_to_str(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Tournament":
        registrations = [Registration.from_dict(r) for r in data.get("registrations", [])]
        tables = [Table.from_dict(t) for t in data.get("tables", [])]
        return cls(
            tournament_id=data["tournament_id"],
            name=data["name"],
            tournament_type=TournamentType(data.get("tournament_type", "PAID")),
            levels=LevelSchedule.from_list(data.get("levels", [])),
            clock=ClockState.from_dict(data["clock"]),
            registrations={r.registration_id: r for r in registrations},
            tables={t.table_id: t for t in tables},
            registration_closed=data.get("registration_closed", False),
            last_table_number=data.get("last_table_number", 0),
            buy_in=data.get("buy_in"),
            starting_stack=data.get("starting_stack", 10000),
            created_at=_str_to_dt(data.get("created_at")) or utcnow(),
        )
