"""
Live Tournament Runtime.

This module provides:
- Level schedule and wall-clock based tournament clock (pause, break, levels)
- Registrations, eliminations, finishing places and ranked points
- Seating primitives and table balancing recommendations
- Per-tournament locking (in-process or Redis) and state repositories
- Event bus for admin screens and displays
"""

from .balancer import (
    BalanceTablesRecommendation,
    BreakTableRecommendation,
    Recommendation,
    SeatMove,
    TableBalancer,
)
from .clock import TournamentClock
from .distributed_lock import (
    DistributedLockManager,
    LocalLockManager,
    LockAcquisitionError,
)
from .engine import TickAction, TournamentRuntime, create_runtime
from .event_bus import TournamentEventBus
from .levels import Level, LevelSchedule, create_standard_blind_structure
from .models import (
    ClockState,
    LevelDirection,
    Player,
    Registration,
    RegistrationStatus,
    Table,
    Tournament,
    TournamentEvent,
    TournamentEventType,
    TournamentStatus,
    TournamentType,
)
from .points import calculate_points
from .repository import (
    InMemoryTournamentRepository,
    RedisTournamentRepository,
    TournamentRepository,
)
from .ticker import ClockTicker

__all__ = [
    "BalanceTablesRecommendation",
    "BreakTableRecommendation",
    "ClockState",
    "ClockTicker",
    "DistributedLockManager",
    "InMemoryTournamentRepository",
    "Level",
    "LevelDirection",
    "LevelSchedule",
    "LocalLockManager",
    "LockAcquisitionError",
    "Player",
    "Recommendation",
    "RedisTournamentRepository",
    "Registration",
    "RegistrationStatus",
    "SeatMove",
    "Table",
    "TableBalancer",
    "TickAction",
    "Tournament",
    "TournamentClock",
    "TournamentEvent",
    "TournamentEventBus",
    "TournamentEventType",
    "TournamentRepository",
    "TournamentRuntime",
    "TournamentStatus",
    "TournamentType",
    "calculate_points",
    "create_runtime",
    "create_standard_blind_structure",
]
