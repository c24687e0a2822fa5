"""Shared test fixtures.

- FakeClock: injectable ``now`` callable advanced by hand
- MockRedis: in-memory stand-in for the redis.asyncio client commands we use
- runtime: TournamentRuntime over the in-memory repository and local locks
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from livetourney.config import Settings
from livetourney.tournament.distributed_lock import LocalLockManager
from livetourney.tournament.engine import TournamentRuntime
from livetourney.tournament.event_bus import TournamentEventBus
from livetourney.tournament.models import (
    Player,
    Registration,
    Table,
    Tournament,
    TournamentType,
)
from livetourney.tournament.repository import InMemoryTournamentRepository

T0 = datetime(2026, 3, 14, 19, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self.current += timedelta(seconds=seconds, minutes=minutes)
        return self.current


class MockRedis:
    """Mock Redis client."""

    def __init__(self):
        self._data = {}
        self._sets = {}
        self._streams = {}
        self.ttls = {}

    async def set(self, key, value, nx=False, px=None, ex=None):
        if nx and key in self._data:
            return False
        self._data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        elif px is not None:
            self.ttls[key] = px / 1000
        return True

    async def get(self, key):
        return self._data.get(key)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    async def exists(self, key):
        return 1 if key in self._data else 0

    async def sadd(self, key, *members):
        self._sets.setdefault(key, set()).update(members)
        return len(members)

    async def srem(self, key, *members):
        self._sets.setdefault(key, set()).difference_update(members)
        return len(members)

    async def smembers(self, key):
        return set(self._sets.get(key, set()))

    def register_script(self, script):
        async def mock_script(keys=None, args=None):
            key, owner = keys[0], args[0]
            if self._data.get(key) != owner:
                return 0
            if "pexpire" in script:
                self.ttls[key] = int(args[1]) / 1000
                return 1
            del self._data[key]
            return 1

        return mock_script

    async def xadd(self, stream, data, maxlen=None, approximate=False):
        entries = self._streams.setdefault(stream, [])
        entry_id = f"{len(entries) + 1}-0"
        entries.append((entry_id, data))
        if maxlen is not None:
            del entries[:-maxlen]
        return entry_id

    def stream(self, name):
        return list(self._streams.get(name, []))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(_env_file=None, auto_advance_cooldown_seconds=5.0)


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def event_bus():
    return TournamentEventBus()


@pytest.fixture
def runtime(clock, settings, event_bus):
    return TournamentRuntime(
        repository=InMemoryTournamentRepository(),
        lock_manager=LocalLockManager(),
        event_bus=event_bus,
        settings=settings,
        now=clock,
        rng=random.Random(42),
    )


def build_tournament(counts, max_seats=9, tournament_type=None):
    """Tournament with one table per entry of ``counts``, seats 1..count filled."""
    tournament = Tournament(
        name="Test Tournament",
        tournament_type=tournament_type or TournamentType.PAID,
    )
    for number, count in enumerate(counts, start=1):
        table = Table(
            tournament_id=tournament.tournament_id,
            table_number=number,
            max_seats=max_seats,
        )
        tournament.tables[table.table_id] = table
        tournament.last_table_number = number

        for seat in range(1, count + 1):
            registration = Registration(
                tournament_id=tournament.tournament_id,
                player=Player(
                    player_id=f"p{number}-{seat}",
                    username=f"Player {number}-{seat}",
                ),
            )
            registration.seat_at(table.table_id, seat)
            tournament.registrations[registration.registration_id] = registration

    return tournament


def assert_no_double_booking(tournament):
    seats = [
        (r.table_id, r.seat_number)
        for r in tournament.active_registrations
        if r.is_seated
    ]
    assert len(seats) == len(set(seats))
    for table_id, seat_number in seats:
        table = tournament.tables[table_id]
        assert 1 <= seat_number <= table.max_seats


@pytest.fixture
def make_tournament():
    return build_tournament
