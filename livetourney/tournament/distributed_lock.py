"""
Per-Tournament Locking.

한 토너먼트의 모든 read-modify-write는 토너먼트 락 안에서 실행된다.

Both managers are used the same way::

    async with manager.lock(tournament_id) as lease:
        ...

- LocalLockManager: an asyncio.Lock per tournament, for a single process
- DistributedLockManager: a Redis key per tournament shared by several
  runtime processes. ``SET NX PX`` takes the lock; release and renewal run a
  Lua script that compares the lease token first, so a lease that already
  expired can never delete a lock another process now holds.

Lock key: lock:tournament:{tournament_id}
"""

import asyncio
import secrets
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional

import redis.asyncio as redis

from livetourney.logging_config import get_logger
from livetourney.utils.errors import ErrorCode, TournamentError

logger = get_logger(__name__)

LOCK_KEY_PREFIX = "lock:tournament"


def make_lock_key(tournament_id: str) -> str:
    return f"{LOCK_KEY_PREFIX}:{tournament_id}"


class LockAcquisitionError(TournamentError):
    """Raised when the tournament lock stays held past the acquire timeout."""

    def __init__(self, tournament_id: str, waited_ms: int):
        super().__init__(
            code=ErrorCode.TOURNAMENT_BUSY,
            message=f"Tournament {tournament_id} is busy, try again",
            details={"tournamentId": tournament_id, "waitedMs": waited_ms},
            recoverable=True,
        )


@dataclass(frozen=True)
class LockLease:
    """A held tournament lock. ``ttl_ms`` is 0 for in-process locks."""

    tournament_id: str
    key: str
    token: str
    ttl_ms: int = 0
    acquired_at: float = field(default_factory=time.monotonic)

    @property
    def held_ms(self) -> int:
        return int((time.monotonic() - self.acquired_at) * 1000)


class LocalLockManager:
    """In-process lock manager.

    A tournament's lock lives only while someone holds or waits for it.
    """

    def __init__(self, default_acquire_timeout_ms: int = 5000):
        self.default_acquire_timeout_ms = default_acquire_timeout_ms
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    async def is_locked(self, tournament_id: str) -> bool:
        return tournament_id in self._locks and self._locks[tournament_id].locked()

    def _checkout(self, tournament_id: str) -> asyncio.Lock:
        if tournament_id not in self._locks:
            self._locks[tournament_id] = asyncio.Lock()
        self._users[tournament_id] = self._users.get(tournament_id, 0) + 1
        return self._locks[tournament_id]

    def _checkin(self, tournament_id: str) -> None:
        self._users[tournament_id] -= 1
        if self._users[tournament_id] == 0:
            del self._users[tournament_id]
            del self._locks[tournament_id]

    @asynccontextmanager
    async def lock(
        self,
        tournament_id: str,
        acquire_timeout_ms: Optional[int] = None,
    ) -> AsyncIterator[LockLease]:
        timeout_ms = acquire_timeout_ms or self.default_acquire_timeout_ms
        lock = self._checkout(tournament_id)

        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout_ms / 1000)
            except asyncio.TimeoutError:
                raise LockAcquisitionError(tournament_id, timeout_ms) from None

            try:
                yield LockLease(tournament_id, make_lock_key(tournament_id), token="local")
            finally:
                lock.release()
        finally:
            self._checkin(tournament_id)


class DistributedLockManager:
    """
    Redis lock manager.

    Redis 명령어:
    - SET key token NX PX ttl: 획득 (없을 때만, 만료 포함), 실패 시 재시도
    - Lua GET + DEL: 토큰이 일치할 때만 해제
    - Lua GET + PEXPIRE: 토큰이 일치할 때만 갱신

    The TTL bounds how long a crashed process can block a tournament.
    """

    _COMPARE_AND_DELETE = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    end
    return 0
    """

    _COMPARE_AND_EXTEND = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("pexpire", KEYS[1], ARGV[2])
    end
    return 0
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        default_lock_timeout_ms: int = 10000,
        default_acquire_timeout_ms: int = 5000,
        retry_interval_ms: int = 50,
    ):
        self.redis = redis_client
        self.default_lock_timeout_ms = default_lock_timeout_ms
        self.default_acquire_timeout_ms = default_acquire_timeout_ms
        self.retry_interval_ms = retry_interval_ms

        # register_script does not contact the server
        self._delete_if_owner = redis_client.register_script(self._COMPARE_AND_DELETE)
        self._extend_if_owner = redis_client.register_script(self._COMPARE_AND_EXTEND)

        # token -> lease, for shutdown cleanup
        self._leases: Dict[str, LockLease] = {}

    async def acquire(
        self,
        tournament_id: str,
        lock_timeout_ms: Optional[int] = None,
        acquire_timeout_ms: Optional[int] = None,
    ) -> LockLease:
        """Take the tournament lock, polling until ``acquire_timeout_ms``.

        Raises:
            LockAcquisitionError: still held by someone else at the deadline
        """
        ttl_ms = lock_timeout_ms or self.default_lock_timeout_ms
        timeout_ms = acquire_timeout_ms or self.default_acquire_timeout_ms
        key = make_lock_key(tournament_id)
        token = secrets.token_hex(16)
        deadline = time.monotonic() + timeout_ms / 1000

        while not await self.redis.set(key, token, nx=True, px=ttl_ms):
            if time.monotonic() >= deadline:
                logger.warning(
                    "lock_acquire_timeout",
                    tournament_id=tournament_id,
                    waited_ms=timeout_ms,
                )
                raise LockAcquisitionError(tournament_id, timeout_ms)
            await asyncio.sleep(self.retry_interval_ms / 1000)

        lease = LockLease(tournament_id, key, token, ttl_ms)
        self._leases[token] = lease
        return lease

    async def release(self, lease: LockLease) -> bool:
        """Release if the lease still owns the key. False when it had expired."""
        self._leases.pop(lease.token, None)
        released = await self._delete_if_owner(keys=[lease.key], args=[lease.token]) == 1
        if not released:
            logger.warning(
                "lock_lost_before_release",
                tournament_id=lease.tournament_id,
                held_ms=lease.held_ms,
            )
        return released

    async def renew(self, lease: LockLease, ttl_ms: Optional[int] = None) -> bool:
        ttl = ttl_ms or lease.ttl_ms or self.default_lock_timeout_ms
        return await self._extend_if_owner(keys=[lease.key], args=[lease.token, ttl]) == 1

    async def is_locked(self, tournament_id: str) -> bool:
        return await self.redis.exists(make_lock_key(tournament_id)) == 1

    @asynccontextmanager
    async def lock(
        self,
        tournament_id: str,
        lock_timeout_ms: Optional[int] = None,
        acquire_timeout_ms: Optional[int] = None,
    ) -> AsyncIterator[LockLease]:
        lease = await self.acquire(tournament_id, lock_timeout_ms, acquire_timeout_ms)
        try:
            yield lease
        finally:
            await self.release(lease)

    async def cleanup_all(self) -> int:
        """Release every lease this instance still holds (shutdown)."""
        released = 0
        for lease in list(self._leases.values()):
            try:
                if await self.release(lease):
                    released += 1
            except redis.RedisError as e:
                # TTL이 결국 해제함
                logger.warning(
                    "lock_cleanup_failed",
                    tournament_id=lease.tournament_id,
                    error=str(e),
                )
        return released
