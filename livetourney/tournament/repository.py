"""
Tournament Repository - persistence of Tournament aggregates.

The runtime loads a whole aggregate, mutates it under the tournament lock and
saves it back. Two adapters:
- InMemoryTournamentRepository: deep copies, for tests and single-process use
- RedisTournamentRepository: JSON documents with an HMAC checksum and TTL

Redis Key 구조:
- tournament:state:{id}              # 토너먼트 문서 (JSON + checksum)
- tournament:index                   # 토너먼트 ID 집합
- tournament:registration:{reg_id}   # 등록 → 토너먼트 ID
- tournament:table:{table_id}        # 테이블 → 토너먼트 ID
"""

import copy
import hashlib
import hmac
import json
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

import redis.asyncio as redis

from livetourney.config import DEFAULT_STATE_HMAC_KEY
from livetourney.logging_config import get_logger
from livetourney.utils.errors import ErrorCode, TournamentError

from .models import Tournament

logger = get_logger(__name__)


class CorruptedStateError(TournamentError):
    """Raised when a stored tournament document fails its checksum."""

    def __init__(self, tournament_id: str):
        super().__init__(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Stored state of tournament {tournament_id} is corrupted",
            details={"tournamentId": tournament_id},
            recoverable=False,
        )


class TournamentRepository(ABC):
    """Storage port for Tournament aggregates."""

    @abstractmethod
    async def get(self, tournament_id: str) -> Optional[Tournament]:
        ...

    @abstractmethod
    async def save(self, tournament: Tournament) -> None:
        ...

    @abstractmethod
    async def delete(self, tournament_id: str) -> bool:
        ...

    @abstractmethod
    async def list_ids(self) -> List[str]:
        ...

    @abstractmethod
    async def tournament_id_for_registration(self, registration_id: str) -> Optional[str]:
        ...

    @abstractmethod
    async def tournament_id_for_table(self, table_id: str) -> Optional[str]:
        ...


class InMemoryTournamentRepository(TournamentRepository):
    """Dict-backed repository. Aggregates are copied in and out."""

    def __init__(self):
        self._tournaments: Dict[str, Tournament] = {}

    async def get(self, tournament_id: str) -> Optional[Tournament]:
        tournament = self._tournaments.get(tournament_id)
        return copy.deepcopy(tournament) if tournament else None

    async def save(self, tournament: Tournament) -> None:
        self._tournaments[tournament.tournament_id] = copy.deepcopy(tournament)

    async def delete(self, tournament_id: str) -> bool:
        return self._tournaments.pop(tournament_id, None) is not None

    async def list_ids(self) -> List[str]:
        return list(self._tournaments)

    async def tournament_id_for_registration(self, registration_id: str) -> Optional[str]:
        for tournament_id, tournament in self._tournaments.items():
            if registration_id in tournament.registrations:
                return tournament_id
        return None

    async def tournament_id_for_table(self, table_id: str) -> Optional[str]:
        for tournament_id, tournament in self._tournaments.items():
            if table_id in tournament.tables:
                return tournament_id
        return None


class RedisTournamentRepository(TournamentRepository):
    """
    Redis-backed repository.

    문서 형식: {"checksum": hmac-sha256(payload), "payload": "<tournament json>"}
    로드 시 checksum 불일치면 CorruptedStateError.

    ``hmac_key`` comes from ``Settings.state_hmac_key``; documents signed with
    another key are rejected as corrupted. The index set has no TTL, so
    ``list_ids`` drops members whose state document has expired.
    """

    KEY_PREFIX = "tournament"

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl_seconds: int = 86400 * 7,
        hmac_key: bytes = DEFAULT_STATE_HMAC_KEY.encode(),
    ):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self._hmac_key = hmac_key

    def _state_key(self, tournament_id: str) -> str:
        return f"{self.KEY_PREFIX}:state:{tournament_id}"

    def _index_key(self) -> str:
        return f"{self.KEY_PREFIX}:index"

    def _registration_key(self, registration_id: str) -> str:
        return f"{self.KEY_PREFIX}:registration:{registration_id}"

    def _table_key(self, table_id: str) -> str:
        return f"{self.KEY_PREFIX}:table:{table_id}"

    def _compute_checksum(self, payload: bytes) -> str:
        return hmac.new(self._hmac_key, payload, hashlib.sha256).hexdigest()

    @staticmethod
    def _decode(value: Union[bytes, str]) -> str:
        return value.decode() if isinstance(value, bytes) else value

    async def get(self, tournament_id: str) -> Optional[Tournament]:
        raw = await self.redis.get(self._state_key(tournament_id))
        if not raw:
            return None

        document = json.loads(raw)
        payload = document["payload"]
        if not hmac.compare_digest(
            self._compute_checksum(payload.encode()), document.get("checksum", "")
        ):
            logger.error("state_checksum_mismatch", tournament_id=tournament_id)
            raise CorruptedStateError(tournament_id)

        return Tournament.from_dict(json.loads(payload))

    async def save(self, tournament: Tournament) -> None:
        payload = json.dumps(tournament.to_dict())
        document = json.dumps({
            "checksum": self._compute_checksum(payload.encode()),
            "payload": payload,
        })

        tid = tournament.tournament_id
        await self.redis.set(self._state_key(tid), document, ex=self.ttl_seconds)
        await self.redis.sadd(self._index_key(), tid)

        for registration_id in tournament.registrations:
            await self.redis.set(
                self._registration_key(registration_id), tid, ex=self.ttl_seconds
            )
        for table_id in tournament.tables:
            await self.redis.set(self._table_key(table_id), tid, ex=self.ttl_seconds)

    async def delete(self, tournament_id: str) -> bool:
        tournament = await self.get(tournament_id)
        if tournament is None:
            return False

        keys = [self._state_key(tournament_id)]
        keys.extend(self._registration_key(r) for r in tournament.registrations)
        keys.extend(self._table_key(t) for t in tournament.tables)
        await self.redis.delete(*keys)
        await self.redis.srem(self._index_key(), tournament_id)
        return True

    async def list_ids(self) -> List[str]:
        members = await self.redis.smembers(self._index_key())

        live: List[str] = []
        expired: List[str] = []
        for member in members:
            tournament_id = self._decode(member)
            if await self.redis.exists(self._state_key(tournament_id)):
                live.append(tournament_id)
            else:
                expired.append(tournament_id)

        if expired:
            await self.redis.srem(self._index_key(), *expired)
            logger.info("expired_tournaments_pruned", tournament_ids=sorted(expired))

        return sorted(live)

    async def _owner(self, key: str) -> Optional[str]:
        value = await self.redis.get(key)
        return self._decode(value) if value else None

    async def tournament_id_for_registration(self, registration_id: str) -> Optional[str]:
        tournament_id = await self._owner(self._registration_key(registration_id))
        if tournament_id is None:
            return None
        # 삭제된 등록의 인덱스는 남아 있을 수 있으므로 문서로 확인
        tournament = await self.get(tournament_id)
        if tournament is None or registration_id not in tournament.registrations:
            return None
        return tournament_id

    async def tournament_id_for_table(self, table_id: str) -> Optional[str]:
        tournament_id = await self._owner(self._table_key(table_id))
        if tournament_id is None:
            return None
        tournament = await self.get(tournament_id)
        if tournament is None or table_id not in tournament.tables:
            return None
        return tournament_id
