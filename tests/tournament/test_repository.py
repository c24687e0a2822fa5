"""Tournament Repository Tests - in-memory and Redis adapters."""

import json

import pytest

from conftest import build_tournament
from livetourney.tournament.models import RegistrationStatus
from livetourney.tournament.repository import (
    CorruptedStateError,
    InMemoryTournamentRepository,
    RedisTournamentRepository,
)


@pytest.fixture
def redis_repository(mock_redis):
    return RedisTournamentRepository(mock_redis, ttl_seconds=3600)


class TestInMemoryRepository:
    @pytest.mark.asyncio
    async def test_returns_copies(self):
        repository = InMemoryTournamentRepository()
        tournament = build_tournament([3])
        await repository.save(tournament)

        loaded = await repository.get(tournament.tournament_id)
        loaded.active_registrations[0].status = RegistrationStatus.ELIMINATED

        again = await repository.get(tournament.tournament_id)
        assert again.active_player_count == 3

    @pytest.mark.asyncio
    async def test_owner_lookups(self):
        repository = InMemoryTournamentRepository()
        tournament = build_tournament([1])
        await repository.save(tournament)
        table = tournament.sorted_tables()[0]
        registration = tournament.active_registrations[0]

        tid = tournament.tournament_id
        assert await repository.tournament_id_for_table(table.table_id) == tid
        assert await repository.tournament_id_for_registration(registration.registration_id) == tid
        assert await repository.tournament_id_for_table("other") is None


class TestRedisRepository:
    @pytest.mark.asyncio
    async def test_round_trip(self, redis_repository):
        tournament = build_tournament([4, 3])
        await redis_repository.save(tournament)

        loaded = await redis_repository.get(tournament.tournament_id)

        assert loaded.to_dict() == tournament.to_dict()
        assert await redis_repository.list_ids() == [tournament.tournament_id]

    @pytest.mark.asyncio
    async def test_missing_returns_none(self, redis_repository):
        assert await redis_repository.get("missing") is None

    @pytest.mark.asyncio
    async def test_ttl_applied(self, redis_repository, mock_redis):
        tournament = build_tournament([1])
        await redis_repository.save(tournament)

        assert mock_redis.ttls[f"tournament:state:{tournament.tournament_id}"] == 3600

    @pytest.mark.asyncio
    async def test_tampered_document_rejected(self, redis_repository, mock_redis):
        tournament = build_tournament([2])
        await redis_repository.save(tournament)

        key = f"tournament:state:{tournament.tournament_id}"
        document = json.loads(mock_redis._data[key])
        payload = json.loads(document["payload"])
        payload["name"] = "Hijacked"
        document["payload"] = json.dumps(payload)
        mock_redis._data[key] = json.dumps(document)

        with pytest.raises(CorruptedStateError) as exc_info:
            await redis_repository.get(tournament.tournament_id)
        assert exc_info.value.recoverable is False

    @pytest.mark.asyncio
    async def test_document_signed_with_other_key_rejected(self, redis_repository, mock_redis):
        tournament = build_tournament([2])
        await redis_repository.save(tournament)

        other = RedisTournamentRepository(mock_redis, hmac_key=b"another-deployment")

        with pytest.raises(CorruptedStateError):
            await other.get(tournament.tournament_id)

    @pytest.mark.asyncio
    async def test_list_ids_prunes_expired_documents(self, redis_repository, mock_redis):
        kept = build_tournament([2])
        expired = build_tournament([3])
        await redis_repository.save(kept)
        await redis_repository.save(expired)

        # TTL 만료: 문서만 사라지고 인덱스 멤버는 남는다
        await mock_redis.delete(f"tournament:state:{expired.tournament_id}")

        assert await redis_repository.list_ids() == [kept.tournament_id]
        assert await mock_redis.smembers("tournament:index") == {kept.tournament_id}

    @pytest.mark.asyncio
    async def test_owner_lookups_follow_document(self, redis_repository):
        tournament = build_tournament([2])
        await redis_repository.save(tournament)
        registration = tournament.active_registrations[0]
        table = tournament.sorted_tables()[0]
        tid = tournament.tournament_id

        assert await redis_repository.tournament_id_for_registration(registration.registration_id) == tid
        assert await redis_repository.tournament_id_for_table(table.table_id) == tid

        # 제거된 등록은 인덱스 키가 남아 있어도 찾지 못함
        del tournament.registrations[registration.registration_id]
        await redis_repository.save(tournament)
        assert await redis_repository.tournament_id_for_registration(registration.registration_id) is None

    @pytest.mark.asyncio
    async def test_delete(self, redis_repository):
        tournament = build_tournament([2])
        await redis_repository.save(tournament)

        assert await redis_repository.delete(tournament.tournament_id) is True
        assert await redis_repository.get(tournament.tournament_id) is None
        assert await redis_repository.list_ids() == []
        assert await redis_repository.delete(tournament.tournament_id) is False
