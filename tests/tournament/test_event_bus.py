"""Event Bus Tests - local dispatch and Redis Stream mirroring."""

import json

import pytest
import redis.asyncio as redis

from livetourney.tournament.event_bus import TournamentEventBus
from livetourney.tournament.models import TournamentEvent, TournamentEventType


def make_event(event_type=TournamentEventType.LEVEL_CHANGED, tournament_id="t1"):
    return TournamentEvent(
        event_type=event_type,
        tournament_id=tournament_id,
        data={"current_level_index": 1},
    )


class TestLocalDispatch:
    @pytest.mark.asyncio
    async def test_subscriber_receives_matching_events(self, event_bus):
        received = []

        async def handler(event):
            received.append(event.event_type)

        event_bus.subscribe([TournamentEventType.LEVEL_CHANGED], handler)

        await event_bus.publish(make_event())
        await event_bus.publish(make_event(TournamentEventType.TOURNAMENT_PAUSED))

        assert received == [TournamentEventType.LEVEL_CHANGED]

    @pytest.mark.asyncio
    async def test_tournament_filter(self, event_bus):
        received = []

        async def handler(event):
            received.append(event.tournament_id)

        event_bus.subscribe_all(handler, tournament_id="t1")

        await event_bus.publish_batch([make_event(tournament_id="t1"), make_event(tournament_id="t2")])

        assert received == ["t1"]

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self, event_bus):
        received = []

        async def broken(event):
            raise ValueError("handler bug")

        async def healthy(event):
            received.append(event.event_id)

        event_bus.subscribe_all(broken)
        event_bus.subscribe_all(healthy)

        await event_bus.publish(make_event())

        metrics = event_bus.get_metrics()
        assert len(received) == 1
        assert metrics.handler_failures == 1
        assert metrics.delivered == 1
        assert metrics.published == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus):
        received = []

        async def handler(event):
            received.append(event)

        subscription_id = event_bus.subscribe_all(handler)
        assert event_bus.unsubscribe(subscription_id) is True
        assert event_bus.unsubscribe(subscription_id) is False

        await event_bus.publish(make_event())
        assert received == []


class TestStreamMirroring:
    @pytest.mark.asyncio
    async def test_events_written_to_stream(self, mock_redis):
        bus = TournamentEventBus(mock_redis)
        event = make_event()

        await bus.publish(event)

        entries = mock_redis.stream(TournamentEventBus.STREAM_KEY)
        assert len(entries) == 1
        _, fields = entries[0]
        assert fields["event_type"] == "LEVEL_CHANGED"
        assert fields["event_id"] == event.event_id
        assert json.loads(fields["data"]) == {"current_level_index": 1}

    @pytest.mark.asyncio
    async def test_stream_failure_does_not_raise(self, mock_redis):
        async def failing_xadd(*args, **kwargs):
            raise redis.ConnectionError("redis down")

        mock_redis.xadd = failing_xadd
        bus = TournamentEventBus(mock_redis)

        await bus.publish(make_event())

        assert bus.get_metrics().stream_failures == 1
        assert bus.get_metrics().published == 1
