"""
Tournament Event Bus.

모든 상태 변경은 이벤트로 발행되어 관리 화면, 디스플레이, 감사 로그가 구독한다.

설계 원칙:
1. Fan-Out: 하나의 이벤트를 여러 핸들러가 독립적으로 처리
2. 핸들러 실패는 발행자에게 전파되지 않음 (로그 + 카운트)
3. Redis가 설정된 경우 Stream에도 기록 (XADD MAXLEN ~)

The runtime publishes only after the tournament lock is released, so a handler
may call back into the runtime.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional
from uuid import uuid4

import redis.asyncio as redis

from livetourney.logging_config import get_logger

from .models import TournamentEvent, TournamentEventType

logger = get_logger(__name__)

EventHandler = Callable[[TournamentEvent], Awaitable[None]]

ALL_EVENT_TYPES: FrozenSet[TournamentEventType] = frozenset(TournamentEventType)


@dataclass(frozen=True)
class Subscription:
    handler: EventHandler
    event_types: FrozenSet[TournamentEventType] = ALL_EVENT_TYPES
    tournament_id: Optional[str] = None  # None = every tournament
    subscription_id: str = field(default_factory=lambda: str(uuid4()))

    def matches(self, event: TournamentEvent) -> bool:
        if event.event_type not in self.event_types:
            return False
        return self.tournament_id is None or self.tournament_id == event.tournament_id


@dataclass
class EventMetrics:
    published: int = 0
    delivered: int = 0
    handler_failures: int = 0
    stream_failures: int = 0


def stream_fields(event: TournamentEvent) -> Dict[str, str]:
    """Flatten an event into Redis Stream field values (strings only)."""
    fields: Dict[str, str] = {}
    for name, value in event.to_dict().items():
        if isinstance(value, dict):
            fields[name] = json.dumps(value)
        else:
            fields[name] = "" if value is None else str(value)
    return fields


class TournamentEventBus:
    """
    In-process fan-out with optional Redis Stream mirroring.

        publish(event)
          ├─ matching subscriptions, run concurrently
          └─ XADD tournament:events:all (when a Redis client is given)
    """

    STREAM_KEY = "tournament:events:all"
    STREAM_MAX_LEN = 10000

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client
        self._subscriptions: Dict[str, Subscription] = {}
        self._metrics = EventMetrics()

    def subscribe(
        self,
        event_types: Iterable[TournamentEventType],
        handler: EventHandler,
        tournament_id: Optional[str] = None,
    ) -> str:
        """Register ``handler`` for the given event types.

        Returns the subscription id used by :meth:`unsubscribe`.
        """
        subscription = Subscription(
            handler=handler,
            event_types=frozenset(event_types),
            tournament_id=tournament_id,
        )
        self._subscriptions[subscription.subscription_id] = subscription
        return subscription.subscription_id

    def subscribe_all(
        self, handler: EventHandler, tournament_id: Optional[str] = None
    ) -> str:
        return self.subscribe(ALL_EVENT_TYPES, handler, tournament_id)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._subscriptions.pop(subscription_id, None) is not None

    async def publish(self, event: TournamentEvent) -> None:
        targets = [s for s in self._subscriptions.values() if s.matches(event)]
        if targets:
            await asyncio.gather(
                *(self._deliver(s, event) for s in targets),
                return_exceptions=True,
            )

        if self.redis is not None:
            await self._append_to_stream(event)

        self._metrics.published += 1

    async def publish_batch(self, events: List[TournamentEvent]) -> None:
        """Publish in order; each event is fully delivered before the next."""
        for event in events:
            await self.publish(event)

    async def _deliver(self, subscription: Subscription, event: TournamentEvent) -> None:
        try:
            await subscription.handler(event)
        except Exception as e:
            self._metrics.handler_failures += 1
            logger.error(
                "event_handler_failed",
                event_type=event.event_type.name,
                tournament_id=event.tournament_id,
                subscription_id=subscription.subscription_id,
                error=str(e),
            )
        else:
            self._metrics.delivered += 1

    async def _append_to_stream(self, event: TournamentEvent) -> Optional[Any]:
        try:
            return await self.redis.xadd(
                self.STREAM_KEY,
                stream_fields(event),
                maxlen=self.STREAM_MAX_LEN,
                approximate=True,
            )
        except redis.RedisError as e:
            # 상태는 이미 저장됨 - 스트림 기록 실패는 로그만
            self._metrics.stream_failures += 1
            logger.warning(
                "event_stream_write_failed",
                event_type=event.event_type.name,
                tournament_id=event.tournament_id,
                error=str(e),
            )
            return None

    def get_metrics(self) -> EventMetrics:
        return self._metrics
