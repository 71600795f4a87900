"""Redis Pub/Sub publisher for committed status transitions.

Publishing happens after the DB commit and is best effort: a Redis outage
is logged and never rolls back or fails a payment.
"""

import json
import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.rb_obligation.domain.models import StatusTransition

logger = logging.getLogger(__name__)

TRANSITIONS_CHANNEL = "billing:transitions"


def transition_to_payload(transition: StatusTransition) -> str:
    return json.dumps(
        {
            "obligation_id": transition.obligation_id,
            "kind": transition.kind.value,
            "resource_id": transition.resource_id,
            "from_status": transition.from_status,
            "to_status": transition.to_status,
            "due_at": transition.due_at.isoformat(),
            "occurred_at": transition.occurred_at.isoformat(),
            "reason": transition.reason,
        }
    )


class RedisTransitionPublisher:
    def __init__(
        self,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]],
        channel: str = TRANSITIONS_CHANNEL,
    ) -> None:
        self._redis_factory = redis_factory
        self._channel = channel

    async def publish(self, transition: StatusTransition) -> None:
        try:
            redis = await self._redis_factory()
            await redis.publish(self._channel, transition_to_payload(transition))
        except RedisError as exc:
            logger.warning(
                "Transition not published: %s/%s %s → %s (%s)",
                transition.kind.value,
                transition.resource_id,
                transition.from_status,
                transition.to_status,
                exc,
            )
