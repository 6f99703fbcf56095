"""Redis Streams event bus.

Change events are appended to a single stream; every listener process
joins the same consumer group so each event is handled by one consumer.

Delivery contract:
- A message is acknowledged (XACK) only after all handlers succeed
- At most ``prefetch`` messages are in flight per consumer
- Messages left unacknowledged longer than ``claim_idle_ms`` are claimed
  and redelivered, including those of consumers that died
- A message delivered ``max_deliveries`` times is copied to the dead
  letter stream and acknowledged
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING
from uuid import uuid4

import orjson

from reelindex.cache.redis import get_redis
from reelindex.events.bus import DEFAULT_MAX_DELIVERIES, EventBus, EventHandler, dispatch
from reelindex.events.schemas import ChangeEvent

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

STREAM_NAME = "reelindex:changes"
CONSUMER_GROUP = "reelindex-indexers"
DEAD_LETTER_SUFFIX = ":dead"

DEFAULT_PREFETCH = 10
BLOCK_MS = 1000
CLAIM_IDLE_MS = 30000
STREAM_MAXLEN = 100000


def _generate_consumer_id() -> str:
    """Generate a unique consumer ID for this process."""
    hostname = os.environ.get("HOSTNAME", os.environ.get("POD_NAME", "unknown"))
    return f"{hostname}-{uuid4().hex[:8]}"


def _decode(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisStreamEventBus(EventBus):
    """Redis Streams-based event bus with consumer groups.

    Example:
        bus = RedisStreamEventBus(prefetch=10)
        await bus.subscribe(listener.handle)
        await bus.start()

        await bus.publish(ChangeEvent(ChangeKind.CREATED, entity_id=str(item.id)))

        await bus.stop()
    """

    def __init__(
        self,
        stream_name: str = STREAM_NAME,
        consumer_group: str = CONSUMER_GROUP,
        consumer_id: str | None = None,
        prefetch: int = DEFAULT_PREFETCH,
        claim_idle_ms: int = CLAIM_IDLE_MS,
        max_deliveries: int = DEFAULT_MAX_DELIVERIES,
        redis: Redis | None = None,
    ):
        self.stream_name = stream_name
        self.consumer_group = consumer_group
        self.consumer_id = consumer_id or _generate_consumer_id()
        self.prefetch = max(1, prefetch)
        self.claim_idle_ms = claim_idle_ms
        self.max_deliveries = max_deliveries
        self.dead_letter_stream = f"{stream_name}{DEAD_LETTER_SUFFIX}"
        self._handlers: list[EventHandler] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._redis = redis

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def _ensure_stream_and_group(self) -> None:
        """Ensure the stream and consumer group exist."""
        redis = await self._get_redis()

        try:
            await redis.xgroup_create(
                self.stream_name,
                self.consumer_group,
                id="0",
                mkstream=True,
            )
            logger.info(
                f"Created consumer group {self.consumer_group} on stream {self.stream_name}"
            )
        except Exception as e:
            if "BUSYGROUP" not in str(e):
                raise
            logger.debug(f"Consumer group {self.consumer_group} already exists")

    async def publish(self, event: ChangeEvent) -> None:
        """Append an event to the stream."""
        redis = await self._get_redis()
        message_id = await redis.xadd(
            self.stream_name,
            {"topic": event.topic, "data": self._serialize_event(event)},
            maxlen=STREAM_MAXLEN,
            approximate=True,
        )
        logger.debug(f"Published {event.topic} {event.event_id} as {message_id!r}")

    async def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)
        handler_name = getattr(handler, "__name__", handler.__class__.__name__)
        logger.info(f"Registered event handler: {handler_name}")

    async def start(self) -> None:
        if self._running:
            return

        await self._ensure_stream_and_group()

        self._running = True
        self._task = asyncio.create_task(self._consume_loop())
        logger.info(
            f"Started consumer {self.consumer_id} in group {self.consumer_group} "
            f"(prefetch={self.prefetch})"
        )

    async def stop(self) -> None:
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(f"Stopped consumer {self.consumer_id}")

    async def _consume_loop(self) -> None:
        while self._running:
            try:
                await self.consume_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in consume loop: {e}")
                await asyncio.sleep(1)

    async def consume_once(self, block_ms: int | None = BLOCK_MS) -> int:
        """Reclaim stale messages, then read and process one batch.

        Returns:
            Number of messages acknowledged
        """
        redis = await self._get_redis()
        acked = await self._claim_pending_messages(redis)

        messages = await redis.xreadgroup(
            groupname=self.consumer_group,
            consumername=self.consumer_id,
            streams={self.stream_name: ">"},
            count=self.prefetch,
            block=block_ms,
        )
        if not messages:
            return acked

        batch = [
            (message_id, message_data)
            for _stream_name, stream_messages in messages
            for message_id, message_data in stream_messages
        ]
        return acked + await self._process_batch(redis, batch)

    async def _process_batch(
        self, redis: Redis, batch: list[tuple[bytes | str, dict[bytes, bytes]]]
    ) -> int:
        results = await asyncio.gather(
            *(self._process_message(redis, message_id, data) for message_id, data in batch)
        )
        return sum(1 for acked in results if acked)

    async def _claim_pending_messages(self, redis: Redis) -> int:
        """Claim and redeliver messages that stayed unacknowledged too long.

        This handles consumers that died, and handler failures, which leave
        their message pending.
        """
        try:
            pending = await redis.xpending_range(
                self.stream_name,
                self.consumer_group,
                min="-",
                max="+",
                count=self.prefetch,
                idle=self.claim_idle_ms,
            )
        except Exception as e:
            logger.warning(f"Error reading pending messages: {e}")
            return 0

        to_claim: list[bytes | str] = []
        for entry in pending:
            message_id = entry["message_id"]
            if entry.get("times_delivered", 0) >= self.max_deliveries:
                await self._move_to_dead_letter(redis, message_id)
            else:
                to_claim.append(message_id)

        if not to_claim:
            return 0

        claimed = await redis.xclaim(
            self.stream_name,
            self.consumer_group,
            self.consumer_id,
            min_idle_time=self.claim_idle_ms,
            message_ids=to_claim,
        )
        batch = [(message_id, data) for message_id, data in claimed if data]
        return await self._process_batch(redis, batch)

    async def _process_message(
        self, redis: Redis, message_id: bytes | str, message_data: dict[bytes, bytes]
    ) -> bool:
        """Process one message; returns True when it was acknowledged."""
        data_bytes = message_data.get(b"data")
        if not data_bytes:
            logger.warning(f"Message {message_id!r} has no data field")
            await redis.xack(self.stream_name, self.consumer_group, message_id)
            return True

        try:
            event = self._deserialize_event(data_bytes)
        except (orjson.JSONDecodeError, KeyError, ValueError) as e:
            logger.error(f"Undecodable message {message_id!r}: {e}")
            await self._move_to_dead_letter(redis, message_id)
            return True

        try:
            await dispatch(self._handlers, event)
        except Exception as e:
            # Not acknowledged; the message is reclaimed after claim_idle_ms
            logger.error(f"Failed to process message {message_id!r}: {e}")
            return False

        await redis.xack(self.stream_name, self.consumer_group, message_id)
        logger.debug(f"Processed and ACKed message {message_id!r}")
        return True

    async def _move_to_dead_letter(self, redis: Redis, message_id: bytes | str) -> None:
        """Copy a message to the dead letter stream and acknowledge it."""
        try:
            messages = await redis.xrange(self.stream_name, message_id, message_id)
            if messages:
                _, message_data = messages[0]
                await redis.xadd(
                    self.dead_letter_stream,
                    {
                        "original_id": _decode(message_id),
                        "original_stream": self.stream_name,
                        **message_data,
                    },
                )
                logger.warning(f"Moved message {message_id!r} to dead letter stream")

            await redis.xack(self.stream_name, self.consumer_group, message_id)
        except Exception as e:
            logger.error(f"Failed to move message to dead letter: {e}")

    def _serialize_event(self, event: ChangeEvent) -> bytes:
        return orjson.dumps(event.to_dict())

    def _deserialize_event(self, data: bytes) -> ChangeEvent:
        return ChangeEvent.from_dict(orjson.loads(data))

    async def health_check(self) -> bool:
        try:
            redis = await self._get_redis()
            info = await redis.xinfo_stream(self.stream_name)
            return info is not None
        except Exception:
            return False
