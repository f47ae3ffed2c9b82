"""In-memory message channel adapter."""
import asyncio
from collections import defaultdict
import structlog
from .base import ChannelAdapter, ChannelMessage
from ..errors import ChannelError, PublishError

log = structlog.get_logger()


class InMemoryBroker:
    """
    Process-local broker shared by in-memory channels.

    Topics are unbounded append-only logs; each consumer group keeps its
    own read position, so a group that subscribes late still sees every
    message published before it joined.
    """

    def __init__(self):
        self._topics: dict[str, list[bytes]] = defaultdict(list)
        self._positions: dict[tuple[str, str], int] = {}
        self._condition = asyncio.Condition()

    async def append(self, topic: str, value: bytes) -> str:
        async with self._condition:
            self._topics[topic].append(value)
            offset = len(self._topics[topic]) - 1
            self._condition.notify_all()
        return str(offset)

    def join(self, topic: str, group: str, from_beginning: bool):
        key = (topic, group)
        if key not in self._positions:
            self._positions[key] = 0 if from_beginning else len(self._topics[topic])

    async def take(self, topic: str, group: str, max_messages: int, block_ms: int) -> list[ChannelMessage]:
        key = (topic, group)
        async with self._condition:
            if not self._has_pending(key):
                try:
                    await asyncio.wait_for(
                        self._condition.wait_for(lambda: self._has_pending(key)),
                        timeout=block_ms / 1000,
                    )
                except asyncio.TimeoutError:
                    return []

            start = self._positions[key]
            values = self._topics[topic][start:start + max_messages]
            self._positions[key] = start + len(values)

        return [
            ChannelMessage(id=str(start + i), topic=topic, value=value)
            for i, value in enumerate(values)
        ]

    def size(self, topic: str) -> int:
        return len(self._topics[topic])

    def _has_pending(self, key: tuple[str, str]) -> bool:
        topic, _ = key
        return self._positions[key] < len(self._topics[topic])


class InMemoryChannel(ChannelAdapter):
    """In-memory implementation of the channel adapter."""

    def __init__(self, broker: InMemoryBroker | None = None):
        self.broker = broker or InMemoryBroker()
        self._connected = False
        self._subscription: tuple[str, str] | None = None

    async def connect(self) -> None:
        self._connected = True
        log.info("channel.connected", adapter="memory")

    async def publish(self, topic: str, value: bytes) -> str:
        if not self._connected:
            raise PublishError("in-memory channel is not connected")
        message_id = await self.broker.append(topic, value)
        log.debug("channel.message_appended", topic=topic, message_id=message_id, adapter="memory")
        return message_id

    async def subscribe(self, topic: str, group: str, from_beginning: bool = True) -> None:
        if not self._connected:
            raise ChannelError("in-memory channel is not connected")
        self.broker.join(topic, group, from_beginning)
        self._subscription = (topic, group)
        log.info("channel.subscribed", topic=topic, group=group, adapter="memory")

    async def fetch(self, max_messages: int = 10, block_ms: int = 1000) -> list[ChannelMessage]:
        if self._subscription is None:
            raise ChannelError("in-memory channel has no subscription")
        topic, group = self._subscription
        return await self.broker.take(topic, group, max_messages, block_ms)

    async def ack(self, message: ChannelMessage) -> None:
        # Read positions advance on delivery; nothing to acknowledge.
        pass

    async def health_check(self) -> bool:
        """In-memory channel is healthy while connected."""
        return self._connected

    async def close(self) -> None:
        self._connected = False
        self._subscription = None
