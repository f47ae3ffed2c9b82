"""Redis Streams message channel adapter."""
import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError, ResponseError
from .base import ChannelAdapter, ChannelMessage
from ..errors import BrokerConnectionError, ChannelError, PublishError

log = structlog.get_logger()


class RedisStreamChannel(ChannelAdapter):
    """Redis Streams implementation of the channel adapter.

    Each topic is a stream key. Consumers join a consumer group, read with
    XREADGROUP and acknowledge with XACK; entries this consumer left
    unacknowledged in a previous run are read again before new ones.
    """

    def __init__(self, redis_url: str, consumer_name: str = "activity-relay", maxlen: int = 10000):
        """
        Initialize Redis stream channel.

        Args:
            redis_url: Redis connection URL
            consumer_name: Name of this consumer inside its group
            maxlen: Approximate number of entries retained per stream
        """
        self.redis_url = redis_url
        self.consumer_name = consumer_name
        self.maxlen = maxlen
        self._client: Redis | None = None
        self._topic: str | None = None
        self._group: str | None = None
        # Last pending id replayed; None once the backlog is drained
        self._replay_cursor: str | None = None

    def _get_client(self) -> Redis:
        if self._client is None:
            raise ChannelError("redis channel is not connected")
        return self._client

    async def connect(self) -> None:
        """
        Connect and verify the broker answers PING.

        Raises:
            BrokerConnectionError: If Redis is unreachable
        """
        self._client = Redis.from_url(
            self.redis_url,
            decode_responses=False,  # Message bodies stay as raw bytes
            socket_connect_timeout=5,
            client_name=self.consumer_name,
        )
        try:
            await self._client.ping()
        except RedisError as e:
            log.error("redis.connect_failed", url=self.redis_url, error=str(e))
            await self.close()
            raise BrokerConnectionError(f"cannot reach redis at {self.redis_url}: {e}") from e
        log.info("channel.connected", adapter="redis_stream", url=self.redis_url)

    async def publish(self, topic: str, value: bytes) -> str:
        """
        Publish a message to a Redis stream.

        Raises:
            PublishError: If Redis rejects the write or is unreachable
        """
        try:
            client = self._get_client()
            entry_id = await client.xadd(
                topic,
                {"value": value},
                id="*",  # Let Redis auto-generate ID
                maxlen=self.maxlen,
                approximate=True,
            )
        except (RedisError, ChannelError) as e:
            log.error("redis.publish_failed", topic=topic, error=str(e))
            raise PublishError(str(e)) from e
        return _as_str(entry_id)

    async def subscribe(self, topic: str, group: str, from_beginning: bool = True) -> None:
        """
        Create the consumer group if needed and bind this channel to it.

        Raises:
            BrokerConnectionError: If the group cannot be created
        """
        client = self._get_client()
        try:
            await client.xgroup_create(
                topic,
                group,
                id="0" if from_beginning else "$",
                mkstream=True,
            )
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                log.error("redis.subscribe_failed", topic=topic, group=group, error=str(e))
                raise BrokerConnectionError(str(e)) from e
        except RedisError as e:
            log.error("redis.subscribe_failed", topic=topic, group=group, error=str(e))
            raise BrokerConnectionError(str(e)) from e

        self._topic = topic
        self._group = group
        self._replay_cursor = "0"
        log.info("channel.subscribed", topic=topic, group=group, adapter="redis_stream")

    async def fetch(self, max_messages: int = 10, block_ms: int = 1000) -> list[ChannelMessage]:
        if self._topic is None or self._group is None:
            raise ChannelError("redis channel has no subscription")

        client = self._get_client()
        replaying = self._replay_cursor is not None
        stream_id = self._replay_cursor if replaying else ">"
        try:
            response = await client.xreadgroup(
                self._group,
                self.consumer_name,
                {self._topic: stream_id},
                count=max_messages,
                block=None if replaying else block_ms,
            )
        except RedisError as e:
            log.warning("redis.fetch_failed", topic=self._topic, error=str(e))
            raise ChannelError(str(e)) from e

        messages = []
        for _stream, entries in response or []:
            for entry_id, fields in entries:
                # Pending entries trimmed from the stream come back without fields
                value = (fields or {}).get(b"value", b"")
                messages.append(ChannelMessage(id=_as_str(entry_id), topic=self._topic, value=value))

        if replaying:
            # Unacked entries stay pending, so the next read starts after this batch
            self._replay_cursor = messages[-1].id if messages else None
        return messages

    async def ack(self, message: ChannelMessage) -> None:
        try:
            await self._get_client().xack(message.topic, self._group, message.id)
        except RedisError as e:
            raise ChannelError(str(e)) from e

    async def health_check(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is accessible, False otherwise
        """
        try:
            return bool(await self._get_client().ping())
        except (RedisError, ChannelError) as e:
            log.warning("redis.health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None


def _as_str(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value
