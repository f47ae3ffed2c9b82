"""Runtime that owns the store, the broker connections and the consumer task."""
from ..channels.base import ChannelAdapter
from ..channels.memory import InMemoryBroker, InMemoryChannel
from ..channels.redis_stream import RedisStreamChannel
from ..config import Settings
from ..metrics import Metrics
from ..store import EventStore
from .consumer import EventConsumer
from .publisher import EventPublisher
from contextlib import asynccontextmanager
import asyncio
import structlog

log = structlog.get_logger()


class Pipeline:
    """
    Producer, consumer and store wired together for one process lifetime.

    The HTTP handlers and the consumer loop share this object; nothing in
    the pipeline lives at module level.
    """

    def __init__(
        self,
        settings: Settings,
        producer_channel: ChannelAdapter,
        consumer_channel: ChannelAdapter,
        metrics: Metrics | None = None,
        store: EventStore | None = None,
    ):
        self.settings = settings
        self.metrics = metrics if metrics is not None else Metrics()
        self.store = store if store is not None else EventStore()
        self.publisher = EventPublisher(producer_channel, settings.EVENTS_TOPIC, metrics=self.metrics)
        self.consumer = EventConsumer(
            consumer_channel,
            self.store,
            topic=settings.EVENTS_TOPIC,
            group=settings.CONSUMER_GROUP,
            metrics=self.metrics,
            batch_size=settings.CONSUMER_BATCH_SIZE,
            block_ms=settings.CONSUMER_BLOCK_MS,
            retry_backoff=settings.CONSUMER_RETRY_BACKOFF,
        )
        self._consumer_task: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, settings: Settings, metrics: Metrics | None = None) -> "Pipeline":
        """Build a pipeline with the channel backend selected by BROKER_ADAPTER."""
        producer_channel, consumer_channel = _create_channels(settings)
        return cls(settings, producer_channel, consumer_channel, metrics=metrics)

    @property
    def consumer_task(self) -> asyncio.Task | None:
        return self._consumer_task

    async def start(self):
        """
        Connect both sides and launch the consumer loop.

        Raises:
            BrokerConnectionError: If the broker is unreachable at startup
        """
        await self.publisher.connect()
        try:
            await self.consumer.start()
        except Exception:
            await self.publisher.close()
            raise
        self._consumer_task = asyncio.create_task(self.consumer.run(), name="event-consumer")
        self._consumer_task.add_done_callback(_log_consumer_exit)
        log.info("pipeline.started", topic=self.settings.EVENTS_TOPIC, group=self.settings.CONSUMER_GROUP)

    async def stop(self):
        if self._consumer_task is not None:
            self._consumer_task.cancel()
            try:
                await self._consumer_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                # Already reported by _log_consumer_exit
                log.warning("pipeline.consumer_failed_before_stop", error=str(e))
            self._consumer_task = None
        await self.consumer.stop()
        await self.publisher.close()
        log.info("pipeline.stopped", stored=len(self.store))

    @asynccontextmanager
    async def running(self):
        await self.start()
        try:
            yield self
        finally:
            await self.stop()


def _log_consumer_exit(task: asyncio.Task):
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.error("consumer.crashed", error=str(exc), error_type=type(exc).__name__, exc_info=exc)


def _create_channels(settings: Settings) -> tuple[ChannelAdapter, ChannelAdapter]:
    """
    Create the producer and consumer channels based on configuration.

    Returns:
        (producer_channel, consumer_channel) sharing one backend
    """
    if settings.BROKER_ADAPTER == "redis":
        log.info("adapter.selected", type="redis", url=settings.BROKER_URL)
        return (
            RedisStreamChannel(
                settings.BROKER_URL,
                consumer_name=f"{settings.CLIENT_ID}-producer",
                maxlen=settings.STREAM_MAXLEN,
            ),
            RedisStreamChannel(
                settings.BROKER_URL,
                consumer_name=settings.CLIENT_ID,
                maxlen=settings.STREAM_MAXLEN,
            ),
        )

    log.info("adapter.selected", type="memory")
    broker = InMemoryBroker()
    return InMemoryChannel(broker), InMemoryChannel(broker)
