"""Consumer loop that applies channel messages to the event store."""
from ..channels.base import ChannelAdapter, ChannelMessage
from ..errors import BrokerConnectionError, ChannelError, MalformedMessageError
from ..event_models import decode_event
from ..metrics import Metrics
from ..store import EventStore
from enum import Enum
import asyncio
import structlog

log = structlog.get_logger()


class ConsumerState(str, Enum):
    """Lifecycle of the consumer loop."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    RUNNING = "running"


class EventConsumer:
    """
    Receives events from the channel and appends new ones to the store.

    Delivery is at-least-once, so the same eventId may arrive several
    times; only the first delivery is stored. Messages are handled one at
    a time in the order the broker delivers them.
    """

    def __init__(
        self,
        channel: ChannelAdapter,
        store: EventStore,
        topic: str,
        group: str,
        metrics: Metrics | None = None,
        batch_size: int = 10,
        block_ms: int = 1000,
        retry_backoff: float = 1.0,
    ):
        self._channel = channel
        self._store = store
        self._topic = topic
        self._group = group
        self._metrics = metrics
        self._batch_size = batch_size
        self._block_ms = block_ms
        self._retry_backoff = retry_backoff
        self._state = ConsumerState.DISCONNECTED

    @property
    def state(self) -> ConsumerState:
        return self._state

    def _set_state(self, state: ConsumerState):
        log.info("consumer.state_changed", previous=self._state.value, state=state.value)
        self._state = state

    async def start(self):
        """
        Connect and subscribe from the earliest retained message.

        Raises:
            BrokerConnectionError: If the broker cannot be reached or joined
        """
        if self._state is not ConsumerState.DISCONNECTED:
            raise RuntimeError(f"consumer already started (state={self._state.value})")

        await self._channel.connect()
        self._set_state(ConsumerState.CONNECTED)

        try:
            await self._channel.subscribe(self._topic, self._group, from_beginning=True)
        except ChannelError as e:
            await self.stop()
            raise BrokerConnectionError(f"cannot subscribe to {self._topic}: {e}") from e
        self._set_state(ConsumerState.SUBSCRIBED)

    async def run(self):
        """Receive and handle messages until cancelled."""
        if self._state is not ConsumerState.SUBSCRIBED:
            raise RuntimeError(f"consumer must be subscribed before running (state={self._state.value})")
        self._set_state(ConsumerState.RUNNING)

        while True:
            try:
                batch = await self._channel.fetch(self._batch_size, self._block_ms)
            except ChannelError as e:
                log.warning("consumer.fetch_failed", error=str(e), retry_in=self._retry_backoff)
                await asyncio.sleep(self._retry_backoff)
                continue

            for message in batch:
                await self.handle_message(message)

    async def handle_message(self, message: ChannelMessage) -> bool:
        """
        Apply one delivered message to the store.

        Returns:
            True if the event was appended, False if it was skipped
        """
        try:
            event = decode_event(message.value)
        except MalformedMessageError as e:
            log.error("event.malformed", message_id=message.id, topic=message.topic, error=str(e))
            if self._metrics:
                self._metrics.events_malformed_total.inc()
            await self._ack(message)
            return False

        log.info("event.received", event_id=event.event_id, message_id=message.id)

        if not self._store.append_if_absent(event):
            log.warning("event.duplicate_skipped", event_id=event.event_id, message_id=message.id)
            if self._metrics:
                self._metrics.events_duplicate_total.inc()
            await self._ack(message)
            return False

        log.info(
            "event.processed",
            event_id=event.event_id,
            user_id=event.user_id,
            event_type=event.event_type,
        )
        if self._metrics:
            self._metrics.record_event_consumed(event.event_type, len(self._store))
        await self._ack(message)
        return True

    async def _ack(self, message: ChannelMessage):
        try:
            await self._channel.ack(message)
        except ChannelError as e:
            # Redelivery of this message is skipped as a duplicate.
            log.warning("consumer.ack_failed", message_id=message.id, error=str(e))

    async def stop(self):
        await self._channel.close()
        self._set_state(ConsumerState.DISCONNECTED)
