"""Publishes generated events onto the activity channel."""
from ..channels.base import ChannelAdapter
from ..errors import PublishError
from ..event_models import UserEvent, encode_event
from ..metrics import Metrics
import structlog
import time

log = structlog.get_logger()


class EventPublisher:
    """
    Producer side of the pipeline.

    Holds one broker connection for the process lifetime and hands every
    event to a single topic. Failures are raised to the caller; retries
    belong to the broker client configuration, not to this class.
    """

    def __init__(self, channel: ChannelAdapter, topic: str, metrics: Metrics | None = None):
        self._channel = channel
        self._topic = topic
        self._metrics = metrics

    async def connect(self):
        await self._channel.connect()
        log.info("publisher.connected", topic=self._topic)

    async def publish(self, event: UserEvent) -> str:
        """
        Publish an event to the configured topic.

        Returns:
            The broker-assigned message id

        Raises:
            PublishError: If the broker did not accept the event
        """
        start_time = time.time()
        try:
            message_id = await self._channel.publish(self._topic, encode_event(event))
        except PublishError as e:
            if self._metrics:
                self._metrics.publish_failures_total.inc()
            log.error("event.publish_failed", event_id=event.event_id, topic=self._topic, error=str(e))
            raise

        if self._metrics:
            self._metrics.record_event_published(event.event_type, time.time() - start_time)
        log.info(
            "event.published",
            event_id=event.event_id,
            user_id=event.user_id,
            event_type=event.event_type,
            topic=self._topic,
            message_id=message_id,
        )
        return message_id

    async def health_check(self) -> bool:
        return await self._channel.health_check()

    async def close(self):
        await self._channel.close()
        log.info("publisher.closed")
