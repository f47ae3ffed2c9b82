"""Base adapter interface for message channel backends."""
from abc import ABC, abstractmethod
from pydantic import BaseModel


class ChannelMessage(BaseModel):
    """A message delivered by a channel backend."""
    id: str
    topic: str
    value: bytes


class ChannelAdapter(ABC):
    """Abstract interface for broker connections used by the publisher and the consumer."""

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the connection to the broker.

        Raises:
            BrokerConnectionError: If the broker is unreachable
        """
        pass

    @abstractmethod
    async def publish(self, topic: str, value: bytes) -> str:
        """
        Append a message to a topic.

        Args:
            topic: Channel name
            value: Serialized message body

        Returns:
            The broker-assigned message id

        Raises:
            PublishError: If the broker did not accept the message
        """
        pass

    @abstractmethod
    async def subscribe(self, topic: str, group: str, from_beginning: bool = True) -> None:
        """
        Join a consumer group on a topic.

        Args:
            topic: Channel name
            group: Consumer group identifier
            from_beginning: Start from the earliest retained message
        """
        pass

    @abstractmethod
    async def fetch(self, max_messages: int = 10, block_ms: int = 1000) -> list[ChannelMessage]:
        """
        Receive the next messages for the subscribed group, in delivery order.

        Returns an empty list when nothing arrived within block_ms.
        """
        pass

    @abstractmethod
    async def ack(self, message: ChannelMessage) -> None:
        """Mark a delivered message as processed."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the backend is healthy and accessible.

        Returns:
            True if backend is healthy, False otherwise
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the broker connection."""
        pass
