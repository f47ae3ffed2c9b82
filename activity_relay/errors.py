"""Exceptions raised across the publish/consume pipeline."""


class ChannelError(Exception):
    """A broker transport operation failed."""


class BrokerConnectionError(ChannelError):
    """The broker could not be reached or subscribed to."""


class PublishError(ChannelError):
    """An event could not be handed to the broker."""


class MalformedMessageError(ValueError):
    """A channel message could not be decoded into an event."""

    def __init__(self, message: str, raw: bytes | None = None):
        super().__init__(message)
        self.raw = raw
