"""Exception types raised by the forecast bridge backends."""


class ForecastBridgeError(Exception):
    """Base class for every error raised by this package."""


class ProviderError(ForecastBridgeError):
    """The forecast provider could not be reached or returned an undecodable payload."""


class QueueError(ForecastBridgeError):
    """A queue operation (send, receive, delete) failed."""


class CacheError(ForecastBridgeError):
    """A correlation cache read or write failed."""


class MalformedMessageError(ForecastBridgeError):
    """A queue message body could not be decoded into the expected shape."""
