"""Exception types shared by the client, store and HTTP layers."""


class StatsError(Exception):
    """Base class for errors raised by this service."""
    pass


class InvalidInputError(StatsError):
    """Raised when a request carries an unusable identifier or is missing a field."""
    pass


class NotFoundError(StatsError):
    """Raised when neither YouTube nor the database has the requested record."""
    pass


class ChannelNotFoundError(NotFoundError):
    pass


class UpstreamError(StatsError):
    """Raised when a YouTube Data API call fails (HTTP error, quota, timeout)."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class PersistenceError(StatsError):
    """Raised when a database write or read fails."""
    pass
