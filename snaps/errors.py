"""Exception types raised by the snaps core."""


class SnapsError(Exception):
    """Base class for all snaps errors."""


class SubmissionError(SnapsError):
    """A submission was rejected before persistence.

    The message is safe to show to the client.
    """

    message = "Invalid submission"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class MissingEmail(SubmissionError):
    message = "An email address is required"


class InvalidWeight(SubmissionError):
    message = "Snaps must be a whole number between 1 and 50"


class InvalidUrl(SubmissionError):
    message = "URL must be an absolute URL"


class StorageUnavailable(SnapsError):
    """Transient storage failure; the caller may retry."""


class NotificationError(SnapsError):
    """The mail transport failed to deliver a message."""
