"""Error types for explorer and query-service lookups.

Every error here describes the failure of a single query attempt. Polling
sessions record them in their snapshot and keep ticking.
"""


class TrackerError(Exception):
    """Base class for all message tracker errors."""


class ConfigError(TrackerError, ValueError):
    """Chain has no explorer URL, or no API key when one was requested.

    Raised before any request is attempted and never retried.
    """


class TransportError(TrackerError):
    """HTTP request failed with a non-2xx status or timed out.

    Attributes:
        status_code: HTTP status of the response, None on timeout or
            connection failure
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidResultError(TrackerError):
    """Response envelope carried no usable result.

    Attributes:
        response_text: Raw response body, which is usually where the
            provider puts its human-readable error
    """

    def __init__(self, message: str, response_text: str = "") -> None:
        super().__init__(message)
        self.response_text = response_text


class MalformedLogError(InvalidResultError):
    """Log query result is not a list of well-formed log entries."""


class MalformedTxError(InvalidResultError):
    """Transaction result does not match the requested hash."""


class MalformedReceiptError(InvalidResultError):
    """Receipt result does not match the requested hash."""


class MalformedBlockError(InvalidResultError):
    """Block result has no positive block number."""


class DecodeError(TrackerError, ValueError):
    """A query-string payload could not be decoded or failed validation."""
