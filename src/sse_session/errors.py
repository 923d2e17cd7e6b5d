"""Shared error types for sse_session."""


class StreamError(RuntimeError):
    """Base exception for SSE stream failures."""


class TransportError(StreamError):
    """Failure of the underlying event stream transport."""

    def __init__(self, message: str, http_status: int | None = None) -> None:
        """Initialize transport-error metadata.

        Args:
            message: Human-readable error message.
            http_status: Optional HTTP status observed from the stream endpoint.
        """
        super().__init__(message)
        self.http_status = http_status
