class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class UpstreamError(DomainError):
    """Raised when the text-generation provider fails or is unreachable.

    ``status_code`` is the provider's HTTP status when one was received, or
    ``None`` for transport failures (DNS, connection reset, timeout).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InputTooLargeError(DomainError):
    """Exception raised when submitted text exceeds the configured limit."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Input length {length} exceeds limit {limit}")
        self.length = length
        self.limit = limit
