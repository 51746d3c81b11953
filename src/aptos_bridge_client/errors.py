"""Error types for the Aptos bridge client."""


class BridgeError(Exception):
    """Base exception for all bridge client errors."""
    pass


class NetworkError(BridgeError):
    """The node or indexer was unreachable, timed out or answered with a transient error."""
    pass


class InvalidInput(BridgeError):
    """Client-side validation failed. Never retried."""
    pass


class InvalidAddress(InvalidInput):
    """An address failed format validation."""

    def __init__(self, address: str, details: str = ""):
        self.address = address
        self.details = details
        message = f"Invalid address: {address!r}"
        if details:
            message = f"{message} ({details})"
        super().__init__(message)


class EncodingFailed(BridgeError):
    """Operation arguments could not be serialized to the wire format."""
    pass


class TransactionSubmissionFailed(BridgeError):
    """The node rejected a transaction, or it could not be delivered."""

    def __init__(self, reason: str, error_code: str | None = None):
        self.reason = reason
        self.error_code = error_code
        if error_code:
            super().__init__(f"Transaction submission failed [{error_code}]: {reason}")
        else:
            super().__init__(f"Transaction submission failed: {reason}")


class EventDecodeFailed(BridgeError):
    """A raw event payload was structurally invalid or of an unknown type."""

    def __init__(self, message: str, version: int | None = None):
        self.version = version
        if version is not None:
            message = f"{message} (version {version})"
        super().__init__(message)


class HandlerError(BridgeError):
    """An application event handler raised while processing an event."""

    def __init__(self, version: int, cause: BaseException):
        self.version = version
        self.cause = cause
        super().__init__(f"Handler failed for event at version {version}: {cause}")


class ConfigError(BridgeError, ValueError):
    """Malformed or missing configuration value."""
    pass
