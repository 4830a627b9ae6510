"""Exception hierarchy for abidecoder.

A selector or topic that an interface does not know is not an error: decode
functions return ``None`` for it so callers can move on to the next candidate.
"""


class AbiDecoderError(Exception):
    """Base exception for abidecoder."""


class ParseError(AbiDecoderError):
    """Raised when an ABI document or one of its argument types cannot be parsed."""


class DecodeError(AbiDecoderError):
    """Raised when a selector or topic matched but its arguments could not be unpacked."""

    def __init__(self, message: str, signature: str = "") -> None:
        super().__init__(message)
        self.signature = signature


class ConfigurationError(AbiDecoderError):
    """Raised when a decode is requested without any interface loaded."""


class NotFoundError(AbiDecoderError):
    """Raised when no cached contract metadata exists for an address."""


class RpcError(AbiDecoderError):
    """Raised when the node answers a request with a JSON-RPC error object."""

    def __init__(self, message: str, code: object = None, data: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class CollaboratorUnavailable(AbiDecoderError):
    """Raised when no chain client is configured or it cannot be reached."""


class CollaboratorTimeout(CollaboratorUnavailable):
    """Raised when a chain client call exceeds its time budget."""


class ResolutionCancelled(CollaboratorUnavailable):
    """Raised when a caller cancels an in-flight resolution."""
