from enum import Enum


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    SIZE_LIMIT_EXCEEDED = "size_limit_exceeded"
    PROTOCOL_ABORTED = "protocol_aborted"


class ClamAVError(Exception):
    """Base exception for clamd client errors."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        reply: bytes | None = None,
        details: dict | None = None,
    ):
        self.kind = kind
        self.message = message
        self.reply = reply
        self.details = details or {}
        super().__init__(message)

    @property
    def reply_text(self) -> str | None:
        if self.reply is None:
            return None
        return self.reply.decode("ascii", errors="replace")

    def to_dict(self) -> dict:
        result = {
            "error": {
                "kind": self.kind.value,
                "message": self.message,
            }
        }
        if self.reply is not None:
            result["error"]["reply"] = self.reply_text
        if self.details:
            result["error"]["details"] = self.details
        return result


class ConfigurationError(ClamAVError, ValueError):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(kind=ErrorKind.CONFIGURATION, message=message, details=details)


class TransportError(ClamAVError):
    def __init__(self, message: str = "clamd connection failed.", details: dict | None = None):
        super().__init__(kind=ErrorKind.TRANSPORT, message=message, details=details)


class SizeLimitExceededError(ClamAVError):
    def __init__(self, reply: bytes, details: dict | None = None):
        text = reply.decode("ascii", errors="replace")
        super().__init__(
            kind=ErrorKind.SIZE_LIMIT_EXCEEDED,
            message=f"Clamd size limit exceeded. Full reply from server: {text}",
            reply=reply,
            details=details,
        )


class ProtocolAbortedError(ClamAVError):
    def __init__(self, reply: bytes, details: dict | None = None):
        text = reply.decode("ascii", errors="replace")
        super().__init__(
            kind=ErrorKind.PROTOCOL_ABORTED,
            message=f"Scan aborted. Reply from server: {text}",
            reply=reply,
            details=details,
        )
