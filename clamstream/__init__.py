"""Streaming ClamAV daemon client."""

from clamstream.core.exceptions import (
    ClamAVError,
    ConfigurationError,
    ErrorKind,
    ProtocolAbortedError,
    SizeLimitExceededError,
    TransportError,
)
from clamstream.schemas.scan import ScanOutcome
from clamstream.services.clamav import ClamAVClient, is_clean_reply

__version__ = "0.1.0"
