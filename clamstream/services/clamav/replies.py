"""Interpretation of clamd replies.

The reply grammar is informal and differs across clamd versions, so replies
are classified by substring rather than parsed.
"""

from clamstream.core.exceptions import SizeLimitExceededError

SIZE_LIMIT_PREFIX = "INSTREAM size limit exceeded."


def _decode(reply: bytes | str) -> str:
    if isinstance(reply, str):
        return reply
    return bytes(reply).decode("ascii", errors="replace")


def reply_text(reply: bytes | str) -> str:
    """Reply as text with NUL and whitespace stripped from both ends."""
    return _decode(reply).strip("\0 \t\r\n")


def assert_size_limit(reply: bytes) -> bytes:
    """Raise SizeLimitExceededError if clamd rejected the stream size, else return ``reply``."""
    if _decode(reply).startswith(SIZE_LIMIT_PREFIX):
        raise SizeLimitExceededError(reply=bytes(reply))
    return reply


def is_clean_reply(reply: bytes | str) -> bool:
    """Return True if no virus was found according to the clamd reply.

    "stream: OK" is clean, "stream: Eicar-Test-Signature FOUND" is not. A
    reply containing both markers counts as infected.
    """
    text = _decode(reply)
    return "OK" in text and "FOUND" not in text
