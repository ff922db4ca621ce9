"""INSTREAM chunk framing.

The format of a chunk is ``<length><data>`` where ``<length>`` is the size of
the following data in bytes, a 4 byte unsigned integer in network byte order.
Streaming is terminated by sending a zero-length chunk.
"""

import struct
from collections.abc import Iterator
from typing import Protocol

# Keep below StreamMaxLength in clamd.conf, otherwise clamd replies with
# "INSTREAM size limit exceeded" and closes the connection.
CHUNK_SIZE = 2048

CHUNK_LENGTH_FMT = ">I"
TERMINATOR = struct.pack(CHUNK_LENGTH_FMT, 0)


class ByteSource(Protocol):
    def read(self, size: int = -1, /) -> bytes | None: ...


def encode_chunk(payload: bytes) -> bytes:
    """Prefix a non-empty payload with its big-endian length."""
    if not payload:
        raise ValueError("Empty payload would terminate the stream; send TERMINATOR instead.")
    return struct.pack(CHUNK_LENGTH_FMT, len(payload)) + payload


def iter_chunks(source: ByteSource, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield payloads of at most ``chunk_size`` bytes until ``source`` is exhausted.

    The source is read but never closed or rewound.
    """
    while True:
        block = source.read(chunk_size)
        if block is None:
            # Non-blocking stream with nothing ready yet
            continue
        if not block:
            return
        for start in range(0, len(block), chunk_size):
            yield bytes(block[start:start + chunk_size])
