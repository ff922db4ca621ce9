"""Byte channel abstraction and its TCP socket implementation."""

import select
import socket
from typing import Protocol


# Upper bound on bytes peeked when counting what clamd has already sent
AVAILABLE_PEEK_SIZE = 4096


class ByteChannel(Protocol):
    """Bidirectional byte channel to clamd.

    ``available()`` must report the number of already-received, unread bytes
    without blocking; the client relies on it to notice replies that clamd
    sends before the stream is finished.
    """

    def write(self, data: bytes) -> None: ...

    def flush(self) -> None: ...

    def read(self, size: int) -> bytes: ...

    def available(self) -> int: ...

    def set_timeout(self, timeout: float | None) -> None: ...

    def close(self) -> None: ...


class ConnectFactory(Protocol):
    def __call__(self, host: str, port: int, timeout: float | None) -> ByteChannel: ...


class SocketChannel:
    """ByteChannel over a TCP socket.

    Writes go through a buffered file wrapper; reads use the raw socket so
    that ``available()`` sees everything the kernel has received.
    """

    def __init__(self, sock: socket.socket):
        self._sock = sock
        self._writer = sock.makefile("wb")

    @classmethod
    def connect(cls, host: str, port: int, timeout: float | None) -> "SocketChannel":
        sock = socket.create_connection((host, port), timeout=timeout)
        try:
            return cls(sock)
        except OSError:
            sock.close()
            raise

    def write(self, data: bytes) -> None:
        self._writer.write(data)

    def flush(self) -> None:
        self._writer.flush()

    def read(self, size: int) -> bytes:
        return self._sock.recv(size)

    def available(self) -> int:
        readable, _, _ = select.select([self._sock], [], [], 0)
        if not readable:
            return 0
        # Readable with nothing to peek means the peer closed its side
        return len(self._sock.recv(AVAILABLE_PEEK_SIZE, socket.MSG_PEEK))

    def set_timeout(self, timeout: float | None) -> None:
        self._sock.settimeout(timeout)

    def close(self) -> None:
        """Close the writer and the socket, then raise the first failure, if any."""
        error = None
        for handle in (self._writer, self._sock):
            try:
                handle.close()
            except OSError as e:
                error = error or e
        if error is not None:
            raise error

    def __repr__(self) -> str:
        try:
            peer = self._sock.getpeername()
        except OSError:
            peer = None
        return f"SocketChannel(peer={peer!r})"
