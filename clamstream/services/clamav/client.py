"""ClamAV daemon client speaking PING and INSTREAM over TCP."""

import hashlib
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog

from clamstream.core.exceptions import ConfigurationError, ProtocolAbortedError, TransportError
from clamstream.schemas.scan import ScanOutcome
from clamstream.services.clamav.framing import CHUNK_SIZE, TERMINATOR, ByteSource, encode_chunk, iter_chunks
from clamstream.services.clamav.replies import assert_size_limit, is_clean_reply, reply_text
from clamstream.services.clamav.transport import ByteChannel, ConnectFactory, SocketChannel

PING_COMMAND = b"zPING\0"
INSTREAM_COMMAND = b"zINSTREAM\0"
PONG_REPLY = b"PONG"

DEFAULT_PORT = 3310
DEFAULT_TIMEOUT = 2.0
READ_BUFFER_SIZE = 2000


class _SourceReadError(Exception):
    """Carries an OSError from the caller's source past the transport error mapping."""

    def __init__(self, error: OSError):
        self.error = error
        super().__init__(str(error))


def _read_source(source: ByteSource, chunk_size: int) -> Iterator[bytes]:
    chunks = iter_chunks(source, chunk_size)
    while True:
        try:
            payload = next(chunks)
        except StopIteration:
            return
        except OSError as e:
            raise _SourceReadError(e) from e
        yield payload


class ClamAVClient:
    """Client for clamd over TCP.

    Every call opens its own connection and closes it before returning, so a
    single instance can be shared between threads. Nothing is retried: a
    failed call raises and the caller decides whether to try again.

    Args:
        host: Host running clamd.
        port: Port clamd listens on (TCPSocket in clamd.conf).
        timeout: Socket deadline in seconds. 0 means no deadline, which is
            accepted but rarely a good idea.
        chunk_size: Largest INSTREAM payload sent per chunk.
        logger: structlog logger to report through. Defaults to the module
            logger, bound to the endpoint.
        connect: Factory returning a ByteChannel. Defaults to TCP sockets.
    """

    is_clean_reply = staticmethod(is_clean_reply)

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        chunk_size: int = CHUNK_SIZE,
        logger=None,
        connect: ConnectFactory | None = None,
    ):
        if timeout < 0:
            raise ConfigurationError("Negative timeout value does not make sense.", details={"timeout": timeout})
        if not 1 <= port <= 65535:
            raise ConfigurationError(f"Port {port} is outside 1-65535.", details={"port": port})
        if chunk_size <= 0:
            raise ConfigurationError("Chunk size must be positive.", details={"chunk_size": chunk_size})

        self._host = host
        self._port = port
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._connect = connect or SocketChannel.connect
        self._log = (logger or structlog.get_logger()).bind(clamd_host=host, clamd_port=port)

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "ClamAVClient":
        return cls(
            host=settings.clamav_host,
            port=settings.clamav_port,
            timeout=settings.clamav_timeout,
            chunk_size=settings.clamav_chunk_size,
            **kwargs,
        )

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def ping(self) -> bool:
        """Run PING against clamd.

        Returns True if the server answered exactly PONG. Raises
        TransportError if it could not be reached or did not answer in time.
        """
        with self._session("PING") as conn:
            conn.write(PING_COMMAND)
            conn.flush()

            reply = b""
            while len(reply) < len(PONG_REPLY):
                data = conn.read(len(PONG_REPLY) - len(reply))
                if not data:
                    break
                reply += data

            alive = reply == PONG_REPLY
            self._log.debug("clamd_ping", alive=alive, reply=reply_text(reply))
            return alive

    def scan(self, source: ByteSource, outcome: ScanOutcome) -> bytes:
        """Stream ``source`` to clamd with INSTREAM and return the raw reply.

        The data is sent in chunks and never held in memory as a whole.
        ``source`` is not closed or rewound; it is left at end of stream.
        The MD5 of the streamed bytes is stored on ``outcome.content_hash``.

        Raises:
            SizeLimitExceededError: clamd reported StreamMaxLength exceeded.
            ProtocolAbortedError: clamd replied before the stream was finished.
            TransportError: the connection failed or timed out.
            OSError: reading ``source`` failed; raised unchanged.
        """
        try:
            return self._instream(source, outcome)
        except _SourceReadError as e:
            # Failing to read the caller's stream is not a clamd fault
            raise e.error from None

    def _instream(self, source: ByteSource, outcome: ScanOutcome) -> bytes:
        md5 = hashlib.md5(usedforsecurity=False)
        sent = 0
        chunks = 0

        with self._session("INSTREAM") as conn:
            conn.write(INSTREAM_COMMAND)
            conn.flush()

            for payload in _read_source(source, self._chunk_size):
                conn.write(encode_chunk(payload))
                md5.update(payload)
                sent += len(payload)
                chunks += 1

                if conn.available() > 0:
                    # Reply from server before the stream was terminated
                    reply = assert_size_limit(self._read_all(conn))
                    self._log.warning("clamd_scan_aborted", bytes_sent=sent, chunks=chunks, reply=reply_text(reply))
                    raise ProtocolAbortedError(reply=reply, details={"bytes_sent": sent, "chunks": chunks})

            conn.write(TERMINATOR)
            conn.flush()

            content_hash = md5.hexdigest()
            if content_hash:
                outcome.content_hash = content_hash

            reply = assert_size_limit(self._read_all(conn))
            self._log.info(
                "clamd_scan_complete",
                bytes_sent=sent,
                chunks=chunks,
                content_hash=content_hash,
                reply=reply_text(reply),
            )
            return reply

    def scan_stream(self, source: ByteSource, filename: str | None = None) -> ScanOutcome:
        """Scan ``source`` and return a fully populated ScanOutcome."""
        outcome = ScanOutcome(filename=filename)
        reply = self.scan(source, outcome)
        outcome.raw_reply = reply
        outcome.is_clean = is_clean_reply(reply)
        return outcome

    def scan_file(self, file_path: Path | str) -> ScanOutcome:
        """Stream a file from disk to clamd without loading it into memory."""
        path = Path(file_path)
        with path.open("rb") as f:
            return self.scan_stream(f, filename=path.name)

    @contextmanager
    def _session(self, command: str) -> Iterator[ByteChannel]:
        """Open a connection for one command and always close it afterwards.

        OSErrors raised while connecting or talking to clamd are re-raised as
        TransportError.
        """
        log = self._log.bind(command=command)
        try:
            conn = self._connect(self._host, self._port, self._timeout or None)
        except OSError as e:
            log.warning("clamd_transport_error", stage="connect", error=str(e))
            raise TransportError(
                f"Could not connect to clamd at {self._host}:{self._port}: {e}",
                details={"host": self._host, "port": self._port},
            ) from e

        try:
            conn.set_timeout(self._timeout or None)
            log.debug("clamd_connected", channel=repr(conn))
            yield conn
        except OSError as e:
            log.warning("clamd_transport_error", stage="io", error=str(e))
            raise TransportError(
                f"I/O error talking to clamd at {self._host}:{self._port}: {e}",
                details={"host": self._host, "port": self._port},
            ) from e
        finally:
            self._release(conn, log)

    @staticmethod
    def _release(conn: ByteChannel, log) -> None:
        try:
            conn.close()
        except OSError as e:
            log.warning("clamd_close_failed", error=str(e))

    @staticmethod
    def _read_all(conn: ByteChannel) -> bytes:
        """Read the reply that has arrived so far without waiting for the server to close."""
        reply = bytearray()
        while True:
            data = conn.read(READ_BUFFER_SIZE)
            reply += data
            if not data or conn.available() <= 0:
                break
        return bytes(reply)
