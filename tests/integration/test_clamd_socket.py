"""End-to-end tests of ClamAVClient over real TCP sockets against FakeClamd."""

import hashlib
import io
import socket
import threading
import time

import pytest

from clamstream.core.exceptions import SizeLimitExceededError, TransportError
from clamstream.schemas.scan import ScanOutcome
from clamstream.services.clamav.client import ClamAVClient
from clamstream.services.clamav.transport import SocketChannel
from tests.mocks.fake_clamd import EICAR_SIGNATURE, FakeClamd


def _client(server, timeout=2.0, **kwargs):
    return ClamAVClient(server.host, server.port, timeout=timeout, **kwargs)


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class CountingSource:
    def __init__(self, data: bytes):
        self._buf = io.BytesIO(data)
        self.consumed = 0

    def read(self, size=-1):
        data = self._buf.read(size)
        self.consumed += len(data)
        return data


class TestPing:
    def test_ping(self, fake_clamd):
        assert _client(fake_clamd).ping() is True
        assert fake_clamd.commands == [b"zPING"]

    def test_ping_wrong_reply(self):
        server = FakeClamd(ping_reply=b"PANG\0").start()
        try:
            assert _client(server).ping() is False
        finally:
            server.stop()

    def test_ping_short_reply(self):
        server = FakeClamd(ping_reply=b"PO").start()
        try:
            assert _client(server).ping() is False
        finally:
            server.stop()

    def test_ping_timeout(self, silent_clamd):
        with pytest.raises(TransportError):
            _client(silent_clamd, timeout=0.2).ping()

    def test_ping_connection_refused(self):
        client = ClamAVClient("127.0.0.1", _unused_port(), timeout=1.0)
        with pytest.raises(TransportError) as exc_info:
            client.ping()
        assert isinstance(exc_info.value.__cause__, OSError)


class TestScan:
    def test_clean_stream(self, fake_clamd):
        data = b"hello world" * 1000
        outcome = ScanOutcome()

        reply = _client(fake_clamd).scan(io.BytesIO(data), outcome)

        assert reply == b"stream: OK\0"
        assert outcome.content_hash == hashlib.md5(data).hexdigest()
        assert fake_clamd.streams == [data]
        assert max(fake_clamd.chunk_sizes) <= 2048

    def test_empty_stream(self, fake_clamd):
        outcome = ScanOutcome()
        reply = _client(fake_clamd).scan(io.BytesIO(b""), outcome)
        assert reply == b"stream: OK\0"
        assert outcome.content_hash == "d41d8cd98f00b204e9800998ecf8427e"
        assert fake_clamd.streams == [b""]

    def test_eicar_detected(self, fake_clamd):
        outcome = _client(fake_clamd).scan_stream(io.BytesIO(b"prefix " + EICAR_SIGNATURE))
        assert outcome.is_clean is False
        assert outcome.reply_text == "stream: Eicar-Test-Signature FOUND"

    def test_scan_file(self, fake_clamd, tmp_path):
        path = tmp_path / "upload.bin"
        path.write_bytes(b"\x01\x02" * 10000)

        outcome = _client(fake_clamd).scan_file(path)

        assert outcome.is_clean is True
        assert outcome.filename == "upload.bin"
        assert fake_clamd.streams == [path.read_bytes()]

    def test_size_limit_exceeded_aborts_mid_stream(self, limited_clamd):
        total = 2_000_000
        source = CountingSource(b"x" * total)

        with pytest.raises(SizeLimitExceededError) as exc_info:
            _client(limited_clamd).scan(source, ScanOutcome())

        assert exc_info.value.reply.startswith(b"INSTREAM size limit exceeded.")
        assert limited_clamd.streams == []
        # Stopped streaming well before the end of the source
        assert source.consumed < total

    def test_stream_within_limit(self, limited_clamd):
        reply = _client(limited_clamd).scan(io.BytesIO(b"x" * 4096), ScanOutcome())
        assert reply == b"stream: OK\0"

    def test_scan_timeout(self, silent_clamd):
        with pytest.raises(TransportError):
            _client(silent_clamd, timeout=0.2).scan(io.BytesIO(b"abc"), ScanOutcome())

    def test_scan_connection_refused(self):
        client = ClamAVClient("127.0.0.1", _unused_port(), timeout=1.0)
        with pytest.raises(TransportError):
            client.scan(io.BytesIO(b"abc"), ScanOutcome())

    def test_shared_client_across_threads(self, fake_clamd):
        client = _client(fake_clamd)
        payloads = [bytes([i]) * (3000 + i * 17) for i in range(8)]
        results: dict[int, ScanOutcome] = {}
        errors: list[Exception] = []

        def worker(i):
            try:
                results[i] = client.scan_stream(io.BytesIO(payloads[i]))
            except Exception as e:  # pragma: no cover - surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(len(payloads))]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        for i, payload in enumerate(payloads):
            assert results[i].content_hash == hashlib.md5(payload).hexdigest()
            assert results[i].is_clean


class TestSocketChannel:
    def test_available_reports_unread_bytes(self, fake_clamd):
        channel = SocketChannel.connect(fake_clamd.host, fake_clamd.port, 2.0)
        try:
            assert channel.available() == 0
            channel.write(b"zPING\0")
            channel.flush()

            deadline = time.monotonic() + 2.0
            while channel.available() < 5 and time.monotonic() < deadline:
                time.sleep(0.01)

            assert channel.available() == 5
            assert channel.read(4) == b"PONG"
            assert channel.available() == 1
        finally:
            channel.close()

    def test_close_is_idempotent(self, fake_clamd):
        channel = SocketChannel.connect(fake_clamd.host, fake_clamd.port, 2.0)
        channel.close()
        channel.close()
