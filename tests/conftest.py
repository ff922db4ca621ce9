import pytest

from tests.mocks.fake_clamd import FakeChannel, FakeClamd, FakeConnector


@pytest.fixture
def fake_channel():
    """Scripted channel that replies "stream: OK" / "PONG"."""
    return FakeChannel(reply=b"stream: OK\0")


@pytest.fixture
def fake_connector(fake_channel):
    return FakeConnector(fake_channel)


@pytest.fixture
def fake_clamd():
    """Fake clamd listening on a random localhost port."""
    server = FakeClamd().start()
    yield server
    server.stop()


@pytest.fixture
def limited_clamd():
    """Fake clamd with StreamMaxLength of 4 KiB."""
    server = FakeClamd(stream_max_length=4096).start()
    yield server
    server.stop()


@pytest.fixture
def silent_clamd():
    """Fake clamd that accepts connections but never answers."""
    server = FakeClamd(silent=True).start()
    yield server
    server.stop()
