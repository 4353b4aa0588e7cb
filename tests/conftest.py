import pytest

from backend import SessionRegistry
from connection import ConnectionHandler
from relay import PresenceBroadcaster, RelayEngine
from fakes import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return SessionRegistry(clock=clock)


@pytest.fixture
def relay(registry):
    return RelayEngine(registry)


@pytest.fixture
def presence(registry):
    return PresenceBroadcaster(registry)


@pytest.fixture
def handler(registry, relay, presence):
    return ConnectionHandler(registry, relay, presence)
