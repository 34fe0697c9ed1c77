import json
import os
import sys

import pytest

# Ensure the project root (containing the top-level modules) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from backend import RoomBackend  # noqa: E402
from connections import ConnectionManager  # noqa: E402
from dispatcher import Dispatcher  # noqa: E402
from reaper import InactivityReaper  # noqa: E402

IDLE_TIMEOUT = 100.0


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeConnection:
    """Stands in for ClientConnection; records messages instead of queueing JSON."""

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        self.sent = []

    def send(self, message: dict):
        self.sent.append(message)

    def close(self):
        pass

    def types(self):
        return [message["type"] for message in self.sent]

    def take(self):
        sent, self.sent = self.sent, []
        return sent


def make_timer(timer_id: str = "t1", **overrides) -> dict:
    timer = {
        "id": timer_id,
        "endTime": 1700000000000,
        "timeRemaining": 300000,
        "running": False,
        "eventName": "Round robin",
        "rounds": 3,
        "roundTime": 300000,
        "hasDraft": True,
        "draftTime": 60000,
        "currentRoundNumber": 1,
        "currentRoundLength": 300000,
    }
    timer.update(overrides)
    return timer


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def backend(clock):
    return RoomBackend(clock=clock)


@pytest.fixture()
def connections(backend):
    return ConnectionManager(backend.rooms)


@pytest.fixture()
def dispatcher(backend, connections):
    return Dispatcher(backend, connections)


@pytest.fixture()
def reaper(backend, connections):
    return InactivityReaper(backend, connections, idle_timeout=IDLE_TIMEOUT, interval=IDLE_TIMEOUT / 2)


@pytest.fixture()
def connect(connections):
    counter = {"n": 0}

    def _connect() -> FakeConnection:
        counter["n"] += 1
        connection = FakeConnection(f"conn-{counter['n']}")
        connections.register(connection)
        return connection

    return _connect


@pytest.fixture()
def send(dispatcher):
    def _send(connection: FakeConnection, payload):
        raw = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
        dispatcher.dispatch(connection.connection_id, raw)

    return _send


@pytest.fixture()
def room_with_editor(connect, send):
    """A fresh room created by an editor connection; returns (editor, room_info)."""
    editor = connect()
    send(editor, {"type": "createRoom"})
    info, _update = editor.take()
    return editor, info
