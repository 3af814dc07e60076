"""Shared fixtures: a connected pair of loopback transports and coordinators."""

import threading

import pytest

from connect4net.game.rules import GameEngine
from connect4net.network.coordinator import TurnCoordinator
from connect4net.network.transport import Role, Transport
from connect4net.utils import Color, ROWS, COLS

LOOPBACK = "127.0.0.1"
WAIT = 5.0


def open_transport_pair():
    """Connect two Transports over loopback; the listener binds an ephemeral port."""
    listener = Transport()
    results = {}

    def listen():
        results['listener'] = listener.open(Role.LISTENER, LOOPBACK, 0)

    thread = threading.Thread(target=listen, daemon=True)
    thread.start()
    assert listener.listening.wait(WAIT)

    connector = Transport()
    assert connector.open(Role.CONNECTOR, LOOPBACK, listener.local_port).ok
    thread.join(WAIT)
    assert results['listener'].ok
    return listener, connector


@pytest.fixture
def transport_pair():
    listener, connector = open_transport_pair()
    yield listener, connector
    listener.close()
    connector.close()


@pytest.fixture
def peers(transport_pair):
    """Host (YELLOW, listener side) and guest (RED, connector side) coordinators."""
    listener, connector = transport_pair
    host = TurnCoordinator(GameEngine(), listener, Color.YELLOW)
    guest = TurnCoordinator(GameEngine(), connector, Color.RED)
    yield host, guest
    host.close()
    guest.close()


def _fill_draw(engine):
    """Fill the board with no four in a row: blocks of three alternate by column parity."""
    for r in range(ROWS):
        for c in range(COLS):
            if r <= 2:
                color = Color.RED if c % 2 == 1 else Color.YELLOW
            else:
                color = Color.RED if c % 2 == 0 else Color.YELLOW
            assert engine.apply_move(color, c).applied


@pytest.fixture
def fill_draw():
    return _fill_draw
