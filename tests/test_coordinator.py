"""Tests for TurnCoordinator: two peers playing over a loopback connection."""

import socket
import threading
import time

import numpy as np
import pytest

from connect4net.game.rules import GameEngine
from connect4net.network.coordinator import (SessionSetupError, TurnCoordinator, TurnState,
                                             join_session)
from connect4net.utils import Color, ErrorKind, MoveRecord

WAIT = 5.0


def exchange(mover, waiter, col):
    """`mover` plays `col`; `waiter` applies it. Returns the mover's record."""
    result = mover.request_move(col)
    assert result.applied
    waiter.wait_for_turn(WAIT)
    return result.record


class TestTurnCoordinator:
    def test_initial_states(self, peers):
        host, guest = peers
        assert host.start() == TurnState.LOCAL_TURN
        assert guest.start() == TurnState.AWAITING_REMOTE
        assert host.moves_first and not guest.moves_first

    def test_start_twice_is_an_error(self, peers):
        host, _ = peers
        host.start()
        with pytest.raises(RuntimeError):
            host.start()

    def test_moves_converge_on_both_boards(self, peers):
        host, guest = peers
        host.start()
        guest.start()

        record = exchange(host, guest, 3)
        assert record == MoveRecord(5, 3, Color.YELLOW)
        assert host.state == TurnState.AWAITING_REMOTE
        assert guest.state == TurnState.LOCAL_TURN
        np.testing.assert_array_equal(host.engine.snapshot(), guest.engine.snapshot())

        record = exchange(guest, host, 3)
        assert record == MoveRecord(4, 3, Color.RED)
        assert host.state == TurnState.LOCAL_TURN
        np.testing.assert_array_equal(host.engine.snapshot(), guest.engine.snapshot())

    def test_remote_moves_notify_listeners_with_same_record(self, peers):
        host, guest = peers
        host_seen, guest_seen = [], []
        host.engine.subscribe(host_seen.append)
        guest.engine.subscribe(guest_seen.append)
        host.start()
        guest.start()

        for col in (0, 6, 2, 2):
            mover, waiter = (host, guest) if host.state == TurnState.LOCAL_TURN else (guest, host)
            exchange(mover, waiter, col)

        assert host_seen == guest_seen
        assert [record.color for record in host_seen] == [Color.YELLOW, Color.RED] * 2

    def test_move_out_of_turn_is_refused(self, peers):
        host, guest = peers
        host.start()
        guest.start()
        result = guest.request_move(0)
        assert not result.applied
        assert result.error == ErrorKind.OUT_OF_TURN
        assert guest.engine.board.disc_count == 0

        exchange(host, guest, 1)
        again = host.request_move(1)
        assert again.error == ErrorKind.OUT_OF_TURN

    def test_move_before_start_is_refused(self, peers):
        host, _ = peers
        assert host.request_move(0).error == ErrorKind.OUT_OF_TURN

    def test_invalid_column_keeps_local_turn(self, peers):
        host, guest = peers
        host.start()
        guest.start()
        result = host.request_move(9)
        assert result.error == ErrorKind.INVALID_MOVE
        assert host.state == TurnState.LOCAL_TURN
        assert guest.process_events(timeout=0.2) == 0

    def test_game_to_a_win(self, peers):
        host, guest = peers
        host_end, guest_end = [], []
        host.on_session_end = lambda reason, detail: host_end.append(reason)
        guest.on_session_end = lambda reason, detail: guest_end.append(reason)
        host.start()
        guest.start()

        for _ in range(3):
            exchange(host, guest, 0)
            exchange(guest, host, 1)
        host.request_move(0)

        assert host.state == TurnState.GAME_OVER
        assert guest.wait_for_turn(WAIT) == TurnState.GAME_OVER
        for peer in (host, guest):
            assert peer.engine.get_winner() == Color.YELLOW
            assert peer.end_reason is None
            assert not peer.ended_abnormally
        assert host_end == [None]
        assert guest_end == [None]

    def test_game_to_a_draw(self, peers):
        host, guest = peers
        host.start()
        guest.start()

        # Alternating YELLOW/RED order that fills the board without a streak
        columns = ([0, 1] * 3 + [2, 3] * 3 + [4, 5] * 3 + [6, 0] * 3
                   + [1, 2] * 3 + [3, 4] * 3 + [5, 6] * 3)
        for turn, col in enumerate(columns):
            if turn % 2 == 0:
                exchange(host, guest, col)
            else:
                exchange(guest, host, col)

        for peer in (host, guest):
            assert peer.state == TurnState.GAME_OVER
            assert peer.end_reason is None
            assert peer.engine.get_winner() == Color.EMPTY
            assert peer.engine.is_draw()
        np.testing.assert_array_equal(host.engine.snapshot(), guest.engine.snapshot())

    def test_failing_local_listener_still_sends_move(self, peers):
        host, guest = peers

        def broken(record):
            raise RuntimeError("display gone")

        host.engine.subscribe(broken)
        host.start()
        guest.start()

        result = host.request_move(3)
        assert result.applied
        assert host.state == TurnState.AWAITING_REMOTE
        assert guest.wait_for_turn(WAIT) == TurnState.LOCAL_TURN
        assert host.request_move(3).error == ErrorKind.OUT_OF_TURN
        assert host.engine.board.disc_count == 1
        np.testing.assert_array_equal(host.engine.snapshot(), guest.engine.snapshot())

    def test_failing_remote_listener_still_hands_over_turn(self, peers):
        host, guest = peers

        def broken(record):
            raise RuntimeError("display gone")

        guest.engine.subscribe(broken)
        host.start()
        guest.start()

        exchange(host, guest, 2)
        assert guest.state == TurnState.LOCAL_TURN
        exchange(guest, host, 2)
        assert host.state == TurnState.LOCAL_TURN
        np.testing.assert_array_equal(host.engine.snapshot(), guest.engine.snapshot())

    def test_state_changes_are_reported(self, peers):
        host, guest = peers
        states = []
        host.on_state_change = states.append
        host.start()
        guest.start()
        exchange(host, guest, 5)
        exchange(guest, host, 5)
        assert states == [TurnState.LOCAL_TURN, TurnState.AWAITING_REMOTE, TurnState.LOCAL_TURN]

    def test_peer_leaving_ends_session_without_winner(self, peers):
        host, guest = peers
        host.start()
        guest.start()
        exchange(host, guest, 4)
        exchange(guest, host, 4)
        exchange(host, guest, 4)

        guest.close()
        assert guest.end_reason == ErrorKind.SESSION_CLOSED

        assert host.wait_for_turn(WAIT) == TurnState.GAME_OVER
        assert host.end_reason == ErrorKind.PEER_CLOSED
        assert host.ended_abnormally
        assert host.engine.get_winner() == Color.EMPTY

    def test_close_while_awaiting_returns_promptly(self, peers):
        _, guest = peers
        guest.start()
        time.sleep(0.1)

        started = time.monotonic()
        guest.close()
        assert time.monotonic() - started < WAIT
        assert guest.state == TurnState.GAME_OVER
        assert guest.end_reason == ErrorKind.SESSION_CLOSED
        assert not guest._receiver.is_alive()
        assert guest.process_events() <= 1
        assert guest.end_reason == ErrorKind.SESSION_CLOSED

    def test_blocking_bootstrap_receives_opening_move(self, peers):
        host, guest = peers
        host.start()
        timer = threading.Timer(0.2, host.request_move, args=(2,))
        timer.start()
        try:
            assert guest.start(block=True) == TurnState.LOCAL_TURN
        finally:
            timer.join()
        assert guest.engine.snapshot()[5, 2] == Color.YELLOW.value

    def test_diverged_board_ends_session(self, peers):
        host, guest = peers
        guest.engine.apply_move(Color.RED, 3)
        host.start()
        guest.start()
        host.request_move(3)

        assert guest.wait_for_turn(WAIT) == TurnState.GAME_OVER
        assert guest.end_reason == ErrorKind.TRANSPORT_IO_FAILURE
        assert guest.engine.board.disc_count == 1

    def test_wrong_color_from_peer_ends_session(self, transport_pair):
        listener, connector = transport_pair
        guest = TurnCoordinator(GameEngine(), connector, Color.RED)
        guest.start()
        listener.send(MoveRecord(5, 0, Color.RED))

        assert guest.wait_for_turn(WAIT) == TurnState.GAME_OVER
        assert guest.end_reason == ErrorKind.TRANSPORT_IO_FAILURE
        assert guest.engine.board.disc_count == 0
        guest.close()

    def test_send_failure_ends_session(self, peers):
        host, guest = peers
        host.start()
        host.transport.close()
        result = host.request_move(0)

        assert result.applied
        assert host.state == TurnState.GAME_OVER
        assert host.end_reason == ErrorKind.TRANSPORT_IO_FAILURE

    def test_empty_local_color_is_rejected(self, transport_pair):
        listener, _ = transport_pair
        with pytest.raises(ValueError):
            TurnCoordinator(GameEngine(), listener, Color.EMPTY)


class TestSessionHelpers:
    def test_join_unreachable_host_raises(self):
        spare = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        spare.bind(("127.0.0.1", 0))
        port = spare.getsockname()[1]
        spare.close()

        with pytest.raises(SessionSetupError) as excinfo:
            join_session("127.0.0.1", port)
        assert excinfo.value.detail
