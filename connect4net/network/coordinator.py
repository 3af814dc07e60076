"""
coordinator.py - Turn-taking between two networked peers

TurnCoordinator binds one GameEngine to one Transport and alternates between
the local player's move and the peer's move:

    LOCAL_TURN --request_move--> AWAITING_REMOTE --peer move--> LOCAL_TURN
         \\                            |
          `-- move ends game --> GAME_OVER <-- transport failure / close

The peer's move is read by a short-lived background thread. That thread never
touches the engine; it hands the receive result to the primary thread through
a queue, and the primary thread applies it in process_events().
"""

import queue
import threading
import time
from enum import Enum
from typing import Callable, Optional

from connect4net.debug import debug
from connect4net.utils import DEFAULT_HOST, DEFAULT_PORT, Color, ErrorKind, MoveResult
from connect4net.game.rules import GameEngine
from connect4net.network.transport import Role, Transport, TransportResult

StateListener = Callable[['TurnState'], None]
EndListener = Callable[[Optional[ErrorKind], str], None]

RECEIVER_JOIN_TIMEOUT = 2.0


class TurnState(Enum):
    LOCAL_TURN = "local_turn"
    AWAITING_REMOTE = "awaiting_remote"
    GAME_OVER = "game_over"


class SessionSetupError(Exception):
    """Raised when the connection for a networked game cannot be established."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class TurnCoordinator:
    """
    Drives one networked game from the local side.

    Only the side in LOCAL_TURN may initiate a move, so the two peers never
    place discs concurrently. When the session ends, end_reason is None for a
    normal win or draw, otherwise the ErrorKind that ended it.
    """

    def __init__(self, engine: GameEngine, transport: Transport, local_color: Color,
                 on_state_change: Optional[StateListener] = None,
                 on_session_end: Optional[EndListener] = None):
        if local_color == Color.EMPTY:
            raise ValueError("local_color must be YELLOW or RED")

        self.engine = engine
        self.transport = transport
        self.local_color = local_color
        self.remote_color = local_color.other()
        self.on_state_change = on_state_change
        self.on_session_end = on_session_end

        self.state: Optional[TurnState] = None
        self.end_reason: Optional[ErrorKind] = None
        self.error_detail = ""

        self._events: "queue.Queue[TransportResult]" = queue.Queue()
        self._receiver: Optional[threading.Thread] = None

    @property
    def moves_first(self) -> bool:
        return self.local_color == Color.YELLOW

    @property
    def is_over(self) -> bool:
        return self.state == TurnState.GAME_OVER

    @property
    def ended_abnormally(self) -> bool:
        """True when the session ended for a reason other than a win or draw."""
        return self.is_over and self.end_reason is not None

    def start(self, block: bool = False) -> TurnState:
        """
        Enter the first state of the game.

        The first mover starts in LOCAL_TURN. The second mover starts in
        AWAITING_REMOTE and receives the opening move, on a background thread
        or, with block=True, on the calling thread before returning.
        """
        if self.state is not None:
            raise RuntimeError("Session already started")

        debug.info(f"Starting session as {self.local_color.name}", "coordinator")
        if self.moves_first:
            self._set_state(TurnState.LOCAL_TURN)
        else:
            self._set_state(TurnState.AWAITING_REMOTE)
            if block:
                self._handle_receive(self.transport.receive())
            else:
                self._start_receiver()
        return self.state

    def request_move(self, col: int) -> MoveResult:
        """
        Play a local disc in `col` and send it to the peer.

        Returns:
            The engine's MoveResult; OUT_OF_TURN when it is not the local turn
        """
        if self.state != TurnState.LOCAL_TURN:
            debug.debug(f"Move in column {col} refused in state {self.state}", "coordinator")
            return MoveResult(False, col, error=ErrorKind.OUT_OF_TURN)

        result = self.engine.apply_move(self.local_color, col)
        if not result.applied:
            return result

        sent = self.transport.send(result.record)
        if not sent.ok:
            self._end_session(ErrorKind.TRANSPORT_IO_FAILURE, sent.detail)
            return result

        if self.engine.is_game_over():
            self._end_session(None, "")
        else:
            self._set_state(TurnState.AWAITING_REMOTE)
            self._start_receiver()
        return result

    def process_events(self, timeout: Optional[float] = 0.0) -> int:
        """
        Apply receive results handed over by the background thread.

        Args:
            timeout: Seconds to wait for the first result; 0 polls, None waits
                     indefinitely

        Returns:
            Number of results processed
        """
        processed = 0
        wait = timeout is None or timeout > 0
        while True:
            try:
                if processed == 0 and wait:
                    result = self._events.get(timeout=timeout)
                else:
                    result = self._events.get_nowait()
            except queue.Empty:
                return processed
            self._handle_receive(result)
            processed += 1

    def wait_for_turn(self, timeout: Optional[float] = None) -> TurnState:
        """Process events until the peer has moved, the game ended or time ran out."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.state == TurnState.AWAITING_REMOTE:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                break
            self.process_events(timeout=remaining)
        return self.state

    def close(self) -> TransportResult:
        """
        Close the connection and end the session if it is still running.

        A receive still waiting on the peer returns promptly and its result is
        discarded.
        """
        result = self.transport.close()
        if not self.is_over:
            self._end_session(ErrorKind.SESSION_CLOSED, "Session closed locally.")

        receiver = self._receiver
        if receiver is not None and receiver is not threading.current_thread():
            receiver.join(RECEIVER_JOIN_TIMEOUT)
            if receiver.is_alive():
                debug.warning("Receive thread did not stop after close", "coordinator")
        return result

    def _start_receiver(self):
        self._receiver = threading.Thread(target=self._receive_one,
                                          name="connect4net-receive", daemon=True)
        self._receiver.start()

    def _receive_one(self):
        self._events.put(self.transport.receive())

    def _handle_receive(self, result: TransportResult):
        if self.state != TurnState.AWAITING_REMOTE:
            debug.debug(f"Discarding receive result in state {self.state}", "coordinator")
            return

        if not result.ok:
            self._end_session(result.error or ErrorKind.TRANSPORT_IO_FAILURE, result.detail)
            return

        record = result.record
        if record is None:
            self._end_session(ErrorKind.PEER_CLOSED, result.detail)
            return

        if record.color != self.remote_color:
            self._end_session(ErrorKind.TRANSPORT_IO_FAILURE,
                              f"Peer sent a move for {record.color.name}, expected {self.remote_color.name}.")
            return

        expected_row = self.engine.next_open_row(record.col)
        if expected_row != record.row:
            self._end_session(ErrorKind.TRANSPORT_IO_FAILURE,
                              f"Peer move {tuple(record)} does not match local board (row {expected_row}).")
            return

        applied = self.engine.apply_move(record.color, record.col)
        if not applied.applied:
            self._end_session(ErrorKind.TRANSPORT_IO_FAILURE, f"Peer move {tuple(record)} was rejected.")
            return

        if self.engine.is_game_over():
            self._end_session(None, "")
        else:
            self._set_state(TurnState.LOCAL_TURN)

    def _set_state(self, state: TurnState):
        debug.debug(f"State {self.state} -> {state}", "coordinator")
        self.state = state
        if self.on_state_change:
            self.on_state_change(state)

    def _end_session(self, reason: Optional[ErrorKind], detail: str):
        self.end_reason = reason
        self.error_detail = detail
        if reason is None:
            debug.info(f"Game over, winner: {self.engine.get_winner().name}", "coordinator")
        else:
            debug.warning(f"Session ended ({reason.name}): {detail}", "coordinator")

        self._set_state(TurnState.GAME_OVER)
        if self.on_session_end:
            self.on_session_end(reason, detail)


def host_session(port: int = DEFAULT_PORT, address: str = "", engine: Optional[GameEngine] = None,
                 transport: Optional[Transport] = None, **listeners) -> TurnCoordinator:
    """
    Wait for a peer on `port` and return the coordinator for the first mover (YELLOW).

    Raises:
        SessionSetupError: if listening or accepting fails
    """
    transport = transport or Transport()
    result = transport.open(Role.LISTENER, address, port)
    if not result.ok:
        raise SessionSetupError(result.detail)
    return TurnCoordinator(engine or GameEngine(), transport, Color.YELLOW, **listeners)


def join_session(address: str = DEFAULT_HOST, port: int = DEFAULT_PORT, engine: Optional[GameEngine] = None,
                 transport: Optional[Transport] = None, **listeners) -> TurnCoordinator:
    """
    Connect to a hosting peer and return the coordinator for the second mover (RED).

    Raises:
        SessionSetupError: if the connection cannot be made
    """
    transport = transport or Transport()
    result = transport.open(Role.CONNECTOR, address, port)
    if not result.ok:
        raise SessionSetupError(result.detail)
    return TurnCoordinator(engine or GameEngine(), transport, Color.RED, **listeners)
