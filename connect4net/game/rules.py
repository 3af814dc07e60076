"""
rules.py - Move validation, game state queries and a Gymnasium environment

This module provides:
1. GameEngine, the single owner of board mutation. Local moves, computer moves
   and moves received from a network peer all pass through apply_move.
2. ConnectFourEnv, a gymnasium-compatible view of a local game against the
   random computer player.
"""

import threading
import numpy as np
import gymnasium as gym
from gymnasium import spaces
from typing import Callable, Dict, List, Optional, Tuple

from connect4net.debug import debug
from connect4net.utils import COLS, ROWS, Color, ErrorKind, MoveRecord, MoveResult
from connect4net.game.board import Board

MoveListener = Callable[[MoveRecord], None]


class GameEngine:
    """
    Validates and applies moves on one Board.

    apply_move is a critical section guarded by a re-entrant lock, so a local
    move and a move arriving from the network can never interleave. Listeners
    are called inside the lock, in subscription order, once per applied move;
    they may read the engine but must not move. An exception raised by a
    listener is logged and does not undo or fail the move.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        """
        Initialize a new game.

        Args:
            rng: Random generator used by random_move (a fresh one if omitted)
        """
        debug.debug("Initializing GameEngine", "engine")
        self.board = Board()
        self.rng = rng if rng is not None else np.random.default_rng()
        self._lock = threading.RLock()
        self._listeners: List[MoveListener] = []

    def subscribe(self, listener: MoveListener) -> None:
        """Register a callback invoked with the MoveRecord of every applied move."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: MoveListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def apply_move(self, color: Color, col: int) -> MoveResult:
        """
        Drop a disc of `color` into column `col`.

        Args:
            color: YELLOW or RED
            col: Column index (0-indexed)

        Returns:
            MoveResult; applied is False (and nothing changed) for an EMPTY
            color, a column outside the board or a full column
        """
        with self._lock:
            if color == Color.EMPTY:
                debug.debug(f"Invalid move: empty color in column {col}", "engine")
                return MoveResult(False, col, error=ErrorKind.INVALID_MOVE)

            if not (0 <= col < COLS):
                debug.debug(f"Invalid move: column {col} out of bounds", "engine")
                return MoveResult(False, col, error=ErrorKind.INVALID_MOVE)

            if self.board.is_full(col):
                debug.debug(f"Invalid move: column {col} is full", "engine")
                return MoveResult(False, col, error=ErrorKind.INVALID_MOVE)

            row = int(self.board.next_open[col])
            self.board.next_open[col] -= 1
            self.board.place(row, col, color)

            record = MoveRecord(row, col, color)
            debug.debug(f"Applied {color.name} at ({row}, {col})", "engine")

            # The move is committed; a failing listener only loses its notification
            for listener in list(self._listeners):
                try:
                    listener(record)
                except Exception as e:
                    debug.error(f"Move listener {listener!r} failed on {record}: {e}", "engine")

            return MoveResult(True, col, record)

    def random_move(self, color: Color) -> MoveResult:
        """
        Attempt a move in a uniformly random column.

        The column may be full; the caller retries on rejection.
        """
        col = int(self.rng.integers(0, COLS))
        debug.trace(f"Random column {col} for {color.name}", "engine")
        return self.apply_move(color, col)

    def play_random_move(self, color: Color) -> MoveResult:
        """
        Keep drawing random columns until one accepts the disc.

        Returns:
            The applied MoveResult, or a rejected one if every column is full
        """
        with self._lock:
            if self.board.is_board_full():
                return MoveResult(False, -1, error=ErrorKind.INVALID_MOVE)

            result = self.random_move(color)
            while not result.applied:
                result = self.random_move(color)
            return result

    def is_column_full(self, col: int) -> bool:
        with self._lock:
            return self.board.is_full(col)

    def next_open_row(self, col: int) -> int:
        """Row the next disc in `col` would land on; -1 when the column is full."""
        with self._lock:
            return int(self.board.next_open[col])

    def is_game_over(self) -> bool:
        """
        Check if the game is over.

        Returns:
            True when a winner exists or every column is full (a draw)
        """
        with self._lock:
            return self.board.winner != Color.EMPTY or self.board.is_board_full()

    def is_draw(self) -> bool:
        with self._lock:
            return self.board.winner == Color.EMPTY and self.board.is_board_full()

    def get_winner(self) -> Color:
        """The winning color, or EMPTY while undecided or drawn."""
        with self._lock:
            return self.board.winner

    def get_valid_moves(self) -> List[int]:
        with self._lock:
            return [col for col in range(COLS) if not self.board.is_full(col)]

    def snapshot(self) -> np.ndarray:
        """A copy of the grid; safe to hand to observers."""
        with self._lock:
            return self.board.snapshot()

    def render(self) -> str:
        with self._lock:
            return self.board.render()


class ConnectFourEnv(gym.Env):
    """
    Connect Four against the random computer player, as a Gymnasium environment.

    The agent plays YELLOW and moves first. After every accepted agent move
    that does not end the game, the environment answers with one random RED
    move through the same GameEngine.
    """

    metadata = {'render_modes': ['ascii', 'human'], 'render_fps': 4}

    agent_color = Color.YELLOW
    opponent_color = Color.RED

    def __init__(self, render_mode: Optional[str] = None):
        """
        Initialize the environment.

        Args:
            render_mode: None, 'ascii' (render returns a string) or 'human' (prints)
        """
        debug.debug("Initializing ConnectFourEnv", "env")

        self.action_space = spaces.Discrete(COLS)
        # 6x7 board with 3 possible cell values (0, 1, 2)
        self.observation_space = spaces.Box(low=0, high=2, shape=(ROWS, COLS), dtype=np.int8)

        self.render_mode = render_mode
        self.engine = GameEngine(rng=self.np_random)
        self.last_opponent_move: Optional[MoveRecord] = None

        self.reward_win = 1.0
        self.reward_lose = -1.0
        self.reward_draw = 0.1
        self.reward_invalid_move = -0.5
        self.reward_step = -0.01

    def reset(self, seed: Optional[int] = None, options: Optional[Dict] = None) -> Tuple[np.ndarray, Dict]:
        """
        Start a new game on a fresh engine.

        Args:
            seed: Seed for the environment's random generator
            options: Optional 'listeners' list subscribed to the new engine

        Returns:
            Initial observation and info dictionary
        """
        debug.debug("Resetting environment", "env")
        super().reset(seed=seed)

        self.engine = GameEngine(rng=self.np_random)
        for listener in (options or {}).get('listeners', []):
            self.engine.subscribe(listener)
        self.last_opponent_move = None

        if self.render_mode == "human":
            self.render()

        return self._get_observation(), self._get_info()

    def step(self, action: int) -> Tuple[np.ndarray, float, bool, bool, Dict]:
        """
        Play the agent's disc in column `action`, then the opponent's reply.

        Returns:
            Tuple of (observation, reward, terminated, truncated, info)
        """
        debug.debug(f"Environment step with action {action}", "env")

        if self.engine.is_game_over():
            debug.warning("Step called after the game ended", "env")
            info = self._get_info()
            info['invalid_move'] = True
            return self._get_observation(), 0.0, True, False, info

        result = self.engine.apply_move(self.agent_color, int(action))
        if not result.applied:
            debug.warning(f"Invalid action: {action}", "env")
            info = self._get_info()
            info['invalid_move'] = True
            return self._get_observation(), self.reward_invalid_move, False, True, info

        self.last_opponent_move = None
        if not self.engine.is_game_over():
            reply = self.engine.play_random_move(self.opponent_color)
            self.last_opponent_move = reply.record

        reward, terminated = self._score()

        if self.render_mode == "human":
            self.render()

        return self._get_observation(), reward, terminated, False, self._get_info()

    def _score(self) -> Tuple[float, bool]:
        winner = self.engine.get_winner()
        if winner == self.agent_color:
            debug.info("Game over: agent wins", "env")
            return self.reward_win, True
        if winner == self.opponent_color:
            debug.info("Game over: computer wins", "env")
            return self.reward_lose, True
        if self.engine.is_draw():
            debug.info("Game over: draw", "env")
            return self.reward_draw, True
        return self.reward_step, False

    def render(self) -> Optional[str]:
        if self.render_mode == "ascii":
            return self.engine.render()
        if self.render_mode == "human":
            print(self.engine.render())
        return None

    def _get_observation(self) -> np.ndarray:
        return self.engine.snapshot().astype(np.int8)

    def _get_info(self) -> Dict:
        return {
            'valid_moves': self.engine.get_valid_moves(),
            'winner': self.engine.get_winner().name,
            'moves_made': self.engine.board.disc_count,
            'winning_line': self.engine.board.get_winning_line(),
            'last_move': self.engine.board.last_move,
            'opponent_move': self.last_opponent_move,
        }

    def close(self):
        pass
