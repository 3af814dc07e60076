"""
utils.py - Constants, enumerations and small helpers shared across connect4net

This module provides the board dimensions, disc colors, the move record that is
both the change-notification payload and the wire message, error kinds used by
the result tuples, and the ASCII board renderer.
"""

from enum import Enum, auto
from typing import NamedTuple, Optional
import numpy as np

# Game constants
ROWS = 6
COLS = 7
CONNECT_N = 4  # Number of discs in a row to win

# Network constants
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 4000
FRAME_FORMAT = "!iii"  # row, col, color as 32-bit ints in network byte order
ACCEPT_POLL_INTERVAL = 0.2  # seconds between checks for a cancelled accept


class Color(Enum):
    """Disc colors; also used as the cell state of the grid."""
    EMPTY = 0
    YELLOW = 1  # First mover
    RED = 2     # Second mover

    def other(self) -> 'Color':
        """Get the opposing color."""
        if self == Color.YELLOW:
            return Color.RED
        elif self == Color.RED:
            return Color.YELLOW
        return Color.EMPTY

    def __str__(self):
        if self == Color.EMPTY:
            return " "
        elif self == Color.YELLOW:
            return "Y"
        else:
            return "R"


class ErrorKind(Enum):
    """Failure kinds reported through MoveResult and TransportResult."""
    INVALID_MOVE = auto()
    OUT_OF_TURN = auto()
    TRANSPORT_SETUP_FAILURE = auto()
    TRANSPORT_IO_FAILURE = auto()
    PEER_CLOSED = auto()
    NOT_CONNECTED = auto()
    SESSION_CLOSED = auto()


class MoveRecord(NamedTuple):
    """A single placed disc: (row, col, color)."""
    row: int
    col: int
    color: Color


class MoveResult(NamedTuple):
    """Outcome of a move request. `column` is the column that was attempted."""
    applied: bool
    column: int
    record: Optional[MoveRecord] = None
    error: Optional[ErrorKind] = None


# Forward-only direction vectors (row, col) walked from each recorded disc
STREAK_DIRECTIONS = (
    (1, 0),   # down
    (0, 1),   # right
    (1, 1),   # down-right
    (1, -1),  # down-left
)


def is_valid_position(row: int, col: int) -> bool:
    """
    Check if a position is within the board boundaries.

    Args:
        row: Row index
        col: Column index

    Returns:
        True if position is valid, False otherwise
    """
    return 0 <= row < ROWS and 0 <= col < COLS


def is_valid_record(record: MoveRecord) -> bool:
    """Check that a record names a real cell and a non-empty color."""
    return is_valid_position(record.row, record.col) and record.color != Color.EMPTY


def render_board_ascii(board: np.ndarray) -> str:
    """
    Render the board as ASCII art.

    Args:
        board: The game grid

    Returns:
        ASCII representation of the board, column numbers underneath
    """
    result = ["|" + "-" * (COLS * 2 - 1) + "|"]

    for row in range(ROWS):
        cells = [str(Color(int(board[row, col]))) for col in range(COLS)]
        result.append("|" + " ".join(cells) + "|")

    result.append("|" + "-" * (COLS * 2 - 1) + "|")
    result.append("|" + " ".join(str(i) for i in range(COLS)) + "|")

    return "\n".join(result)
