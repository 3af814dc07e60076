"""
board.py - Board representation and win detection for Connect Four

This module implements the Board class: the grid of cells, the per-column
"next open row" counters, and the per-color disc position lists that make the
four-in-a-row check proportional to the number of discs placed rather than to
the size of the grid.

The Board performs no validation. All placements go through GameEngine, which
checks colors and columns and owns the counters' decrement.
"""

import numpy as np
from typing import Dict, List, Tuple

from connect4net.debug import debug
from connect4net.utils import (ROWS, COLS, CONNECT_N, STREAK_DIRECTIONS, Color,
                               is_valid_position, render_board_ascii)


class Board:
    """
    Represents a Connect Four game board.

    Row 0 is the top of the grid and rows grow downward, so discs fall toward
    row ROWS - 1. A Board is used for exactly one game and never reset.
    """

    def __init__(self):
        """Initialize an empty board."""
        debug.debug("Initializing new Board", "board")
        self.grid = np.zeros((ROWS, COLS), dtype=int)
        self.next_open = np.full(COLS, ROWS - 1, dtype=int)
        self.positions: Dict[Color, List[Tuple[int, int]]] = {
            Color.YELLOW: [],
            Color.RED: [],
        }
        self._winner = Color.EMPTY
        self.last_move = None

    @property
    def winner(self) -> Color:
        """The first color to complete a streak, or EMPTY."""
        return self._winner

    @property
    def disc_count(self) -> int:
        return sum(len(cells) for cells in self.positions.values())

    def is_full(self, col: int) -> bool:
        """True once the column's open-row counter has passed the top row."""
        return self.next_open[col] < 0

    def is_board_full(self) -> bool:
        return bool(np.all(self.next_open < 0))

    def place(self, row: int, col: int, color: Color) -> None:
        """
        Write a disc into the grid and check for a new streak.

        Args:
            row: Destination row, already computed from the column counter
            col: Destination column
            color: YELLOW or RED
        """
        debug.trace(f"Placing {color.name} at ({row}, {col})", "board")
        self.grid[row, col] = color.value
        self.positions[color].append((row, col))
        self.last_move = (row, col)

        debug.start_timer("win_check")
        found = self._check_streak(color)
        debug.end_timer("win_check", "board")

        if found and self._winner == Color.EMPTY:
            self._winner = color
            debug.info(f"{color.name} wins after placing at ({row}, {col})", "board")

    def _check_streak(self, color: Color) -> bool:
        """
        Look for four in a row of `color`.

        Every recorded disc of the color is tried as the start of a streak in
        the four forward directions. Repeating the scan over old discs is
        harmless: an existing streak is simply found again.
        """
        value = color.value
        for row, col in self.positions[color]:
            for dr, dc in STREAK_DIRECTIONS:
                if self._streak_from(row, col, dr, dc, value):
                    return True
        return False

    def _streak_from(self, row: int, col: int, dr: int, dc: int, value: int) -> bool:
        for step in range(1, CONNECT_N):
            r, c = row + dr * step, col + dc * step
            if not is_valid_position(r, c) or self.grid[r, c] != value:
                return False
        return True

    def get_winning_line(self) -> List[Tuple[int, int]]:
        """
        Get the positions of the winning streak.

        Returns:
            The CONNECT_N (row, col) positions, or an empty list if no winner
        """
        if self._winner == Color.EMPTY:
            return []

        value = self._winner.value
        for row, col in self.positions[self._winner]:
            for dr, dc in STREAK_DIRECTIONS:
                if self._streak_from(row, col, dr, dc, value):
                    return [(row + dr * i, col + dc * i) for i in range(CONNECT_N)]
        return []

    def snapshot(self) -> np.ndarray:
        """
        Get a copy of the grid.

        Returns:
            2D numpy array of color values; changing it does not affect the board
        """
        return self.grid.copy()

    def render(self) -> str:
        return render_board_ascii(self.grid)

    def __str__(self) -> str:
        return self.render()
