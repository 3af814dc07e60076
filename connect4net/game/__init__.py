"""
connect4net.game - Core game mechanics for Connect Four

This package contains the board representation, the move-validating game
engine and a Gymnasium environment for local games against the computer.
"""

from connect4net.game.board import Board
from connect4net.game.rules import GameEngine, ConnectFourEnv

__all__ = ['Board', 'GameEngine', 'ConnectFourEnv']
