"""
cli.py - Terminal interface for local and networked Connect Four

This module is the collaborator that sits on top of the game core: it reads
columns from the keyboard, repaints the board from the engine's move
notifications, and reports how the game ended.
"""

from typing import List, Optional

from connect4net.debug import debug
from connect4net.utils import COLS, DEFAULT_HOST, DEFAULT_PORT, Color, ErrorKind, MoveRecord
from connect4net.game.rules import ConnectFourEnv, GameEngine
from connect4net.network.coordinator import (SessionSetupError, TurnCoordinator, TurnState,
                                             host_session, join_session)

END_MESSAGES = {
    ErrorKind.PEER_CLOSED: "Your opponent left the game.",
    ErrorKind.TRANSPORT_IO_FAILURE: "The connection to your opponent was lost.",
    ErrorKind.SESSION_CLOSED: "You left the game.",
}


class SimpleCLI:
    """Simple command-line interface for playing Connect Four."""

    def __init__(self, args):
        """
        Initialize the CLI.

        Args:
            args: Parsed arguments from run.py (command, ai, seed, address, port)
        """
        self.args = args
        self.engine: Optional[GameEngine] = None

    def run(self) -> None:
        """Run the game mode selected on the command line."""
        command = self.args.command
        if command == 'local':
            self.play_local()
        elif command == 'host':
            self.play_host()
        elif command == 'join':
            self.play_join()
        else:
            print("Please specify a command. Use --help for options.")

    def show_move(self, record: MoveRecord) -> None:
        """Engine listener: announce a move and repaint the board."""
        print(f"\n{record.color.name} plays column {record.col}")
        print(self.engine.render())

    def play_local(self) -> None:
        """Play on one terminal, against the computer or another person."""
        print("Starting a new Connect Four game!")
        print(f"Enter column number (0-{COLS - 1}) to make a move, 'q' to quit.")

        if getattr(self.args, 'ai', 'random') == 'random':
            self._play_against_computer()
        else:
            self._play_two_humans()

    def _play_against_computer(self) -> None:
        env = ConnectFourEnv()
        _, info = env.reset(seed=getattr(self.args, 'seed', None), options={'listeners': [self.show_move]})
        self.engine = env.engine
        print(self.engine.render())

        terminated = False
        while not terminated:
            move = self.get_human_move(info['valid_moves'], Color.YELLOW)
            if move is None:
                print("Quitting game.")
                return
            _, _, terminated, _, info = env.step(move)
            if info.get('invalid_move'):
                print(f"Column {move} is full.")

        self.announce_result(self.engine, Color.YELLOW)

    def _play_two_humans(self) -> None:
        self.engine = GameEngine()
        self.engine.subscribe(self.show_move)
        print(self.engine.render())

        color = Color.YELLOW
        while not self.engine.is_game_over():
            move = self.get_human_move(self.engine.get_valid_moves(), color)
            if move is None:
                print("Quitting game.")
                return
            if self.engine.apply_move(color, move).applied:
                color = color.other()
            else:
                print(f"Column {move} is full.")

        self.announce_result(self.engine)

    def play_host(self) -> None:
        """Wait for an opponent to connect, then play as YELLOW."""
        port = getattr(self.args, 'port', DEFAULT_PORT)
        address = getattr(self.args, 'address', None) or ""
        print(f"Waiting for an opponent on port {port}...")
        try:
            coordinator = host_session(port, address, engine=self._new_engine())
        except SessionSetupError as e:
            print(f"Could not start the game: {e.detail}")
            return
        self.play_network(coordinator)

    def play_join(self) -> None:
        """Connect to a hosting opponent, then play as RED."""
        port = getattr(self.args, 'port', DEFAULT_PORT)
        address = getattr(self.args, 'address', None) or DEFAULT_HOST
        print(f"Connecting to {address}:{port}...")
        try:
            coordinator = join_session(address, port, engine=self._new_engine())
        except SessionSetupError as e:
            print(f"Could not join the game: {e.detail}")
            return
        self.play_network(coordinator)

    def _new_engine(self) -> GameEngine:
        self.engine = GameEngine()
        self.engine.subscribe(self.show_move)
        return self.engine

    def play_network(self, coordinator: TurnCoordinator) -> None:
        """Alternate local input and waiting for the peer until the session ends."""
        color = coordinator.local_color
        print(f"Connected. You are {color.name}" + (" and move first." if coordinator.moves_first else "."))
        print(self.engine.render())

        try:
            coordinator.start()
            while not coordinator.is_over:
                if coordinator.state == TurnState.LOCAL_TURN:
                    move = self.get_human_move(self.engine.get_valid_moves(), color)
                    if move is None:
                        print("Quitting game.")
                        break
                    result = coordinator.request_move(move)
                    if not result.applied:
                        print(f"Column {move} is full.")
                else:
                    print("Waiting for your opponent...")
                    coordinator.wait_for_turn()
        finally:
            coordinator.close()

        if coordinator.ended_abnormally:
            print(END_MESSAGES.get(coordinator.end_reason, "The game ended unexpectedly."))
            debug.info(f"Session end detail: {coordinator.error_detail}", "cli")
        else:
            self.announce_result(self.engine, color)

    def get_human_move(self, valid_moves: List[int], color: Color) -> Optional[int]:
        """
        Read a column from the keyboard.

        Returns:
            Column index, or None if the player quits
        """
        while True:
            try:
                user_input = input(f"{color.name} move (columns {valid_moves}, q): ").strip().lower()
            except EOFError:
                return None

            if user_input == 'q':
                return None

            try:
                move = int(user_input)
            except ValueError:
                print("Invalid input. Please enter a column number or 'q'.")
                continue

            if 0 <= move < COLS:
                return move
            print(f"Column must be between 0 and {COLS - 1}.")

    def announce_result(self, engine: GameEngine, me: Optional[Color] = None) -> None:
        """Print the outcome of a finished game."""
        print("Game over!")
        winner = engine.get_winner()
        if winner == Color.EMPTY:
            print("It's a draw!")
        elif me is None:
            print(f"{winner.name} wins!")
        elif winner == me:
            print("You win! Congratulations!")
        else:
            print(f"{winner.name} wins! Better luck next time.")
