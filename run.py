#!/usr/bin/env python3
"""
run.py - Main entry point for connect4net
"""

import argparse

from connect4net.debug import debug
from connect4net.interfaces.cli import SimpleCLI
from connect4net.utils import DEFAULT_HOST, DEFAULT_PORT


def configure_debug(args):
    """Configure logging from --debug, --debug_level and --log_file."""
    debug.set_from_string('debug' if args.debug else args.debug_level)
    if args.log_file:
        debug.configure(log_file=args.log_file)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Connect Four, locally or between two networked peers',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
    Examples:

    # Play against the random computer player
    python run.py local

    # Two players on one terminal
    python run.py local --ai none

    # Host a networked game (you play YELLOW and move first)
    python run.py host --port 4000

    # Join a hosted game (you play RED)
    python run.py join --address 192.168.1.20 --port 4000

    # Log network traffic to a file
    python run.py host --debug_level debug --log_file connect4net.log
    """
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--debug',
        action='store_true',
        help='Enable debug mode (equivalent to --debug_level debug)')
    common.add_argument('--debug_level',
        choices=['none', 'error', 'warning', 'info', 'debug', 'trace'],
        default='warning',
        help='Set debug level: none (silent), error, warning, info, debug, trace (most verbose)')
    common.add_argument('--log_file',
        type=str,
        help='Also write log messages to this file')

    subparsers = parser.add_subparsers(dest='command', help='Game mode')

    local_parser = subparsers.add_parser('local', parents=[common],
        help='Play on this terminal')
    local_parser.add_argument('--ai',
        choices=['random', 'none'],
        default='random',
        help='Opponent: random (computer picks random columns), none (two human players)')
    local_parser.add_argument('--seed',
        type=int,
        help='Seed for the computer player')

    host_parser = subparsers.add_parser('host', parents=[common],
        help='Wait for a networked opponent')
    host_parser.add_argument('--address',
        type=str,
        default='',
        help='Interface to listen on (default: all interfaces)')
    host_parser.add_argument('--port',
        type=int,
        default=DEFAULT_PORT,
        help=f'Port to listen on (default: {DEFAULT_PORT})')

    join_parser = subparsers.add_parser('join', parents=[common],
        help='Connect to a hosting opponent')
    join_parser.add_argument('--address',
        type=str,
        default=DEFAULT_HOST,
        help=f'Host to connect to (default: {DEFAULT_HOST})')
    join_parser.add_argument('--port',
        type=int,
        default=DEFAULT_PORT,
        help=f'Port to connect to (default: {DEFAULT_PORT})')

    return parser


def main():
    """Main entry point for connect4net."""
    parser = build_parser()
    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        return

    configure_debug(args)
    try:
        SimpleCLI(args).run()
    except KeyboardInterrupt:
        print("\nInterrupted.")


if __name__ == "__main__":
    main()
