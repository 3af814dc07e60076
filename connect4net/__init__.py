"""
connect4net - Connect Four played locally or between two networked peers

This package provides the board and game engine, a TCP transport that carries
fixed-size move records, and the turn coordinator that keeps two peer engines
in step.
"""

# Version number
__version__ = '0.2.0'
