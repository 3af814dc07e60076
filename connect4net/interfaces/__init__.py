"""
connect4net.interfaces - User interfaces for Connect Four

This package contains the terminal interface that drives local and networked
games.
"""

# Don't import anything here to avoid circular imports
__all__ = []
