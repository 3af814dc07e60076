"""
connect4net.network - Networked play between two peers

This package contains the TCP transport for move records and the turn
coordinator that keeps the two peers' engines in step.
"""

from connect4net.network.transport import Role, Transport, TransportResult
from connect4net.network.coordinator import (SessionSetupError, TurnCoordinator, TurnState,
                                             host_session, join_session)

__all__ = ['Role', 'Transport', 'TransportResult', 'SessionSetupError',
           'TurnCoordinator', 'TurnState', 'host_session', 'join_session']
