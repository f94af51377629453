"""
WebSocket server components for the IPS Agent.

This module contains the peer delivery channel, the inbound message router,
and the server that wires them to a WebSocket endpoint.
"""

from .channel import DeliveryChannel
from .router import MessageRouter
from .app import AgentServer

__all__ = ['DeliveryChannel', 'MessageRouter', 'AgentServer']
