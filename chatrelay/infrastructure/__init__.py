"""
Infrastructure layer for chatrelay.

Adapters for the external transports: the NATS bus and the Redis presence
registry. Domain code depends on the MessageBus protocol, not on NATS.
"""

from .message_bus import ChatHandler, MessageBus, PrivateHandler

__all__ = ["ChatHandler", "MessageBus", "PrivateHandler"]
