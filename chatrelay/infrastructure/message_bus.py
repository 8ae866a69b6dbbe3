"""
Message bus abstraction for chatrelay.

Components that publish or consume relay traffic depend on this protocol, not
on NATS directly, so tests can substitute a fake bus.
"""

from collections.abc import Callable
from typing import Any, Protocol

from ..schemas.bus_messages import ChatBroadcast, PrivateMessage

ChatHandler = Callable[[ChatBroadcast], Any]
PrivateHandler = Callable[[PrivateMessage], Any]


class MessageBus(Protocol):
    """
    Protocol for the inter-instance bus.

    Implementations must never raise from connect() or publish(); transport
    failures surface as False return values and a disconnected state.
    """

    async def connect(self) -> bool:
        """
        Connect and subscribe to the chat and private channels.

        Returns:
            bool: True if connected, False otherwise
        """
        ...

    async def disconnect(self) -> None:
        """Unsubscribe and close. Idempotent."""
        ...

    def is_connected(self) -> bool: ...

    async def publish(self, channel: str, payload: str) -> bool:
        """
        Fire-and-forget publish of an encoded payload.

        Returns:
            bool: True if handed to the transport, False if not connected or failed
        """
        ...

    async def publish_chat(self, message: ChatBroadcast) -> bool: ...

    async def publish_private(self, message: PrivateMessage) -> bool: ...

    def on_chat(self, handler: ChatHandler) -> None: ...

    def on_private(self, handler: PrivateHandler) -> None: ...
