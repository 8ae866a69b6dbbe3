"""Relays public chat lines between instances."""

from ..infrastructure.message_bus import MessageBus
from ..schemas.bus_messages import ChatBroadcast
from ..structured_logging.enhanced_logging_config import get_logger
from .collaborators import RemoteChatLine

logger = get_logger("communications.chat_relay")


class ChatRelay:
    """Publishes local chat and turns relayed chat into broadcast lines."""

    def __init__(self, instance_id: str, bus: MessageBus | None):
        self.instance_id = instance_id
        self.bus = bus

    async def publish_local_chat(self, sender_name: str, text: str) -> bool:
        """
        Publish a chat line said on this instance.

        Returns:
            bool: True if handed to the bus
        """
        if self.bus is None or not self.bus.is_connected():
            return False
        return await self.bus.publish_chat(
            ChatBroadcast(sender_name=sender_name, sender_instance=self.instance_id, text=text)
        )

    def handle_inbound(self, message: ChatBroadcast) -> RemoteChatLine | None:
        """
        Convert a relayed chat broadcast into a line for local players.

        Our own broadcasts come back on the shared subject and are ignored.
        """
        if message.sender_instance == self.instance_id:
            return None
        logger.debug("Relayed chat received", sender=message.sender_name, sender_instance=message.sender_instance)
        return RemoteChatLine(instance=message.sender_instance, sender_name=message.sender_name, text=message.text)
