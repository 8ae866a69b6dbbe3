"""Wire schemas for chatrelay bus traffic."""

from .bus_messages import (
    BusMessage,
    ChannelKind,
    ChatBroadcast,
    PrivateMessage,
    decode,
    decode_chat_broadcast,
    decode_private_message,
    encode,
)

__all__ = [
    "BusMessage",
    "ChannelKind",
    "ChatBroadcast",
    "PrivateMessage",
    "decode",
    "decode_chat_broadcast",
    "decode_private_message",
    "encode",
]
