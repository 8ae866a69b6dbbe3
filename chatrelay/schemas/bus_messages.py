"""
Wire schemas and codec for messages exchanged between relay instances.

Two payloads travel over the bus: chat broadcasts and private messages. Both
are JSON objects with camelCase field names. Decoding is permissive about
extra fields and strict about the required ones; a payload that fails
validation raises MessageDecodeError, which the bus boundary logs and drops.
"""

import uuid
from enum import StrEnum
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ..exceptions import MessageDecodeError


class ChannelKind(StrEnum):
    """Logical bus channels."""

    CHAT = "chat"
    PRIVATE = "private"


class _WireModel(BaseModel):
    """Shared wire settings: immutable, camelCase on the wire, extras ignored."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def _require_non_blank(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("must not be empty")
    return v


class ChatBroadcast(_WireModel):
    """A chat line said on one instance and relayed to every other instance."""

    sender_name: str = Field(..., description="Display name of the speaker")
    sender_instance: str = Field(..., description="Instance the speaker is connected to")
    text: str = Field(..., description="Chat text, already validated by the caller")

    @field_validator("sender_name", "sender_instance")
    @classmethod
    def validate_required(cls, v: str) -> str:
        """Reject empty sender fields."""
        return _require_non_blank(v)


class PrivateMessage(_WireModel):
    """A private message addressed by name to a player on some other instance."""

    sender_id: uuid.UUID | None = Field(None, description="Sender identity on the origin instance")
    sender_name: str = Field(..., description="Display name of the sender")
    sender_instance: str = Field("", description="Origin instance")
    recipient_name: str = Field(..., description="Display name of the recipient")
    text: str = Field(..., description="Message text, already validated by the caller")

    @field_validator("sender_name", "recipient_name")
    @classmethod
    def validate_required(cls, v: str) -> str:
        """Reject empty sender and recipient names."""
        return _require_non_blank(v)


BusMessage = ChatBroadcast | PrivateMessage

_SCHEMAS: dict[ChannelKind, type[ChatBroadcast] | type[PrivateMessage]] = {
    ChannelKind.CHAT: ChatBroadcast,
    ChannelKind.PRIVATE: PrivateMessage,
}


def encode(message: BusMessage) -> str:
    """
    Encode a bus message as JSON text using wire field names.

    Args:
        message: ChatBroadcast or PrivateMessage

    Returns:
        JSON text
    """
    return message.model_dump_json(by_alias=True)


def _first_error_field(error: ValidationError) -> str | None:
    errors = error.errors()
    if not errors or not errors[0].get("loc"):
        return None
    return str(errors[0]["loc"][0])


_MessageT = TypeVar("_MessageT", ChatBroadcast, PrivateMessage)


def _decode(schema: type[_MessageT], text: str | bytes) -> _MessageT:
    try:
        return schema.model_validate_json(text)
    except ValidationError as e:
        preview = text.decode("utf-8", errors="replace") if isinstance(text, bytes) else text
        raise MessageDecodeError(
            f"Invalid {schema.__name__} payload: {e.error_count()} validation error(s)",
            field_name=_first_error_field(e),
            payload_preview=preview,
        ) from e


def decode_chat_broadcast(text: str | bytes) -> ChatBroadcast:
    """Decode a chat channel payload. Raises MessageDecodeError."""
    return _decode(ChatBroadcast, text)


def decode_private_message(text: str | bytes) -> PrivateMessage:
    """Decode a private channel payload. Raises MessageDecodeError."""
    return _decode(PrivateMessage, text)


def decode(channel_kind: ChannelKind | str, text: str | bytes) -> BusMessage:
    """
    Decode a payload received on the given logical channel.

    Args:
        channel_kind: ChannelKind (or its string value)
        text: Raw payload

    Returns:
        The decoded message

    Raises:
        MessageDecodeError: If the channel is unknown or the payload is invalid
    """
    try:
        kind = ChannelKind(channel_kind)
    except ValueError as e:
        raise MessageDecodeError(f"Unknown channel kind: {channel_kind}", field_name="channel") from e
    return _decode(_SCHEMAS[kind], text)
