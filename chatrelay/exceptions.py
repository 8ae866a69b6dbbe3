"""
Exception hierarchy for chatrelay.

Only genuine failures are exceptions. "Recipient not found" and rejected
command input are ordinary outcomes returned by the router and the command
layer, not raised.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ErrorContext:
    """Contextual information attached to relay errors."""

    instance_id: str | None = None
    channel: str | None = None
    player_name: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {
            "instance_id": self.instance_id,
            "channel": self.channel,
            "player_name": self.player_name,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class RelayError(Exception):
    """
    Base exception for all chatrelay errors.

    Carries structured context and details so callers can log the failure
    with one call.
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context.to_dict(),
            "details": self.details,
        }


class TransportUnavailableError(RelayError):
    """The bus or the presence store cannot be reached."""

    def __init__(self, message: str, transport: str = "unknown", **kwargs):
        super().__init__(message, **kwargs)
        self.transport = transport
        self.details["transport"] = transport


class MessageDecodeError(RelayError):
    """An inbound bus payload is malformed or lacks a required field."""

    def __init__(self, message: str, field_name: str | None = None, payload_preview: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field_name = field_name
        if field_name:
            self.details["field"] = field_name
        if payload_preview is not None:
            self.details["payload_preview"] = payload_preview[:200]


def log_relay_error(error: RelayError, level: str = "error") -> None:
    """Log a RelayError with its structured context."""
    getattr(logger, level)("Relay error occurred", **error.to_dict())
