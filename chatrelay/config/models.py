"""
Pydantic-based configuration models for chatrelay.

Every setting can be supplied through environment variables (or a .env file)
using the prefix of its section, for example RELAY_INSTANCE_ID,
BUS_URL, PRESENCE_REDIS_URL, PRESENCE_TTL_SECONDS.
"""

import json
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_INSTANCE_ID = "server1"


def _parse_env_list(candidate: Any) -> list[str]:
    """Parse a value from the environment as a JSON list or CSV."""
    if candidate is None:
        return []
    if isinstance(candidate, list | tuple):
        return [str(item).strip() for item in candidate if str(item).strip()]
    s = str(candidate).strip()
    if not s:
        return []
    try:
        loaded = json.loads(s)
        if isinstance(loaded, list):
            return [str(item).strip() for item in loaded if str(item).strip()]
    except json.JSONDecodeError:
        pass
    return [item.strip() for item in s.split(",") if item.strip()]


class RelayConfig(BaseSettings):
    """Identity of this instance and main-context dispatch settings."""

    instance_id: str = Field(default=DEFAULT_INSTANCE_ID, description="Unique name of this server instance")
    enabled: bool = Field(default=True, description="Enable cross-instance features (bus and presence)")
    dispatch_queue_size: int = Field(default=1000, description="Maximum pending main-context callbacks")
    dispatch_tick_interval: float = Field(default=0.05, description="Seconds between main-context queue drains")
    vanish_resync_delay: float = Field(
        default=1.0, description="Seconds to wait after a visibility extension loads before re-syncing presence"
    )
    visibility_extension_markers: str = Field(
        default="vanish,essentials",
        description="Substrings identifying visibility extensions (JSON list or CSV, case-insensitive)",
    )

    @field_validator("instance_id")
    @classmethod
    def validate_instance_id(cls, v: str) -> str:
        """Validate instance id is usable as a presence key suffix."""
        v = v.strip()
        if not v:
            raise ValueError("Instance id cannot be empty")
        if any(ch in v for ch in "*?[] "):
            raise ValueError("Instance id cannot contain whitespace or glob characters")
        if v == DEFAULT_INSTANCE_ID:
            logger.warning(
                "Using default instance id; set RELAY_INSTANCE_ID to a unique name per instance",
                instance_id=v,
            )
        return v

    @field_validator("visibility_extension_markers", mode="before")
    @classmethod
    def normalize_markers(cls, v: Any) -> str:
        """Accept a list, a JSON list or CSV; store as lowercase CSV."""
        return ",".join(marker.lower() for marker in _parse_env_list(v))

    @property
    def extension_markers(self) -> list[str]:
        """Visibility extension markers as a list."""
        return _parse_env_list(self.visibility_extension_markers)

    @field_validator("dispatch_queue_size")
    @classmethod
    def validate_queue_size(cls, v: int) -> int:
        """Validate the dispatch queue bound."""
        if v < 1:
            raise ValueError("Dispatch queue size must be at least 1")
        return v

    @field_validator("dispatch_tick_interval", "vanish_resync_delay")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        """Validate intervals are positive."""
        if v <= 0:
            raise ValueError("Interval must be positive")
        return v

    model_config = {"env_prefix": "RELAY_", "case_sensitive": False, "extra": "ignore"}


class BusConfig(BaseSettings):
    """NATS bus configuration."""

    url: str = Field(default="nats://localhost:4222", description="NATS server URL")
    chat_channel: str = Field(default="chatrelay.chat", description="Subject for chat broadcasts")
    private_channel: str = Field(default="chatrelay.private", description="Subject for private messages")
    max_reconnect_attempts: int = Field(default=5, description="Transport-level reconnection attempts")
    reconnect_time_wait: int = Field(default=2, description="Reconnect wait time in seconds")
    connect_timeout: int = Field(default=5, description="Connection timeout in seconds")
    ping_interval: int = Field(default=30, description="Ping interval in seconds")
    max_outstanding_pings: int = Field(default=3, description="Maximum outstanding pings")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate the NATS URL scheme."""
        if not v.startswith(("nats://", "tls://", "ws://", "wss://")):
            raise ValueError("Bus URL must start with nats://, tls://, ws:// or wss://")
        return v

    @field_validator("chat_channel", "private_channel")
    @classmethod
    def validate_channel(cls, v: str) -> str:
        """Channels are literal NATS subjects; wildcards would widen the subscription."""
        v = v.strip()
        if not v or "*" in v or ">" in v or " " in v:
            raise ValueError("Channel must be a non-empty NATS subject without wildcards")
        return v

    @field_validator("connect_timeout", "ping_interval", "reconnect_time_wait")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate value is positive."""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @model_validator(mode="after")
    def validate_distinct_channels(self) -> "BusConfig":
        """The two logical channels must map to different subjects."""
        if self.chat_channel == self.private_channel:
            raise ValueError("Chat and private channels must differ")
        return self

    model_config = {"env_prefix": "BUS_", "case_sensitive": False, "extra": "ignore"}


class PresenceConfig(BaseSettings):
    """Redis presence registry configuration."""

    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    key_prefix: str = Field(default="chatrelay:online:", description="Prefix of per-instance presence sets")
    ttl_seconds: int = Field(default=60, description="Expiry of an instance presence set without heartbeat")
    heartbeat_interval_seconds: float = Field(default=25.0, description="Seconds between TTL refreshes")
    scan_count: int = Field(default=100, description="COUNT hint for SCAN over presence keys")
    socket_timeout: float = Field(default=2.0, description="Redis socket timeout in seconds")
    socket_connect_timeout: float = Field(default=2.0, description="Redis connect timeout in seconds")

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        """Validate the Redis URL scheme."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss:// or unix://")
        return v

    @field_validator("key_prefix")
    @classmethod
    def validate_key_prefix(cls, v: str) -> str:
        """The prefix is used in a SCAN MATCH pattern, so it must be glob-free."""
        if not v or any(ch in v for ch in "*?[]"):
            raise ValueError("Key prefix must be non-empty and free of glob characters")
        return v

    @field_validator("ttl_seconds", "scan_count")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate value is positive."""
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator("heartbeat_interval_seconds", "socket_timeout", "socket_connect_timeout")
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        """Validate value is positive."""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @model_validator(mode="after")
    def validate_heartbeat_interval(self) -> "PresenceConfig":
        """A heartbeat must survive one missed tick before the TTL lapses."""
        if self.heartbeat_interval_seconds >= self.ttl_seconds / 2:
            logger.error(
                "Heartbeat interval too long for presence TTL",
                heartbeat_interval_seconds=self.heartbeat_interval_seconds,
                ttl_seconds=self.ttl_seconds,
            )
            raise ValueError("heartbeat_interval_seconds must be strictly less than ttl_seconds / 2")
        return self

    model_config = {"env_prefix": "PRESENCE_", "case_sensitive": False, "extra": "ignore"}


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    environment: str = Field(default="local", description="Logging environment")
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="human", description="Log format")
    disable_logging: bool = Field(default=False, description="Disable all logging")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate logging environment."""
        valid_environments = ["local", "unit_test", "e2e_test", "production"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of {valid_environments}, got '{v}'")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}, got '{v}'")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "human", "colored"]
        if v not in valid_formats:
            raise ValueError(f"Log format must be one of {valid_formats}, got '{v}'")
        return v

    model_config = {"env_prefix": "LOGGING_", "case_sensitive": False, "extra": "ignore"}


class AppConfig(BaseSettings):
    """
    Composite application configuration.

    Aggregates all section configs. Access via get_config().
    """

    relay: RelayConfig = Field(default_factory=RelayConfig)
    bus: BusConfig = Field(default_factory=BusConfig)
    presence: PresenceConfig = Field(default_factory=PresenceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "case_sensitive": False, "extra": "ignore"}
