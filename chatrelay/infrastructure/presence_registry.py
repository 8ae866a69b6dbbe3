"""
Redis-backed presence registry.

Each instance owns one Redis set, ``<key_prefix><instance_id>``, holding the
lowercase names of its online players. The set carries a TTL that the
heartbeat keeps refreshing; if an instance dies without cleaning up, its set
expires on its own.

Every operation degrades to a no-op (or False) when Redis is unreachable.
Callers treat an unreachable registry the same as "player not online".
"""

from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..config.models import PresenceConfig
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

# Errors that mean "registry unreachable or misbehaving"; never propagated
_REGISTRY_ERRORS = (RedisError, OSError, TimeoutError)


class PresenceRegistry:
    """Shared record of which player names are online on which instance."""

    def __init__(self, config: PresenceConfig, instance_id: str, client: Any = None):
        """
        Initialize the registry.

        Args:
            config: Presence configuration
            instance_id: Local instance identifier
            client: Optional pre-built async Redis client (connect() builds one otherwise)
        """
        self.config = config
        self.instance_id = instance_id
        self._client: Any = client
        self._healthy = False
        # True once the local set was deleted on shutdown; register() then refuses it
        self._cleaned_up = False

    def key_for(self, instance_id: str | None = None) -> str:
        """Presence key of an instance (the local one by default)."""
        return f"{self.config.key_prefix}{instance_id or self.instance_id}"

    @property
    def scan_pattern(self) -> str:
        return f"{self.config.key_prefix}*"

    async def connect(self) -> bool:
        """
        Create the Redis client if needed and check it answers PING.

        Returns:
            bool: True if Redis responded
        """
        self._cleaned_up = False
        if self._client is None:
            self._client = redis.Redis.from_url(
                self.config.redis_url,
                decode_responses=True,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_connect_timeout,
            )
        try:
            await self._client.ping()
        except _REGISTRY_ERRORS as e:
            self._healthy = False
            logger.warning(
                "Presence registry unreachable",
                redis_url=self.config.redis_url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        self._healthy = True
        logger.info("Connected to presence registry", redis_url=self.config.redis_url, instance_id=self.instance_id)
        return True

    async def disconnect(self) -> None:
        """Close the Redis client. Idempotent."""
        client, self._client = self._client, None
        self._healthy = False
        if client is None:
            return
        try:
            await client.aclose()
        except _REGISTRY_ERRORS as e:
            logger.warning("Error closing presence registry", error=str(e))
        logger.info("Disconnected from presence registry")

    def is_connected(self) -> bool:
        """True if a client exists and its last operation succeeded."""
        return self._client is not None and self._healthy

    def _record_failure(self, operation: str, error: Exception, **context: Any) -> None:
        self._healthy = False
        logger.warning(
            "Presence registry operation failed",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )

    async def register(self, name: str, instance_id: str | None = None) -> bool:
        """
        Add a player to an instance's presence set. Idempotent.

        The set's TTL is also (re)applied so a set created between heartbeats
        cannot outlive a crash.
        """
        if self._client is None:
            return False
        key = self.key_for(instance_id)
        member = name.lower()
        if self._cleaned_up and key == self.key_for():
            logger.debug("Presence already cleaned up, ignoring late register", presence_key=key, player_name=member)
            return False
        try:
            pipe = self._client.pipeline(transaction=False)
            pipe.sadd(key, member)
            pipe.expire(key, self.config.ttl_seconds)
            await pipe.execute()
        except _REGISTRY_ERRORS as e:
            self._record_failure("register", e, presence_key=key, player_name=member)
            return False
        self._healthy = True
        logger.debug("Presence registered", presence_key=key, player_name=member)
        return True

    async def unregister(self, name: str, instance_id: str | None = None) -> bool:
        """Remove a player from an instance's presence set. No-op if absent."""
        if self._client is None:
            return False
        key = self.key_for(instance_id)
        member = name.lower()
        try:
            await self._client.srem(key, member)
        except _REGISTRY_ERRORS as e:
            self._record_failure("unregister", e, presence_key=key, player_name=member)
            return False
        self._healthy = True
        logger.debug("Presence unregistered", presence_key=key, player_name=member)
        return True

    async def exists_anywhere(self, name: str) -> bool:
        """
        Check whether a player is online on any instance.

        Walks presence keys with a SCAN cursor (never KEYS) and stops at the
        first set containing the name. Returns False if Redis is unreachable.
        """
        if self._client is None:
            return False
        member = name.lower()
        try:
            async for key in self._client.scan_iter(match=self.scan_pattern, count=self.config.scan_count):
                if await self._client.sismember(key, member):
                    logger.debug("Presence found", presence_key=key, player_name=member)
                    return True
        except _REGISTRY_ERRORS as e:
            self._record_failure("exists_anywhere", e, player_name=member)
            return False
        self._healthy = True
        return False

    async def refresh_heartbeat(self, ttl: int | None = None, instance_id: str | None = None) -> bool:
        """Reset the expiry of an instance's presence set to ttl seconds from now."""
        if self._client is None:
            return False
        key = self.key_for(instance_id)
        seconds = ttl if ttl is not None else self.config.ttl_seconds
        try:
            await self._client.expire(key, seconds)
        except _REGISTRY_ERRORS as e:
            self._record_failure("refresh_heartbeat", e, presence_key=key)
            return False
        self._healthy = True
        return True

    async def cleanup(self, instance_id: str | None = None) -> bool:
        """Delete an instance's whole presence set (graceful shutdown)."""
        if self._client is None:
            return False
        key = self.key_for(instance_id)
        if key == self.key_for():
            self._cleaned_up = True
        try:
            await self._client.delete(key)
        except _REGISTRY_ERRORS as e:
            self._record_failure("cleanup", e, presence_key=key)
            return False
        logger.info("Presence cleaned up", presence_key=key)
        return True

    async def members(self, instance_id: str | None = None) -> set[str]:
        """Names currently registered for an instance; empty if unreachable."""
        if self._client is None:
            return set()
        key = self.key_for(instance_id)
        try:
            return set(await self._client.smembers(key))
        except _REGISTRY_ERRORS as e:
            self._record_failure("members", e, presence_key=key)
            return set()
