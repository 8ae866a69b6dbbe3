"""
Logging processors for structlog event processing.

This module provides processors for sanitizing sensitive data and for stamping
every entry with the relay instance it came from.
"""

import re
from typing import Any

# Field-name patterns that must never reach a log sink in clear text
_SENSITIVE_PATTERNS = [
    r"\bpassword\b",
    r"\btoken\b",
    r"\bsecret\b",
    r"_key\b",  # api_key, private_key, ...
    r"\bcredential\b",
    r"\bauth\b",
    r"\bauthorization\b",
]

# Presence keys are logged constantly and carry no secrets
_SAFE_FIELDS = {
    "presence_key",
    "key_prefix",
}

# user:password@ portion of a connection URL (redis://, nats://, tls://)
_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)(?P<userinfo>[^@/\s]+)@", re.IGNORECASE)


def redact_url_credentials(value: str) -> str:
    """
    Strip the userinfo section from any URL embedded in a string.

    Args:
        value: String that may contain connection URLs

    Returns:
        The string with ``user:pass@`` replaced by ``[REDACTED]@``
    """
    return _URL_CREDENTIALS.sub(r"\g<scheme>[REDACTED]@", value)


def sanitize_sensitive_data(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive data from log entries.

    Redacts fields whose names look like credentials, and strips credentials
    embedded in connection URLs (for example ``redis://:hunter2@cache:6379``).

    Args:
        _logger: Logger instance (unused)
        _name: Logger name (unused)
        event_dict: Event dictionary to sanitize

    Returns:
        Sanitized event dictionary
    """

    def sanitize_dict(d: dict[str, Any]) -> dict[str, Any]:
        """Recursively sanitize dictionary values."""
        sanitized: dict[str, Any] = {}
        for key, value in d.items():
            key_lower = str(key).lower()
            if isinstance(value, dict):
                sanitized[key] = sanitize_dict(value)
            elif key_lower in _SAFE_FIELDS:
                sanitized[key] = value
            elif any(re.search(pattern, key_lower) for pattern in _SENSITIVE_PATTERNS):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, str) and "://" in value:
                sanitized[key] = redact_url_credentials(value)
            else:
                sanitized[key] = value
        return sanitized

    return sanitize_dict(event_dict)


def add_instance_id(instance_id: str):
    """
    Build a processor that stamps ``instance_id`` onto every entry.

    Entries that already carry an ``instance_id`` (for example log lines about
    a remote instance) keep their own value.

    Args:
        instance_id: Identifier of the local relay instance

    Returns:
        A structlog processor
    """

    def processor(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("instance_id", instance_id)
        return event_dict

    return processor
