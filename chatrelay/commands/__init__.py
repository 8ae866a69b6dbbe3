"""Player-facing private message commands."""
