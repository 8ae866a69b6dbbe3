"""Background services (presence heartbeat)."""
