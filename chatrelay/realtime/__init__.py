"""Connection state tracking and the main-context hand-off."""
