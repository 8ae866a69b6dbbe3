"""Application wiring: lifecycle, host events and task tracking."""
