"""Relay domain logic: routing, reply state, chat relay and visibility sync."""
