"""
chatrelay: cross-instance presence and private-message relay.

Independently running server instances share a Redis-backed view of which
players are online where, and exchange chat broadcasts and private messages
over a NATS publish/subscribe bus.
"""

__version__ = "0.1.0"
