"""Value types for chatrelay."""

from .player import Player, ReplyTarget

__all__ = ["Player", "ReplyTarget"]
