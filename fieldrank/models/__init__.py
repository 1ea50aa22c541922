"""Record and score models."""

from .records import EventRecord, PlayerRecord, RoundRecord
from .score import PlayerScore

__all__ = ["EventRecord", "PlayerRecord", "RoundRecord", "PlayerScore"]
