"""Per-player historical records assembled by the aggregator."""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Mapping, Optional

from ..data.normalize import MISSED_CUT_POSITION


@dataclass(frozen=True)
class RoundRecord:
    """One competitor's normalized stats for a single round."""

    date: date
    event_id: str
    round_num: int
    metrics: Mapping[str, float] = field(default_factory=dict)

    def value(self, key: str) -> Optional[float]:
        """Metric value, or ``None`` when the round did not record it."""
        return self.metrics.get(key)

    def sort_key(self):
        return (self.date, self.round_num)


@dataclass
class EventRecord:
    """A competitor's appearance at one event in one year."""

    event_id: str
    year: int
    position: Optional[int] = None
    is_similar: bool = False
    is_specialized: bool = False
    rounds: List[RoundRecord] = field(default_factory=list)

    @property
    def category(self) -> str:
        if self.is_similar and self.is_specialized:
            return "Both"
        if self.is_specialized:
            return "Specialized"
        if self.is_similar:
            return "Similar"
        return "Regular"

    @property
    def made_finish(self) -> bool:
        """True when the event produced a real finishing position."""
        return self.position is not None and 0 < self.position < MISSED_CUT_POSITION

    @property
    def last_played(self) -> Optional[date]:
        if not self.rounds:
            return None
        return max(r.date for r in self.rounds)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "year": self.year,
            "position": self.position,
            "category": self.category,
            "rounds": len(self.rounds),
        }


@dataclass
class PlayerRecord:
    """Everything the engine knows about one competitor before scoring."""

    id: str
    name: str
    events: Dict[str, EventRecord] = field(default_factory=dict)
    historical_rounds: List[RoundRecord] = field(default_factory=list)
    similar_rounds: List[RoundRecord] = field(default_factory=list)
    specialized_rounds: List[RoundRecord] = field(default_factory=list)
    approach_metrics: Dict[str, Dict[str, float]] = field(default_factory=dict)

    @staticmethod
    def event_key(player_id: str, event_id: str, year: int) -> str:
        return f"{player_id}-{event_id}-{year}"

    @property
    def all_rounds(self) -> List[RoundRecord]:
        """All buckets pooled, newest first."""
        pooled = self.historical_rounds + self.similar_rounds + self.specialized_rounds
        return sorted(pooled, key=RoundRecord.sort_key, reverse=True)

    @property
    def round_count(self) -> int:
        return len(self.historical_rounds) + len(self.similar_rounds) + len(self.specialized_rounds)

    def events_newest_first(self, exclude_event_id: Optional[str] = None) -> List[EventRecord]:
        """Events ordered most recent first (year, then latest round date).

        Args:
            exclude_event_id: Event id to skip, typically the in-progress event.
        """
        events = [
            event for event in self.events.values()
            if not (exclude_event_id and event.event_id == exclude_event_id)
        ]
        return sorted(
            events,
            key=lambda e: (e.year, e.last_played or date.min, e.event_id),
            reverse=True,
        )
