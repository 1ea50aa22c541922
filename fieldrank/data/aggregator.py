"""Group flat per-round rows into per-competitor records.

Each round is classified once per event into one of three mutually exclusive
buckets (specialized > similar > historical) and every bucket is sorted
newest-first a single time after ingestion, so downstream consumers can rely
on index 0 being the most recent round.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from ..errors import RankingInputError
from ..models.records import EventRecord, PlayerRecord, RoundRecord
from .normalize import (
    coerce_number,
    normalize_approach_row,
    normalize_id,
    normalize_round_metrics,
    parse_position,
    parse_round_date,
)

logger = logging.getLogger(__name__)


def _bucket_for(player: PlayerRecord, event: EventRecord):
    if event.is_specialized:
        return player.specialized_rounds
    if event.is_similar:
        return player.similar_rounds
    return player.historical_rounds


def aggregate_players(
    roster: Iterable[Mapping[str, Any]],
    rounds: Iterable[Mapping[str, Any]],
    similar_event_ids: Iterable[Any] = (),
    specialized_event_ids: Iterable[Any] = (),
    approach_rows: Iterable[Mapping[str, Any]] = (),
    current_event_id: Optional[Any] = None,
    current_season: Optional[int] = None,
) -> Dict[str, PlayerRecord]:
    """Build one ``PlayerRecord`` per roster entry.

    Args:
        roster: Rows with ``competitor_id`` and ``name``.
        rounds: Flat round rows (see ``normalize_round_metrics`` for fields).
        similar_event_ids: Events played on courses similar to the host course.
        specialized_event_ids: Events whose greens resemble the host course.
        approach_rows: Per-competitor approach-skill rows.
        current_event_id: In-progress event; its rounds in ``current_season``
            are excluded so the ranking never sees the event it predicts.
        current_season: Season of the in-progress event.

    Returns:
        Mapping of competitor id to record, in roster order.

    Raises:
        RankingInputError: if the roster is empty.
    """
    players: Dict[str, PlayerRecord] = {}
    for row in roster:
        player_id = normalize_id(row.get("competitor_id"))
        if not player_id:
            logger.warning("Skipping roster row without competitor_id: %r", dict(row))
            continue
        if player_id in players:
            continue
        players[player_id] = PlayerRecord(id=player_id, name=str(row.get("name") or player_id).strip())

    if not players:
        raise RankingInputError("Roster is empty; nothing to rank")

    similar = {normalize_id(e) for e in similar_event_ids} - {""}
    specialized = {normalize_id(e) for e in specialized_event_ids} - {""}
    current_event = normalize_id(current_event_id) or None

    ignored_players = 0
    dropped_current = 0
    for row in rounds:
        player = players.get(normalize_id(row.get("competitor_id")))
        if player is None:
            ignored_players += 1
            continue

        round_date = parse_round_date(row.get("date"))
        if round_date is None:
            logger.warning(
                "Skipping round with invalid date %r for player %s", row.get("date"), player.id
            )
            continue

        event_id = normalize_id(row.get("event_id"))
        year_value = coerce_number(row.get("year"))
        year = int(year_value) if year_value is not None else round_date.year

        if current_event and event_id == current_event and current_season is not None and year == current_season:
            dropped_current += 1
            continue

        key = PlayerRecord.event_key(player.id, event_id, year)
        event = player.events.get(key)
        if event is None:
            event = EventRecord(
                event_id=event_id,
                year=year,
                position=parse_position(row.get("position_text")),
                is_similar=event_id in similar,
                is_specialized=event_id in specialized,
            )
            player.events[key] = event

        round_num = coerce_number(row.get("round_num"))
        record = RoundRecord(
            date=round_date,
            event_id=event_id,
            round_num=int(round_num) if round_num is not None else 0,
            metrics=normalize_round_metrics(row),
        )
        event.rounds.append(record)
        _bucket_for(player, event).append(record)

    if ignored_players:
        logger.debug("Ignored %d round rows for competitors outside the roster", ignored_players)
    if dropped_current:
        logger.info("Dropped %d rounds from in-progress event %s", dropped_current, current_event)

    for row in approach_rows:
        player = players.get(normalize_id(row.get("competitor_id")))
        if player is not None:
            player.approach_metrics = normalize_approach_row(row)

    for player in players.values():
        for bucket in (player.historical_rounds, player.similar_rounds, player.specialized_rounds):
            bucket.sort(key=RoundRecord.sort_key, reverse=True)

    logger.info("Aggregated %d players", len(players))
    return players
