"""Shared raw-value normalization used by the aggregator and loaders.

Everything that turns a raw table cell into a number goes through this module
so the percentage convention (0-1 vs 0-100) and the per-shot → per-round
strokes-gained conversion are applied exactly once, at ingestion.  Downstream
consumers (historical averages, BCC, group statistics) can then assume every
value is already on the same scale.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from ..metrics import (
    APPROACH_CATEGORIES,
    APPROACH_SUBMETRICS,
    AVG_APPROACH_SHOTS_PER_ROUND,
    PERCENTAGE_ROUND_KEYS,
    ROUND_METRIC_KEYS,
)

logger = logging.getLogger(__name__)

MISSED_CUT_POSITION = 100

_NON_FINISH_CODES = frozenset({"CUT", "MC", "WD", "W/D", "DQ", "MDF", "DNS"})
_NUMERIC_CHARS_RE = re.compile(r"[^0-9.\-]")
_POSITION_RE = re.compile(r"^T?(\d+)$")

# Raw round fields that feed RoundRecord.metrics directly (birdies_or_better is derived).
_DIRECT_ROUND_FIELDS = tuple(key for key in ROUND_METRIC_KEYS if key != "birdies_or_better")


def is_missing(value: Any) -> bool:
    """True for ``None`` and float NaN (pandas' empty-cell marker)."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def coerce_number(value: Any) -> Optional[float]:
    """Best-effort numeric conversion; ``None`` when the value is not a number.

    Strings are stripped of everything except digits, sign and decimal point,
    so ``"62.5%"`` and ``"1,234"`` both parse.
    """
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = _NUMERIC_CHARS_RE.sub("", str(value))
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def clean_metric_value(value: Any, is_percentage: bool = False) -> float:
    """Convert a raw cell to a float, degrading to 0.0 instead of raising.

    Args:
        value: Raw scalar (number, numeric string, blank).
        is_percentage: When True, values above 1 are treated as 0-100 and
            divided by 100.

    Returns:
        Cleaned float.  Blank or non-numeric input yields 0.0 and a warning.
    """
    number = coerce_number(value)
    if number is None:
        logger.warning("Invalid metric value cleaned to 0: %r", value)
        return 0.0
    if is_percentage and number > 1:
        return number / 100.0
    return number


def per_shot_to_per_round(per_shot_value: float) -> float:
    """Scale a per-shot strokes-gained value to a per-round value."""
    return per_shot_value * AVG_APPROACH_SHOTS_PER_ROUND


def normalize_id(value: Any) -> str:
    """Canonical string form for competitor and event ids (``14.0`` → ``"14"``)."""
    if is_missing(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    if re.fullmatch(r"-?\d+\.0+", text):
        return text.split(".", 1)[0]
    return text


def parse_position(text: Any) -> Optional[int]:
    """Parse a finish-position cell.

    Examples::

        >>> parse_position("T5")
        5
        >>> parse_position("CUT")
        100
        >>> parse_position("") is None
        True
    """
    if is_missing(text):
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return int(text) if text > 0 else None
    s = str(text).strip().upper()
    if not s:
        return None
    if s in _NON_FINISH_CODES:
        return MISSED_CUT_POSITION
    match = _POSITION_RE.match(s)
    if match:
        position = int(match.group(1))
        return position if position > 0 else None
    logger.warning("Unrecognized finish position %r; treating as unknown", text)
    return None


def parse_round_date(value: Any) -> Optional[date]:
    """Coerce a date-like cell to ``datetime.date``; ``None`` when unparseable."""
    if is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    ts = pd.to_datetime(value, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.date()


def normalize_round_metrics(row: Mapping[str, Any]) -> Dict[str, float]:
    """Build the RoundRecord metric map from one raw round row.

    Only fields present in the row are emitted; a present-but-garbage value is
    cleaned to 0.0 (and logged) by :func:`clean_metric_value`.
    """
    metrics: Dict[str, float] = {}
    for key in _DIRECT_ROUND_FIELDS:
        if key in row and not is_missing(row[key]):
            metrics[key] = clean_metric_value(row[key], key in PERCENTAGE_ROUND_KEYS)

    birdies = row.get("birdies")
    eagles = row.get("eagles_or_better")
    if not (is_missing(birdies) and is_missing(eagles)):
        total = 0.0
        if not is_missing(birdies):
            total += clean_metric_value(birdies)
        if not is_missing(eagles):
            total += clean_metric_value(eagles)
        metrics["birdies_or_better"] = total
    return metrics


def normalize_approach_row(row: Mapping[str, Any]) -> Dict[str, Dict[str, float]]:
    """Build the nested approach-skill map ``{category: {gir, sg, prox}}``.

    GIR is a percentage; SG arrives per shot and is converted per round here.
    """
    approach: Dict[str, Dict[str, float]] = {}
    for category, _ in APPROACH_CATEGORIES:
        values: Dict[str, float] = {}
        for sub, _ in APPROACH_SUBMETRICS:
            raw = row.get(f"{category}_{sub}")
            if is_missing(raw):
                values[sub] = 0.0
                continue
            value = clean_metric_value(raw, is_percentage=(sub == "gir"))
            if sub == "sg":
                value = per_shot_to_per_round(value)
            values[sub] = value
        approach[category] = values
    return approach
