"""Canonical metric catalog for the ranking engine.

Every metric the engine scores lives at a fixed slot of the player metric
vector.  The round-level metrics (16) come first, the approach-skill metrics
(18) follow, and the synthetic Birdie Chances Created (BCC) metric is inserted
at ``BCC_INDEX`` once the other 34 slots are known.  Everything that indexes a
metric vector by position goes through the constants in this module so the
one-slot shift introduced by BCC is handled in exactly one place.
"""

from __future__ import annotations

import re
from typing import Dict, List, Tuple


# ---------------------------------------------------------------------------
# Round-level metrics (pre-BCC indices 0-15)
# ---------------------------------------------------------------------------

# (display name, key inside RoundRecord.metrics)
ROUND_METRICS: Tuple[Tuple[str, str], ...] = (
    ("SG Total", "sg_total"),
    ("Driving Distance", "driving_dist"),
    ("Driving Accuracy", "driving_acc"),
    ("SG T2G", "sg_t2g"),
    ("SG Approach", "sg_app"),
    ("SG Around Green", "sg_arg"),
    ("SG OTT", "sg_ott"),
    ("SG Putting", "sg_putt"),
    ("Greens in Regulation", "gir"),
    ("Scrambling", "scrambling"),
    ("Great Shots", "great_shots"),
    ("Poor Shots", "poor_shots"),
    ("Scoring Average", "score"),
    ("Birdies or Better", "birdies_or_better"),
    ("Fairway Proximity", "prox_fw"),
    ("Rough Proximity", "prox_rgh"),
)

ROUND_METRIC_KEYS: Tuple[str, ...] = tuple(key for _, key in ROUND_METRICS)
ROUND_METRIC_COUNT = len(ROUND_METRICS)

# Round fields that arrive as percentages (0-100 or 0-1).
PERCENTAGE_ROUND_KEYS = frozenset({"driving_acc", "gir", "scrambling"})

# Metrics that can be blended with the specialized (putting-context) bucket.
PUTTING_ROUND_KEYS = frozenset({"sg_putt"})

SCORING_AVERAGE_KEY = "score"


# ---------------------------------------------------------------------------
# Approach-skill metrics (pre-BCC indices 16-33)
# ---------------------------------------------------------------------------

# (category key, display prefix)
APPROACH_CATEGORIES: Tuple[Tuple[str, str], ...] = (
    ("under_100", "Approach <100"),
    ("fw_100_150", "Approach <150 FW"),
    ("rough_100_150", "Approach <150 Rough"),
    ("rough_over_150", "Approach >150 Rough"),
    ("fw_150_200", "Approach <200 FW"),
    ("fw_over_200", "Approach >200 FW"),
)

# (sub-metric key, display suffix)
APPROACH_SUBMETRICS: Tuple[Tuple[str, str], ...] = (
    ("gir", "GIR"),
    ("sg", "SG"),
    ("prox", "Prox"),
)

APPROACH_METRICS: Tuple[Tuple[str, str, str], ...] = tuple(
    (f"{prefix} {suffix}", category, sub)
    for category, prefix in APPROACH_CATEGORIES
    for sub, suffix in APPROACH_SUBMETRICS
)

# Approach SG is reported per shot; the engine works per round.
AVG_APPROACH_SHOTS_PER_ROUND = 18


# ---------------------------------------------------------------------------
# Vector layout
# ---------------------------------------------------------------------------

BCC_NAME = "Birdie Chances Created"
BCC_INDEX = 14

PRE_BCC_NAMES: Tuple[str, ...] = tuple(name for name, _ in ROUND_METRICS) + tuple(
    name for name, _, _ in APPROACH_METRICS
)
PRE_BCC_LENGTH = len(PRE_BCC_NAMES)

METRIC_NAMES: Tuple[str, ...] = PRE_BCC_NAMES[:BCC_INDEX] + (BCC_NAME,) + PRE_BCC_NAMES[BCC_INDEX:]
METRIC_COUNT = len(METRIC_NAMES)

METRIC_INDICES: Dict[str, int] = {name: idx for idx, name in enumerate(METRIC_NAMES)}
PRE_BCC_INDICES: Dict[str, int] = {name: idx for idx, name in enumerate(PRE_BCC_NAMES)}


def shift_for_bcc(pre_bcc_index: int) -> int:
    """Map a pre-BCC vector index to its position after BCC insertion."""
    return pre_bcc_index + 1 if pre_bcc_index >= BCC_INDEX else pre_bcc_index


# ---------------------------------------------------------------------------
# Direction, ceilings and calibrated baselines
# ---------------------------------------------------------------------------

METRIC_MAX_VALUES: Dict[str, float] = {
    "Approach <100 Prox": 40,
    "Approach <150 FW Prox": 50,
    "Approach <150 Rough Prox": 60,
    "Approach >150 Rough Prox": 75,
    "Approach <200 FW Prox": 65,
    "Approach >200 FW Prox": 90,
    "Fairway Proximity": 60,
    "Rough Proximity": 80,
    "Poor Shots": 12,
    "Scoring Average": 74,
    BCC_NAME: 10,
}

DEFAULT_PROXIMITY_CEILING = 60

LOWER_BETTER = frozenset(
    {
        "Poor Shots",
        "Scoring Average",
        "Fairway Proximity",
        "Rough Proximity",
    }
    | {name for name, _, sub in APPROACH_METRICS if sub == "prox"}
)

PROXIMITY_METRICS = frozenset(name for name in LOWER_BETTER if name.endswith("Prox") or "Proximity" in name)

# Fallback std-devs when a metric has no valid sample anywhere in the field.
BASELINE_STD_DEVS: Dict[str, float] = {
    "Approach <100 Prox": 5.0,
    "Approach <150 FW Prox": 7.0,
    "Approach <150 Rough Prox": 9.0,
    "Approach >150 Rough Prox": 12.0,
    "Approach <200 FW Prox": 10.0,
    "Approach >200 FW Prox": 14.0,
    "Fairway Proximity": 7.0,
    "Rough Proximity": 10.0,
    BCC_NAME: 3.0,
}


def baseline_mean(metric_name: str) -> float:
    """Calibrated raw-unit mean used alongside ``BASELINE_STD_DEVS``."""
    if "Prox" in metric_name:
        return 30.0  # feet
    if metric_name == BCC_NAME:
        return 4.0
    if "SG" in metric_name:
        return 0.0
    return 0.5


def is_lower_better(metric_name: str) -> bool:
    return metric_name in LOWER_BETTER


def is_scoring_related(metric_name: str) -> bool:
    """Metrics that get the superlinear penalty on extreme z-scores."""
    return "Score" in metric_name or "Birdie" in metric_name or "Par" in metric_name


def metric_ceiling(metric_name: str) -> float:
    if metric_name in METRIC_MAX_VALUES:
        return float(METRIC_MAX_VALUES[metric_name])
    return float(DEFAULT_PROXIMITY_CEILING)


def canonical_name(index: int) -> str:
    """Canonical metric name for a post-BCC vector index."""
    return METRIC_NAMES[index]


_NAME_RULES: List[Tuple[str, str]] = [
    (r"\s+", ""),
    (r"strokes(gained)?", "sg"),
    (r"proximity", "prox"),
    (r"greens(in)?reg(ulation)?", "gir"),
    (r"approach", "app"),
    (r"&", "and"),
    (r"[<>]", ""),
]


def normalize_metric_name(name: str) -> str:
    """Fold a metric label to a comparison key.

    >>> normalize_metric_name("Approach <150 FW Prox")
    'app150fwprox'
    >>> normalize_metric_name("Greens in Regulation")
    'gir'
    """
    s = str(name).lower()
    for pattern, repl in _NAME_RULES:
        s = re.sub(pattern, repl, s)
    return s


def _unambiguous_name_index() -> Dict[str, int]:
    # "<150 Rough" and ">150 Rough" fold to the same key; drop such collisions.
    seen: Dict[str, List[int]] = {}
    for metric_name, idx in METRIC_INDICES.items():
        seen.setdefault(normalize_metric_name(metric_name), []).append(idx)
    return {key: idxs[0] for key, idxs in seen.items() if len(idxs) == 1}


_NORMALIZED_INDEX: Dict[str, int] = _unambiguous_name_index()


def resolve_metric_index(name: str) -> int:
    """Resolve a display label (possibly prefixed, e.g. ``"Scoring: Approach <100 SG"``)
    to its canonical post-BCC index.

    Raises:
        KeyError: if the label does not name a known metric.
    """
    name = str(name).strip()
    if name in METRIC_INDICES:
        return METRIC_INDICES[name]
    if ":" in name:
        return resolve_metric_index(name.split(":", 1)[1])
    key = normalize_metric_name(name)
    if key in _NORMALIZED_INDEX:
        return _NORMALIZED_INDEX[key]
    raise KeyError(f"Unknown metric: {name}")
