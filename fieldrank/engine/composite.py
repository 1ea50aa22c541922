"""Birdie Chances Created (BCC) and metric-vector assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple

from ..config import CourseSetupWeights
from ..metrics import (
    APPROACH_CATEGORIES,
    APPROACH_METRICS,
    BCC_INDEX,
    PRE_BCC_INDICES,
    PRE_BCC_LENGTH,
)
from .averages import HistoricalAverages

logger = logging.getLogger(__name__)

DEFAULT_FAIRWAY_SHARE = 0.6
DEFAULT_SCORING_AVERAGE = 72.0
SCORING_PAR_REFERENCE = 74.0
PROXIMITY_FEET_PER_STROKE = 30.0

BCC_GIR_WEIGHT = 0.40
BCC_SG_WEIGHT = 0.30
BCC_PUTTING_WEIGHT = 0.25
BCC_SCORING_WEIGHT = 0.05

_DRIVING_ACCURACY = PRE_BCC_INDICES["Driving Accuracy"]
_SG_PUTTING = PRE_BCC_INDICES["SG Putting"]
_SCORING_AVERAGE = PRE_BCC_INDICES["Scoring Average"]
_APPROACH_START = PRE_BCC_INDICES[APPROACH_METRICS[0][0]]

BCC_INPUT_INDICES: Tuple[int, ...] = (_DRIVING_ACCURACY, _SG_PUTTING, _SCORING_AVERAGE) + tuple(
    range(_APPROACH_START, PRE_BCC_LENGTH)
)


def _approach_value(values: Sequence[float], category: str, sub: str) -> float:
    for offset, (_, cat, s) in enumerate(APPROACH_METRICS):
        if cat == category and s == sub:
            return values[_APPROACH_START + offset]
    raise KeyError(f"{category}/{sub}")


def _bucket_weights(setup: CourseSetupWeights, fairway: float) -> Dict[str, float]:
    rough = 1.0 - fairway
    return {
        "under_100": setup.under_100,
        "fw_100_150": setup.from_100_to_150 * fairway,
        "rough_100_150": setup.from_100_to_150 * rough,
        "fw_150_200": setup.from_150_to_200 * fairway,
        "rough_over_150": (setup.from_150_to_200 + setup.over_200) * rough,
        "fw_over_200": setup.over_200 * fairway,
    }


def calculate_bcc(pre_bcc_values: Sequence[float], course_setup: CourseSetupWeights) -> float:
    """Birdie Chances Created from a pre-BCC metric vector.

    Approach SG values are expected per round already (converted at ingestion).

    Args:
        pre_bcc_values: 34-slot vector (round metrics then approach metrics).
        course_setup: Distance-bucket shares for the host course.

    Returns:
        ``0.40*GIR + 0.30*(SG - prox/30) + 0.25*SGputt + 0.05*(74 - scoring)``
        where GIR/SG/prox are course-setup weighted composites over the
        approach buckets.
    """
    if len(pre_bcc_values) != PRE_BCC_LENGTH:
        raise ValueError(f"Expected {PRE_BCC_LENGTH} metrics, got {len(pre_bcc_values)}")

    setup = course_setup.normalized()
    fairway = pre_bcc_values[_DRIVING_ACCURACY] or DEFAULT_FAIRWAY_SHARE
    weights = _bucket_weights(setup, fairway)

    composite = {}
    for sub in ("gir", "sg", "prox"):
        composite[sub] = sum(
            _approach_value(pre_bcc_values, category, sub) * weights[category]
            for category, _ in APPROACH_CATEGORIES
        )

    putting = pre_bcc_values[_SG_PUTTING]
    scoring = pre_bcc_values[_SCORING_AVERAGE] or DEFAULT_SCORING_AVERAGE

    return (
        BCC_GIR_WEIGHT * composite["gir"]
        + BCC_SG_WEIGHT * (composite["sg"] - composite["prox"] / PROXIMITY_FEET_PER_STROKE)
        + BCC_PUTTING_WEIGHT * putting
        + BCC_SCORING_WEIGHT * (SCORING_PAR_REFERENCE - scoring)
    )


def insert_at_index(values: Sequence, index: int, value) -> Tuple[tuple, Dict[int, int]]:
    """Return a new tuple with ``value`` inserted, plus an old→new index map."""
    if not 0 <= index <= len(values):
        raise IndexError(f"Insert position {index} out of range for length {len(values)}")
    result = tuple(values[:index]) + (value,) + tuple(values[index:])
    remap = {old: (old + 1 if old >= index else old) for old in range(len(values))}
    return result, remap


@dataclass(frozen=True)
class MetricVector:
    """Post-BCC metric values with per-slot data availability."""

    values: Tuple[float, ...]
    has_data: Tuple[bool, ...]
    remap: Mapping[int, int]

    def with_values(self, values: Sequence[float]) -> "MetricVector":
        return MetricVector(tuple(values), self.has_data, self.remap)


def approach_vector(approach_metrics: Mapping[str, Mapping[str, float]]) -> List[float]:
    values = []
    for _, category, sub in APPROACH_METRICS:
        values.append(float((approach_metrics.get(category) or {}).get(sub, 0.0) or 0.0))
    return values


def build_metric_vector(
    averages: HistoricalAverages,
    approach_metrics: Mapping[str, Mapping[str, float]],
    course_setup: CourseSetupWeights,
) -> MetricVector:
    """Assemble the 35-slot metric vector with BCC inserted at ``BCC_INDEX``."""
    approach = approach_vector(approach_metrics)
    pre_values = list(averages.values) + approach
    pre_has_data = list(averages.has_data) + [value != 0 for value in approach]

    bcc = calculate_bcc(pre_values, course_setup)
    bcc_has_data = any(pre_has_data[i] for i in BCC_INPUT_INDICES)

    values, remap = insert_at_index(pre_values, BCC_INDEX, bcc)
    has_data, _ = insert_at_index(pre_has_data, BCC_INDEX, bcc_has_data)
    return MetricVector(values=values, has_data=has_data, remap=remap)
