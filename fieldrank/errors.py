"""Exceptions raised by the ranking engine."""


class RankingInputError(ValueError):
    """Raised when a structural prerequisite (roster, configuration, metric groups) is missing."""


class PhaseOrderError(RuntimeError):
    """Raised when a ranking phase runs before the phases it depends on."""
