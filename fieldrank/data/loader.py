"""File loaders for ranking inputs, configuration and stats cache."""

import json
import os
from datetime import timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from ..config import RankingConfig
from ..engine.group_stats import GroupStatsCache
from ..errors import RankingInputError


class DataLoader:
    """Loads ranking inputs from CSV/JSON files."""

    @staticmethod
    def _require_file(file_path: str, label: str) -> None:
        if not file_path or not os.path.exists(file_path):
            raise RankingInputError(f"{label} file not found: {file_path}")

    @staticmethod
    def load_table(file_path: str, label: str = "Input") -> List[Dict[str, Any]]:
        """
        Load a flat table as a list of row dictionaries.

        CSV files are read with pandas; JSON files may hold either a list of
        rows or an object with a ``rows`` list.  Empty cells become ``None``.

        Args:
            file_path: Path to a .csv or .json file
            label: Name used in error messages

        Returns:
            List of row dictionaries
        """
        DataLoader._require_file(file_path, label)
        if file_path.lower().endswith(".json"):
            with open(file_path, 'r') as f:
                data = json.load(f)
            rows = data.get('rows', []) if isinstance(data, dict) else data
            if not isinstance(rows, list):
                raise RankingInputError(f"{label} JSON must be a list of rows: {file_path}")
            return rows

        df = pd.read_csv(file_path, dtype={"position_text": str})
        df = df.astype(object).where(pd.notna(df), None)
        return df.to_dict(orient="records")

    @staticmethod
    def load_config(file_path: str) -> RankingConfig:
        """
        Load ranking configuration from a JSON file.

        Args:
            file_path: Path to JSON file

        Returns:
            RankingConfig object
        """
        DataLoader._require_file(file_path, "Configuration")
        with open(file_path, 'r') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise RankingInputError(f"Configuration must be a JSON object: {file_path}")
        return RankingConfig.from_dict(data)

    @staticmethod
    def load_inputs(roster_path: str, rounds_path: str, approach_path: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
        """Load roster, round table and (optional) approach table."""
        inputs = {
            "roster": DataLoader.load_table(roster_path, "Roster"),
            "rounds": DataLoader.load_table(rounds_path, "Round table"),
            "approach": [],
        }
        if approach_path:
            inputs["approach"] = DataLoader.load_table(approach_path, "Approach table")
        if not inputs["roster"]:
            raise RankingInputError(f"Roster is empty: {roster_path}")
        return inputs

    @staticmethod
    def load_stats_cache(file_path: str, max_age_days: Optional[float] = None) -> GroupStatsCache:
        """Load a saved stats cache; a missing file yields an empty cache.

        Args:
            file_path: Path to cache JSON
            max_age_days: Staleness limit overriding the one stored in the file
        """
        if not os.path.exists(file_path):
            cache = GroupStatsCache()
        else:
            with open(file_path, 'r') as f:
                cache = GroupStatsCache.from_dict(json.load(f))
        if max_age_days is not None:
            cache.max_age = timedelta(days=max_age_days)
        return cache

    @staticmethod
    def save_stats_cache(cache: GroupStatsCache, file_path: str) -> None:
        with open(file_path, 'w') as f:
            json.dump(cache.to_dict(), f, indent=2)
