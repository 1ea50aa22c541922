"""Command-line interface for the golf field ranker."""

import argparse
import json
import logging
import sys

from .config import RankingConfig, default_group_table
from .data.loader import DataLoader
from .errors import RankingInputError
from .pipeline import RankingPipeline, run_ranking_to_file


def rank_field(args):
    """Rank a field and write the JSON report."""
    try:
        config = DataLoader.load_config(args.config) if args.config else RankingConfig()
        if args.current_event:
            config.past_performance.current_event_id = args.current_event
        if args.season is not None:
            config.current_season = args.season
        inputs = DataLoader.load_inputs(args.roster, args.rounds, args.approach)
        cache = (
            DataLoader.load_stats_cache(args.stats_cache, config.stats_cache_max_age_days)
            if args.stats_cache else None
        )
    except RankingInputError as exc:
        print(f"Error: {exc}")
        return 1

    print(f"Loaded {len(inputs['roster'])} players and {len(inputs['rounds'])} rounds")

    pipeline = RankingPipeline(config, stats_cache=cache)
    try:
        report = run_ranking_to_file(pipeline, inputs, args.output)
    except RankingInputError as exc:
        print(f"Error: {exc}")
        return 1

    if cache is not None:
        DataLoader.save_stats_cache(cache, args.stats_cache)

    print(f"\n{'='*60}")
    print("FIELD RANKINGS")
    print(f"{'='*60}\n")
    for player in report["players"][: args.top]:
        print(
            f"{player['rank']:>3}. {player['name']:<28} "
            f"refined={player['refined_weighted_score']:.3f} "
            f"war={player['war']:.3f} coverage={player['data_coverage']:.0%}"
        )

    print(f"\n✓ Rankings written to {args.output}")
    return 0


def create_sample_config(args):
    """Write the default configuration as an editable JSON file."""
    defaults = RankingConfig()
    data = {
        "groups": default_group_table(),
        "similar_event_ids": [],
        "specialized_event_ids": [],
        "similar_weight": defaults.similar_weight,
        "specialized_weight": defaults.specialized_weight,
        "course_setup": {
            "under_100": defaults.course_setup.under_100,
            "from_100_to_150": defaults.course_setup.from_100_to_150,
            "from_150_to_200": defaults.course_setup.from_150_to_200,
            "over_200": defaults.course_setup.over_200,
        },
        "past_performance": {"enabled": False, "weight": 0.0, "current_event_id": None},
        "apply_coverage_dampening": defaults.apply_coverage_dampening,
    }
    with open(args.output, "w") as f:
        json.dump(data, f, indent=2)
    print(f"✓ Sample configuration written to {args.output}")
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Golf Field Ranker - rank an event field from historical round data"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    rank_parser = subparsers.add_parser("rank", help="Rank the field for an upcoming event")
    rank_parser.add_argument("--roster", required=True, help="Roster CSV/JSON (competitor_id, name)")
    rank_parser.add_argument("--rounds", required=True, help="Per-round stats CSV/JSON")
    rank_parser.add_argument("--approach", default=None, help="Approach-skill CSV/JSON")
    rank_parser.add_argument("--config", "-c", default=None, help="Configuration JSON (default: built-in weights)")
    rank_parser.add_argument(
        "--output", "-o",
        default="rankings.json",
        help="Output JSON file for rankings (default: rankings.json)"
    )
    rank_parser.add_argument("--current-event", default=None, help="In-progress event id to exclude")
    rank_parser.add_argument("--season", type=int, default=None, help="Season of the in-progress event")
    rank_parser.add_argument("--stats-cache", default=None, help="Group stats cache JSON to refresh")
    rank_parser.add_argument("--top", type=int, default=20, help="Rows to print (default: 20)")

    sample_parser = subparsers.add_parser("sample-config", help="Write the default configuration JSON")
    sample_parser.add_argument(
        "--output", "-o",
        default="ranking_config.json",
        help="Output file for the configuration (default: ranking_config.json)"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "rank":
        return rank_field(args)
    elif args.command == "sample-config":
        return create_sample_config(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
