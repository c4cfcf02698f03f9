"""County Lookup Module Entry Point

This module serves as the command-line interface for preparing county data,
freezing a searcher and resolving points.

Usage:
    python -m modules.county_lookup.main prepare
    python -m modules.county_lookup.main freeze
    python -m modules.county_lookup.main lookup 37.77 -122.42
    python -m modules.county_lookup.main batch points.csv resolved.csv
"""

import argparse
import json
import logging
import sys
from typing import Optional

from counties.config import ConfigLoader
from counties.exceptions import CountiesBaseException
from counties.utils.logging_setup import setup_logging_from_config
from .dataset import process_json_data
from .processor import CountyLookupService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2


def _prepare(service: CountyLookupService, args: argparse.Namespace) -> int:
    source = args.source or service.data_paths.json_path()
    output = args.output or service.data_paths.cache_path()
    report = process_json_data(source, output, service.lookup_config)
    print(report.get_summary())
    return EXIT_OK


def _freeze(service: CountyLookupService, args: argparse.Namespace) -> int:
    searcher = service.rebuild()
    path = service.save_searcher(args.output)
    print(f"Saved {searcher!r} to {path}")
    return EXIT_OK


def _lookup(service: CountyLookupService, args: argparse.Namespace) -> int:
    result = service.lookup(args.latitude, args.longitude)
    print(result.model_dump_json(indent=2))
    return EXIT_OK if result.found else EXIT_NOT_FOUND


def _batch(service: CountyLookupService, args: argparse.Namespace) -> int:
    stats = service.resolve_csv(args.input, args.output)
    print(json.dumps(stats.get_summary(), indent=2))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="County Lookup - Resolve coordinates to the county containing them"
    )
    parser.add_argument(
        "--environment",
        choices=["development", "production"],
        default="development",
        help="Environment configuration to use (default: development)"
    )
    parser.add_argument(
        "--config-dir",
        default=None,
        help="Directory containing environment_config.json (default: config/)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    prepare = subparsers.add_parser("prepare", help="Convert the source JSON into a prepared cache")
    prepare.add_argument("--source", default=None, help="Source county JSON (default: configured)")
    prepare.add_argument("--output", default=None, help="Prepared cache file (default: configured)")
    prepare.set_defaults(handler=_prepare)

    freeze = subparsers.add_parser("freeze", help="Build the index and persist a frozen searcher")
    freeze.add_argument("--output", default=None, help="Searcher file (default: configured)")
    freeze.set_defaults(handler=_freeze)

    lookup = subparsers.add_parser("lookup", help="Resolve one point")
    lookup.add_argument("latitude", type=float, help="Latitude in decimal degrees")
    lookup.add_argument("longitude", type=float, help="Longitude in decimal degrees")
    lookup.set_defaults(handler=_lookup)

    batch = subparsers.add_parser("batch", help="Resolve a CSV with latitude/longitude columns")
    batch.add_argument("input", help="Input CSV file")
    batch.add_argument("output", help="Output CSV file")
    batch.set_defaults(handler=_batch)

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the county lookup module.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 for error, 2 when a lookup finds no county)
    """
    parsed_args = build_parser().parse_args(args)

    try:
        config_loader = ConfigLoader(parsed_args.config_dir)
        env_config = config_loader.load_environment_config(parsed_args.environment)
        setup_logging_from_config(parsed_args.environment, env_config)
        config_loader.validate_environment_variables(parsed_args.environment)

        service = CountyLookupService.from_config(config_loader, parsed_args.environment)
        return parsed_args.handler(service, parsed_args)
    except CountiesBaseException as e:
        logger.error(f"{parsed_args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        logger.error(f"{parsed_args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
