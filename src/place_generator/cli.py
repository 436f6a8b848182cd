"""Command-line entry point for generating point datasets."""

import argparse
import logging
import sys

import yaml
from pydantic import ValidationError

from .config import load_config
from .errors import PlaceGeneratorError
from .pipeline import PlaceGenerator

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="place-generator",
        description="Extract brand locations and length-weighted road samples from an OSM dataset.",
    )
    parser.add_argument("config", metavar="CONFIG", help="YAML configuration file")
    parser.add_argument("--dataset", metavar="PATH", help="override the dataset path")
    parser.add_argument("--output-dir", metavar="DIR", help="override the output directory")
    parser.add_argument("--seed", type=int, help="seed for road subsampling and sampling")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config(args.config)
        if args.dataset:
            config.dataset = args.dataset
        if args.output_dir:
            config.output_dir = args.output_dir
        if args.seed is not None:
            config.seed = args.seed
    except (OSError, yaml.YAMLError, ValidationError) as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    try:
        PlaceGenerator(config).run()
    except PlaceGeneratorError as e:
        logger.error("Generation failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
