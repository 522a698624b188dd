"""Command line entry point: run one or more named configs in sequence."""
import argparse
import logging
import sys
from typing import Optional, Sequence

from webpbatch.config import CONFIGS_DIR
from webpbatch.errors import ConfigError, RunAbortedError
from webpbatch.presets import list_config_names, load_configs, parse_config_names
from webpbatch.runner import run_config

logger = logging.getLogger("webpbatch.cli")

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_FAILURES = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="webpbatch",
        description="Batch convert images to WebP, searching quality to meet a target size.",
    )
    p.add_argument(
        "--config",
        default="",
        help=f"Comma-separated config names from {CONFIGS_DIR} (default: built-in defaults)",
    )
    p.add_argument("--list", action="store_true", help="List available configs and exit")
    p.add_argument("-j", "--concurrency", type=int, default=None, help="Override the number of parallel workers")
    return p


def print_available_configs() -> None:
    print("\nAvailable configs:")
    for name in list_config_names():
        print(f"  - {name}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.list:
        print_available_configs()
        return EXIT_OK
    if args.concurrency is not None and args.concurrency < 1:
        logger.error("--concurrency must be at least 1")
        return EXIT_CONFIG_ERROR

    names = parse_config_names(args.config)
    if args.config and not names:
        logger.error("No config names provided.")
        print_available_configs()
        return EXIT_CONFIG_ERROR
    try:
        configs = load_configs(names)
    except ConfigError as e:
        logger.error("%s", e)
        print_available_configs()
        return EXIT_CONFIG_ERROR

    exit_code = EXIT_OK
    for cfg in configs:
        try:
            summary = run_config(cfg, concurrency=args.concurrency)
        except RunAbortedError as e:
            logger.error("Run %s aborted: %s", cfg.name, e)
            exit_code = EXIT_FAILURES
            continue
        if summary.failed:
            exit_code = EXIT_FAILURES
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
