"""Command line entry point for the prepayment test workflow.

Usage:
    python main.py assign
    python main.py render
    python main.py dispatch [--dry-run]
    python main.py remap
    python main.py run-all --dispatch

    python main.py --config other/config.yaml --seed 7 assign
"""
import argparse
import logging
import random
import sys

from prepayment_tool import pipeline
from prepayment_tool.config import DEFAULT_CONFIG_FILE, load_config
from prepayment_tool.errors import PrepaymentToolError
from prepayment_tool.logger_config import setup_logging

logger = logging.getLogger("PrepaymentToolLogger")


def build_parser():
    parser = argparse.ArgumentParser(description="Prepayment scenario test tool")
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="Path to config.yaml")
    parser.add_argument("--seed", type=int, default=None, help="Random seed (overrides Seed in config)")
    parser.add_argument("--log-dir", default=None, help="Base directory for log files")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("assign", help="Assign cases/scenarios and generate amounts")
    subparsers.add_parser("render", help="Render JSON payloads per company")
    dispatch = subparsers.add_parser("dispatch", help="Render payloads and submit them to the order API")
    dispatch.add_argument("--dry-run", action="store_true", help="Render payloads without calling the API")
    subparsers.add_parser("remap", help="Reshape the report into the business layout")
    run_all = subparsers.add_parser("run-all", help="Run every stage in order")
    run_all.add_argument("--dispatch", action="store_true", help="Also submit payloads to the API")
    return parser


def run_command(args):
    config = load_config(args.config)
    if args.seed is not None:
        config.seed = args.seed

    if args.command == "assign":
        pipeline.run_assignment(config, random.Random(config.seed))
    elif args.command == "render":
        pipeline.run_render(config)
    elif args.command == "dispatch":
        if args.dry_run:
            logger.info("Dry run: payloads are rendered but not submitted")
            pipeline.run_render(config)
        else:
            pipeline.run_dispatch(config)
    elif args.command == "remap":
        pipeline.run_remap(config)
    elif args.command == "run-all":
        pipeline.run_assignment(config, random.Random(config.seed))
        if args.dispatch:
            pipeline.run_dispatch(config)
        else:
            pipeline.run_render(config)
        pipeline.run_remap(config)


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.log_dir, run_id=args.command)

    try:
        run_command(args)
    except PrepaymentToolError as e:
        logger.error(f"ERROR: {e}")
        return 1

    logger.info("--- Done ---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
