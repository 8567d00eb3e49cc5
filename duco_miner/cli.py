from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import DEFAULT_SERVER, DIFFICULTY_TIERS, MinerConfig, env_defaults
from .job import Algorithm
from .miner import run_miner
from .mining.errors import ConfigError, UnsupportedAlgorithm


class FriendlyFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",  # cyan
        logging.INFO: "\033[32m",  # green
        logging.WARNING: "\033[33m",  # yellow
        logging.ERROR: "\033[31m",  # red
        logging.CRITICAL: "\033[41m",  # red background
    }
    RESET = "\033[0m"

    def __init__(self, *, use_color: bool) -> None:
        fmt = "[%(asctime)s] %(level_display)s %(shortname)s | %(message)s"
        super().__init__(fmt=fmt, datefmt="%Y-%m-%dT%H:%M:%S")
        self.use_color = use_color and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        record.shortname = record.name.rsplit(".", 1)[-1]
        level_name = record.levelname
        if self.use_color:
            color = self.LEVEL_COLORS.get(record.levelno)
            if color:
                level_name = f"{color}{level_name}{self.RESET}"
        record.level_display = level_name.ljust(8)
        return super().format(record)


def setup_logging(level: int, *, quiet: bool = False) -> None:
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    if quiet:
        root.addHandler(logging.NullHandler())
        root.setLevel(logging.CRITICAL + 1)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(FriendlyFormatter(use_color=sys.stdout.isatty()))
    root.setLevel(level)
    root.addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    env = env_defaults()
    parser = argparse.ArgumentParser(
        prog="duco-miner",
        description="Line-protocol proof-of-work miner",
    )
    parser.add_argument(
        "--server",
        default=env["server"],
        help=f"Server address host:port, environment variable DUCOSERVER (default: {DEFAULT_SERVER})",
    )
    parser.add_argument(
        "--name", default=env["name"], help="Miner name, environment variable MINERNAME"
    )
    parser.add_argument(
        "--id", dest="rig_id", default=env["rig_id"], help="Rig ID, environment variable HOSTNAME"
    )
    parser.add_argument(
        "--diff",
        default=env["diff"],
        help=f"Difficulty {'/'.join(DIFFICULTY_TIERS)}, environment variable DIFF",
    )
    parser.add_argument(
        "--algo",
        default=env["algo"],
        help=f"Algorithm select {'/'.join(a.value for a in Algorithm)}, environment variable ALGO",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=env["threads"],
        help="Number of workers to run, environment variable DUCO_THREADS",
    )
    parser.add_argument(
        "--skip",
        action="store_true",
        default=env["skip"],
        help="Search above the server difficulty first, then the skipped range, environment variable DUCO_SKIP",
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Turn off console logging"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Log every line sent and received"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log verbosity",
    )
    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def config_from_args(args: argparse.Namespace) -> MinerConfig:
    return MinerConfig.build(
        miner_name=args.name,
        server=args.server,
        rig_id=args.rig_id,
        difficulty=args.diff,
        algorithm=args.algo,
        threads=args.threads,
        skip_lower_range=args.skip,
        quiet=args.quiet,
        debug=args.debug,
    )


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    try:
        config = config_from_args(args)
    except (ConfigError, UnsupportedAlgorithm) as exc:
        parser.print_help(sys.stderr)
        print(f"\nerror: {exc.message}", file=sys.stderr)
        raise SystemExit(1)

    level = logging.DEBUG if config.debug else getattr(logging, args.log_level)
    setup_logging(level, quiet=config.quiet)

    try:
        asyncio.run(run_miner(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
