"""Command-line interface for coinlens.

Each command prints a JSON document to stdout: simplified puzzles, the coins
spent by a block generator, coin ids, or merged spend bundles.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from .block_parser import parse_generator, parse_puzzle
from .config import CoinlensConfig, ConfigurationError, load_config
from .executor import ExecutionError, executor_from_config
from .model import SpendBundle, coin_name
from .program import ProgramDecodeError, bytes_from_hex, prefix0x
from .signing import SigningError, combine_spend_bundles, initialize_signing
from .templates import TemplateRegistry, TemplateRegistryError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

COMPACT_JSON_SEPARATORS = (",", ":")


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect chia puzzles, blocks, and spend bundles")
    parser.add_argument("--config", default=None, help="Path to a coinlens YAML config file")
    parser.add_argument(
        "--templates",
        default=None,
        help="Template catalogue (YAML file or directory of .clsp.hex files)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--pretty", action="store_true", help="Indent JSON output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    puzzle_parser = subparsers.add_parser(
        "parse-puzzle", help="simplify a puzzle into recognised templates"
    )
    puzzle_parser.add_argument("puzzle", help="Puzzle bytecode hex, clvm assembly, or @FILE")

    block_parser = subparsers.add_parser(
        "parse-block", help="execute a block generator and summarise its coin spends"
    )
    block_parser.add_argument("--generator", required=True, help="Generator hex or @FILE")
    block_parser.add_argument(
        "--ref",
        action="append",
        default=[],
        help="Back-reference generator hex (repeatable, in block order)",
    )

    name_parser = subparsers.add_parser("coin-name", help="compute a coin id")
    name_parser.add_argument("--parent", required=True, help="Parent coin id (hex)")
    name_parser.add_argument("--puzzle-hash", required=True, help="Puzzle hash (hex)")
    name_parser.add_argument("--amount", required=True, type=int, help="Amount in mojos")

    combine_parser = subparsers.add_parser(
        "combine-bundles", help="merge spend bundle JSON files into one"
    )
    combine_parser.add_argument("bundles", nargs="+", help="Spend bundle JSON files")

    return parser


def _read_value(raw: str) -> str:
    if raw.startswith("@"):
        path = Path(raw[1:]).expanduser()
        if not path.exists():
            raise CLIError(f"File not found: {path}")
        return path.read_text().strip()
    return raw


def _load_registry(config: CoinlensConfig) -> TemplateRegistry:
    if config.templates is None:
        raise CLIError("A template catalogue is required; pass --templates or set COINLENS_TEMPLATES")
    return TemplateRegistry.load(config.templates)


def _emit(document: Any, pretty: bool) -> None:
    if pretty:
        print(json.dumps(document, indent=2))
    else:
        print(json.dumps(document, separators=COMPACT_JSON_SEPARATORS))


def cmd_parse_puzzle(args: argparse.Namespace, config: CoinlensConfig) -> None:
    registry = _load_registry(config)
    _emit(parse_puzzle(_read_value(args.puzzle), registry).to_dict(), args.pretty)


def cmd_parse_block(args: argparse.Namespace, config: CoinlensConfig) -> None:
    registry = _load_registry(config)
    executor = executor_from_config(config)
    coins = parse_generator(
        _read_value(args.generator),
        [_read_value(ref) for ref in args.ref],
        executor,
        registry,
        max_workers=config.max_workers,
    )
    _emit([coin.to_dict() for coin in coins], args.pretty)


def cmd_coin_name(args: argparse.Namespace) -> None:
    if args.amount < 0:
        raise CLIError("--amount must be non-negative")
    name = coin_name(
        bytes_from_hex(args.parent, length=32),
        bytes_from_hex(args.puzzle_hash, length=32),
        args.amount,
    )
    print(prefix0x(name.hex()))


def cmd_combine_bundles(args: argparse.Namespace) -> None:
    bundles: list[SpendBundle] = []
    for raw_path in args.bundles:
        path = Path(raw_path).expanduser()
        try:
            document = json.loads(path.read_text())
        except OSError as exc:
            raise CLIError(f"Cannot read {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise CLIError(f"{path} is not valid JSON: {exc}") from exc
        # Full node RPC responses wrap the bundle.
        if isinstance(document, dict) and "spend_bundle" in document:
            document = document["spend_bundle"]
        if not isinstance(document, dict):
            raise CLIError(f"{path} does not contain a spend bundle object")
        try:
            bundles.append(SpendBundle.from_dict(document))
        except (KeyError, ValueError) as exc:
            raise CLIError(f"{path} is not a valid spend bundle: {exc}") from exc
    initialize_signing()
    _emit(combine_spend_bundles(bundles).to_dict(), args.pretty)


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        if args.command == "coin-name":
            cmd_coin_name(args)
        elif args.command == "combine-bundles":
            cmd_combine_bundles(args)
        else:
            config = load_config(
                config_path=args.config, overrides={"templates": args.templates}
            )
            if args.command == "parse-puzzle":
                cmd_parse_puzzle(args, config)
            elif args.command == "parse-block":
                cmd_parse_block(args, config)
            else:  # pragma: no cover - argparse enforces choices
                raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (
        CLIError,
        ConfigurationError,
        ExecutionError,
        ProgramDecodeError,
        SigningError,
        TemplateRegistryError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
