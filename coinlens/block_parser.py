"""Parse block generators into per-coin summaries.

A block generator, once executed, yields ``((parent puzzle amount solution)
...)``: one entry per coin spent in the block. Every entry is independent, so
:func:`parse_block_coins` fans them out over a thread pool and collects the
results back in input order.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Sequence

from clvm import SExp
from clvm_tools.binutils import assemble

from .decompiler import SimplifiedPuzzle, mods_path, simplify
from .executor import EMPTY_ENV_HEX, PuzzleExecutor
from .key_params import extract_key_param
from .model import coin_name
from .program import (
    ProgramDecodeError,
    bytes_from_hex,
    prefix0x,
    program_from_hex,
    program_to_hex,
    tree_hash,
)
from .templates import GENERATOR, TemplateRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoinInfo:
    """Read-only projection of one coin spend found in a block."""

    parent: str
    puzzle: str
    parsed_puzzle: SimplifiedPuzzle
    amount: int
    solution: str
    coin_name: str
    mods_path: str
    key_param: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "parent": self.parent,
            "puzzle": self.puzzle,
            "parsed_puzzle": self.parsed_puzzle.to_dict(),
            "amount": str(self.amount),
            "solution": self.solution,
            "coin_name": self.coin_name,
            "mods": self.mods_path,
        }
        if self.key_param is not None:
            data["key_param"] = self.key_param
        return data


def parse_block(
    generator_hex: str,
    ref_hex_list: Sequence[str] | None,
    executor: PuzzleExecutor,
    registry: TemplateRegistry,
) -> str:
    """Execute a block generator and return the raw result hex.

    Generators with back references run through the registered ``generator``
    dereferencing module with ``(generator (refs))`` as its environment;
    plain generators run directly against ``(())``.
    """

    if ref_hex_list:
        refs = [bytes_from_hex(ref) for ref in ref_hex_list]
        env = SExp.to([program_from_hex(generator_hex), [refs]])
        program = registry.resolve_by_name(GENERATOR)
        logger.debug("Executing generator with %d back references", len(refs))
        return executor.execute(program_to_hex(program), program_to_hex(env))
    return executor.execute(generator_hex, EMPTY_ENV_HEX)


def parse_coin(spend: SExp, registry: TemplateRegistry) -> CoinInfo:
    """Build a :class:`CoinInfo` from one ``(parent puzzle amount solution)``."""

    items = list(spend.as_iter())
    if len(items) < 4:
        raise ProgramDecodeError(f"Coin spend entry has {len(items)} elements, expected 4")
    parent_atom, puzzle, amount_atom, solution = items[:4]
    if parent_atom.listp() or amount_atom.listp():
        raise ProgramDecodeError("Coin spend parent and amount must be atoms")

    parent = parent_atom.atom
    amount = amount_atom.as_int()
    puzzle_hash = tree_hash(puzzle)
    parsed = simplify(puzzle, registry)
    return CoinInfo(
        parent=prefix0x(parent.hex()),
        puzzle=program_to_hex(puzzle),
        parsed_puzzle=parsed,
        amount=amount,
        solution=program_to_hex(solution),
        coin_name=prefix0x(coin_name(parent, puzzle_hash, amount).hex()),
        mods_path=mods_path(parsed),
        key_param=extract_key_param(parsed),
    )


def parse_block_coins(
    executed_hex: str, registry: TemplateRegistry, max_workers: int = 8
) -> list[CoinInfo]:
    """Parse every coin spend in an executed generator result, in order."""

    result = program_from_hex(executed_hex)
    if not result.listp():
        raise ProgramDecodeError("Executed generator did not return a list")
    spends = list(result.first().as_iter())
    if not spends:
        return []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda spend: parse_coin(spend, registry), spends))


def parse_generator(
    generator_hex: str,
    ref_hex_list: Sequence[str] | None,
    executor: PuzzleExecutor,
    registry: TemplateRegistry,
    max_workers: int = 8,
) -> list[CoinInfo]:
    """Execute ``generator_hex`` and summarise every coin it spends."""

    started = time.perf_counter()
    executed = parse_block(generator_hex, ref_hex_list, executor, registry)
    coins = parse_block_coins(executed, registry, max_workers=max_workers)
    logger.info(
        "Parsed %d coins from generator in %.3fs", len(coins), time.perf_counter() - started
    )
    return coins


def parse_puzzle(puzzle: str, registry: TemplateRegistry) -> SimplifiedPuzzle:
    """Simplify a puzzle given as bytecode hex or as clvm assembly text."""

    text = puzzle.strip()
    if text.startswith("("):
        try:
            program = assemble(text)
        except (SyntaxError, ValueError) as exc:
            raise ProgramDecodeError(f"Cannot assemble puzzle: {exc}") from exc
    else:
        program = program_from_hex(text)
    return simplify(program, registry)
