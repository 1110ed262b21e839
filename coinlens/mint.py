"""Assemble spend bundles that mint a new CAT.

Minting binds the new asset to an existing coin. The wallet first picks a
bootstrap coin, the tail ``genesis_by_coin_id`` is curried with that coin's
id, and the tail hash becomes the asset id. Because the bootstrap coin is
consumed by the same bundle, the asset id can never be minted twice.

The result merges two bundles:

* the internal bundle, built by the wallet, which moves ``amount`` from the
  available coins to the CAT puzzle hash (the bootstrap coin is its primary
  coin);
* the external bundle, which spends the freshly created CAT coin with a
  solution proving the genesis linkage.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Sequence

from chia_rs import PrivateKey
from clvm import SExp

from .executor import PuzzleExecutor
from .model import Coin, CoinSpend, SpendBundle
from .program import curry, prefix0x, tree_hash
from .signing import combine_spend_bundles, sign_coin_spends
from .spend_plan import BundleBuilder, TransferTarget, plan_spend
from .templates import CAT_V1, CAT_V2, GENESIS_BY_COIN_ID, TemplateRegistry

logger = logging.getLogger(__name__)

CREATE_COIN = 51
# Magic amount that makes the CAT layer run the tail.
RUN_TAIL_AMOUNT = -113
PLACEHOLDER_PUZZLE_HASH = bytes(32)
CAT_TEMPLATES = (CAT_V1, CAT_V2)

_UNSAFE_MEMO_CHARS = re.compile(r"[&/\\#,+()$~%.'\":*?<>{}\[\] ]")


class MintError(RuntimeError):
    """Raised when a mint cannot be assembled."""


@dataclass(frozen=True)
class CatPuzzle:
    """Every program and hash derived while building the CAT puzzle."""

    bootstrap_coin_id: bytes
    tail: SExp
    tail_hash: bytes
    inner_puzzle: SExp
    inner_puzzle_hash: bytes
    puzzle: SExp
    puzzle_hash: bytes


@dataclass(frozen=True)
class MintCatResult:
    spend_bundle: SpendBundle
    asset_id: bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "spend_bundle": self.spend_bundle.to_dict(),
            "asset_id": prefix0x(self.asset_id.hex()),
        }


def sanitize_memo(memo: str) -> str:
    """Replace characters unsafe in a clvm token with ``_``."""

    return _UNSAFE_MEMO_CHARS.sub("_", memo)


def build_cat_puzzle(
    registry: TemplateRegistry,
    bootstrap_coin_id: bytes,
    target_puzzle_hash: bytes,
    amount: int,
    memo: str,
    cat_mod_name: str = CAT_V2,
) -> CatPuzzle:
    """Derive the tail, inner puzzle and curried CAT puzzle for a mint.

    ``memo`` is stored verbatim as a UTF-8 byte atom in the memo list
    ``(target memo)``: an empty memo stays an empty atom and digits are not
    read as an integer.
    """

    if cat_mod_name not in CAT_TEMPLATES:
        raise MintError(f"Unsupported CAT template {cat_mod_name!r}")
    tail = curry(registry.resolve_by_name(GENESIS_BY_COIN_ID), bootstrap_coin_id)
    tail_hash = tree_hash(tail)

    # (q (51 () -113 TAIL ()) (51 TARGET AMOUNT (TARGET MEMO)))
    inner_puzzle = SExp.to(
        (
            1,
            [
                [CREATE_COIN, 0, RUN_TAIL_AMOUNT, tail, 0],
                [CREATE_COIN, target_puzzle_hash, amount, [target_puzzle_hash, memo.encode()]],
            ],
        )
    )
    inner_puzzle_hash = tree_hash(inner_puzzle)

    puzzle = curry(
        registry.resolve_by_name(cat_mod_name),
        registry.hash_of(cat_mod_name),
        tail_hash,
        inner_puzzle,
    )
    return CatPuzzle(
        bootstrap_coin_id=bootstrap_coin_id,
        tail=tail,
        tail_hash=tail_hash,
        inner_puzzle=inner_puzzle,
        inner_puzzle_hash=inner_puzzle_hash,
        puzzle=puzzle,
        puzzle_hash=tree_hash(puzzle),
    )


def build_eve_spend(cat: CatPuzzle, amount: int) -> CoinSpend:
    """Spend of the first CAT coin, created by the bootstrap coin."""

    coin = Coin(cat.bootstrap_coin_id, cat.puzzle_hash, amount)
    # (() () COIN_NAME (BOOTSTRAP CAT_HASH AMOUNT) (BOOTSTRAP INNER_HASH AMOUNT) () ())
    solution = SExp.to(
        [
            0,
            0,
            coin.name(),
            [cat.bootstrap_coin_id, cat.puzzle_hash, amount],
            [cat.bootstrap_coin_id, cat.inner_puzzle_hash, amount],
            0,
            0,
        ]
    )
    return CoinSpend(coin=coin, puzzle_reveal=cat.puzzle.as_bin(), solution=solution.as_bin())


def generate_mint_cat_bundle(
    target_puzzle_hash: bytes,
    change_puzzle_hash: bytes,
    amount: int,
    fee: int,
    memo: str,
    available_coins: Sequence[Coin],
    private_key: PrivateKey,
    bundle_builder: BundleBuilder,
    registry: TemplateRegistry,
    executor: PuzzleExecutor,
    genesis_challenge: bytes,
    cat_mod_name: str = CAT_V2,
) -> MintCatResult:
    """Build the complete mint bundle and return it with the new asset id."""

    if amount <= 0:
        raise MintError(f"Mint amount must be positive, got {amount}")
    memo = sanitize_memo(memo)

    # The placeholder target only decides which coin bootstraps the asset.
    bootstrap_plan = plan_spend(
        available_coins,
        [TransferTarget(PLACEHOLDER_PUZZLE_HASH, amount)],
        change_puzzle_hash,
        fee,
    )
    bootstrap_coin_id = bootstrap_plan.primary_coin.name()
    cat = build_cat_puzzle(
        registry, bootstrap_coin_id, target_puzzle_hash, amount, memo, cat_mod_name
    )

    internal_plan = plan_spend(
        available_coins,
        [TransferTarget(cat.puzzle_hash, amount)],
        change_puzzle_hash,
        fee,
    )
    internal = bundle_builder.build_bundle(internal_plan)
    external = sign_coin_spends(
        [build_eve_spend(cat, amount)], [private_key], genesis_challenge, executor
    )
    bundle = combine_spend_bundles([internal, external])
    logger.info(
        "Built mint bundle for asset 0x%s from bootstrap coin 0x%s",
        cat.tail_hash.hex(),
        bootstrap_coin_id.hex(),
    )
    return MintCatResult(spend_bundle=bundle, asset_id=cat.tail_hash)
