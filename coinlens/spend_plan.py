"""Coin selection and the boundary to the wallet's bundle builder."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from .model import Coin, SpendBundle
from .program import prefix0x

logger = logging.getLogger(__name__)


class SpendPlanError(RuntimeError):
    """Raised when available coins cannot fund a spend."""


@dataclass(frozen=True)
class TransferTarget:
    puzzle_hash: bytes
    amount: int


@dataclass(frozen=True)
class SpendPlan:
    """Coins chosen to fund ``targets`` plus ``fee``.

    ``coins[0]`` is the primary coin: it is the one whose spend creates the
    target and change outputs.
    """

    coins: tuple[Coin, ...]
    targets: tuple[TransferTarget, ...]
    change_puzzle_hash: bytes
    change_amount: int
    fee: int

    @property
    def primary_coin(self) -> Coin:
        return self.coins[0]

    def to_jsonable(self) -> dict[str, Any]:
        return {
            "coins": [coin.to_dict() for coin in self.coins],
            "targets": [
                {"puzzle_hash": prefix0x(target.puzzle_hash.hex()), "amount": target.amount}
                for target in self.targets
            ],
            "change_puzzle_hash": prefix0x(self.change_puzzle_hash.hex()),
            "change": self.change_amount,
            "fee": self.fee,
        }


class BundleBuilder(Protocol):
    """Wallet-side collaborator that turns a plan into a signed bundle."""

    def build_bundle(self, plan: SpendPlan) -> SpendBundle:
        ...


def plan_spend(
    available_coins: Sequence[Coin],
    targets: Sequence[TransferTarget],
    change_puzzle_hash: bytes,
    fee: int,
) -> SpendPlan:
    """Select coins covering the targets plus ``fee``.

    Coins are taken smallest first (ties broken by coin id) so the same inputs
    always produce the same plan.
    """

    if fee < 0:
        raise SpendPlanError(f"Fee must be non-negative, got {fee}")
    if any(target.amount < 0 for target in targets):
        raise SpendPlanError("Target amounts must be non-negative")
    if not available_coins:
        logger.warning("No coins available to fund a spend of %d targets", len(targets))
        raise SpendPlanError("No spendable coins available")

    needed = sum(target.amount for target in targets) + fee
    selected: list[Coin] = []
    total = 0
    for coin in sorted(available_coins, key=lambda c: (c.amount, c.name())):
        selected.append(coin)
        total += coin.amount
        if total >= needed:
            break

    if total < needed:
        logger.warning("Insufficient funds for spend: needed=%d, available=%d", needed, total)
        raise SpendPlanError(f"Insufficient funds: needed {needed}, available {total}")

    return SpendPlan(
        coins=tuple(selected),
        targets=tuple(targets),
        change_puzzle_hash=change_puzzle_hash,
        change_amount=total - needed,
        fee=fee,
    )
