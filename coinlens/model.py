"""Domain models for coins, coin spends and spend bundles.

Coins are pure content addresses: two coins are the same entity exactly when
``(parent_coin_info, puzzle_hash, amount)`` match, and :meth:`Coin.name`
derives the identifier the ledger uses for that triple. The JSON shapes
produced by ``to_dict`` mirror the full node's RPC documents so bundles can
be exchanged with wallets and mempool endpoints unchanged.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Mapping

from clvm.casts import int_to_bytes

from .program import bytes_from_hex, prefix0x


def amount_to_bytes(amount: int) -> bytes:
    """Canonical atom encoding of ``amount`` (minimal signed big-endian)."""

    if amount < 0:
        raise ValueError(f"Coin amount must be non-negative, got {amount}")
    return int_to_bytes(amount)


def coin_name(parent_coin_info: bytes, puzzle_hash: bytes, amount: int) -> bytes:
    """Return ``sha256(parent || puzzle_hash || amount)`` as the coin id."""

    return hashlib.sha256(parent_coin_info + puzzle_hash + amount_to_bytes(amount)).digest()


@dataclass(frozen=True)
class Coin:
    parent_coin_info: bytes
    puzzle_hash: bytes
    amount: int

    def __post_init__(self) -> None:
        if len(self.parent_coin_info) != 32 or len(self.puzzle_hash) != 32:
            raise ValueError("Coin parent_coin_info and puzzle_hash must be 32 bytes")
        if self.amount < 0:
            raise ValueError(f"Coin amount must be non-negative, got {self.amount}")

    def name(self) -> bytes:
        return coin_name(self.parent_coin_info, self.puzzle_hash, self.amount)

    def to_dict(self) -> dict[str, Any]:
        return {
            "parent_coin_info": prefix0x(self.parent_coin_info.hex()),
            "puzzle_hash": prefix0x(self.puzzle_hash.hex()),
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Coin":
        return cls(
            parent_coin_info=bytes_from_hex(str(data["parent_coin_info"]), length=32),
            puzzle_hash=bytes_from_hex(str(data["puzzle_hash"]), length=32),
            amount=int(data["amount"]),
        )


@dataclass(frozen=True)
class CoinSpend:
    """A coin together with the puzzle reveal and solution that spend it.

    ``puzzle_reveal`` and ``solution`` hold serialized program bytes.
    """

    coin: Coin
    puzzle_reveal: bytes
    solution: bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "coin": self.coin.to_dict(),
            "puzzle_reveal": prefix0x(self.puzzle_reveal.hex()),
            "solution": prefix0x(self.solution.hex()),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CoinSpend":
        return cls(
            coin=Coin.from_dict(data["coin"]),
            puzzle_reveal=bytes_from_hex(str(data["puzzle_reveal"])),
            solution=bytes_from_hex(str(data["solution"])),
        )


@dataclass(frozen=True)
class SpendBundle:
    """Ordered coin spends authorised by one aggregated BLS signature.

    An empty ``aggregated_signature`` marks a bundle that has not been signed
    yet; such bundles are skipped when bundles are combined.
    """

    aggregated_signature: bytes
    coin_spends: tuple[CoinSpend, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.coin_spends, tuple):
            object.__setattr__(self, "coin_spends", tuple(self.coin_spends))

    def to_dict(self) -> dict[str, Any]:
        return {
            "aggregated_signature": prefix0x(self.aggregated_signature.hex()),
            "coin_spends": [spend.to_dict() for spend in self.coin_spends],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SpendBundle":
        signature = data.get("aggregated_signature") or ""
        return cls(
            aggregated_signature=bytes_from_hex(str(signature)) if signature else b"",
            coin_spends=tuple(CoinSpend.from_dict(item) for item in data.get("coin_spends", [])),
        )
