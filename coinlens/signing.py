"""BLS signing context, spend signing, and spend bundle aggregation.

The signing context is the one piece of process-wide mutable state in the
package. :func:`initialize_signing` must run once before any signature is
produced or combined; afterwards the context is read-only and shared.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Sequence

from chia_rs import AugSchemeMPL, G1Element, G2Element, PrivateKey
from clvm import SExp

from .executor import PuzzleExecutor
from .model import CoinSpend, SpendBundle
from .program import bytes_from_hex, prefix0x, program_from_hex, program_to_hex

logger = logging.getLogger(__name__)

AGG_SIG_UNSAFE = 49
AGG_SIG_ME = 50


class SigningContextError(RuntimeError):
    """Raised when signing is attempted before the context is initialized."""


class SigningError(RuntimeError):
    """Raised when a signature is malformed or a required key is missing."""


@dataclass(frozen=True)
class SigningContext:
    """Handle on the BLS scheme used for every signature in a bundle."""

    def aggregate(self, signatures: Sequence[G2Element]) -> G2Element:
        if not signatures:
            return G2Element()
        return AugSchemeMPL.aggregate(list(signatures))

    def signature_from_bytes(self, blob: bytes) -> G2Element:
        try:
            return G2Element.from_bytes(blob)
        except (ValueError, RuntimeError) as exc:
            raise SigningError(f"Invalid BLS signature 0x{blob.hex()}") from exc

    def sign(self, private_key: PrivateKey, message: bytes) -> G2Element:
        return AugSchemeMPL.sign(private_key, message)

    def verify(self, public_keys: Sequence[G1Element], messages: Sequence[bytes], signature: G2Element) -> bool:
        return AugSchemeMPL.aggregate_verify(list(public_keys), list(messages), signature)


_CONTEXT: SigningContext | None = None
_CONTEXT_LOCK = threading.Lock()


def initialize_signing() -> SigningContext:
    """Create the process-wide signing context; repeated calls are no-ops."""

    global _CONTEXT
    with _CONTEXT_LOCK:
        if _CONTEXT is None:
            _CONTEXT = SigningContext()
            logger.debug("BLS signing context initialized")
        return _CONTEXT


def signing_context() -> SigningContext:
    if _CONTEXT is None:
        raise SigningContextError("BLS not initialized; call initialize_signing() first")
    return _CONTEXT


def reset_signing() -> None:
    """Forget the signing context. Intended for tests."""

    global _CONTEXT
    with _CONTEXT_LOCK:
        _CONTEXT = None


def private_key_from_hex(value: str) -> PrivateKey:
    try:
        return PrivateKey.from_bytes(bytes_from_hex(value, length=32))
    except (ValueError, RuntimeError) as exc:
        raise SigningError("Invalid BLS private key") from exc


def combine_spend_bundles(bundles: Iterable[SpendBundle | None]) -> SpendBundle:
    """Merge bundles into one with an aggregated signature.

    Bundles that are missing or carry no signature are skipped. Coin spends
    are concatenated in the order the bundles are given.
    """

    context = signing_context()
    signed: list[SpendBundle] = []
    for bundle in bundles:
        if bundle is None or not bundle.aggregated_signature:
            logger.warning("Skipping spend bundle without a signature")
            continue
        signed.append(bundle)

    signatures = [context.signature_from_bytes(bundle.aggregated_signature) for bundle in signed]
    aggregate = context.aggregate(signatures)
    spends = tuple(spend for bundle in signed for spend in bundle.coin_spends)
    return SpendBundle(aggregated_signature=bytes(aggregate), coin_spends=spends)


def required_signatures(
    coin_spend: CoinSpend, genesis_challenge: bytes, executor: PuzzleExecutor
) -> list[tuple[bytes, bytes]]:
    """Return ``(public_key, message)`` pairs the spend's conditions demand."""

    conditions = executor.execute(
        prefix0x(coin_spend.puzzle_reveal.hex()), prefix0x(coin_spend.solution.hex())
    )
    pairs: list[tuple[bytes, bytes]] = []
    for condition in program_from_hex(conditions).as_iter():
        opcode, args = _condition_parts(condition)
        if opcode == AGG_SIG_UNSAFE:
            pairs.append((args[0], args[1]))
        elif opcode == AGG_SIG_ME:
            message = args[1] + coin_spend.coin.name() + genesis_challenge
            pairs.append((args[0], message))
    return pairs


def sign_coin_spends(
    coin_spends: Sequence[CoinSpend],
    private_keys: Sequence[PrivateKey],
    genesis_challenge: bytes,
    executor: PuzzleExecutor,
) -> SpendBundle:
    """Sign every AGG_SIG condition raised by ``coin_spends``."""

    context = signing_context()
    keys = {bytes(key.get_g1()): key for key in private_keys}
    signatures: list[G2Element] = []
    for coin_spend in coin_spends:
        for public_key, message in required_signatures(coin_spend, genesis_challenge, executor):
            key = keys.get(public_key)
            if key is None:
                raise SigningError(
                    f"No private key for public key 0x{public_key.hex()} required by coin "
                    f"0x{coin_spend.coin.name().hex()}"
                )
            signatures.append(context.sign(key, message))
    logger.debug("Signed %d messages for %d coin spends", len(signatures), len(coin_spends))
    return SpendBundle(
        aggregated_signature=bytes(context.aggregate(signatures)),
        coin_spends=tuple(coin_spends),
    )


def _condition_parts(condition: SExp) -> tuple[int | None, list[bytes]]:
    items = list(condition.as_iter())
    if not items or items[0].listp():
        return None, []
    opcode = items[0].as_int()
    if opcode in (AGG_SIG_UNSAFE, AGG_SIG_ME):
        if len(items) < 3 or items[1].listp() or items[2].listp():
            raise SigningError(f"Malformed AGG_SIG condition: {program_to_hex(condition)}")
    args = [item.atom for item in items[1:] if not item.listp()]
    return opcode, args
