from __future__ import annotations

import pytest
from chia_rs import AugSchemeMPL, G2Element
from clvm import SExp

from coinlens.model import Coin, CoinSpend, SpendBundle
from coinlens.program import program_to_hex
from coinlens.signing import (
    AGG_SIG_ME,
    AGG_SIG_UNSAFE,
    SigningContextError,
    SigningError,
    combine_spend_bundles,
    initialize_signing,
    private_key_from_hex,
    reset_signing,
    sign_coin_spends,
)

GENESIS = bytes.fromhex("ab" * 32)


def _key(seed: int):
    return AugSchemeMPL.key_gen(bytes([seed]) * 32)


def _spend(tag: int) -> CoinSpend:
    coin = Coin(bytes([tag]) * 32, bytes([tag + 1]) * 32, 1000 + tag)
    return CoinSpend(coin, bytes.fromhex("ff0180"), bytes.fromhex("80"))


def _bundle(seed: int, message: bytes, *spends: CoinSpend) -> tuple[SpendBundle, G2Element]:
    signature = AugSchemeMPL.sign(_key(seed), message)
    return SpendBundle(bytes(signature), spends), signature


class ConditionsExecutor:
    def __init__(self, conditions: list[list[object]]) -> None:
        self.conditions = conditions
        self.calls = 0

    def execute(self, program_hex, env_hex, flags=("--hex", "--dump")):
        self.calls += 1
        return program_to_hex(SExp.to(self.conditions))


def test_combine_requires_initialized_context() -> None:
    reset_signing()
    bundle, _ = _bundle(1, b"a", _spend(1))

    with pytest.raises(SigningContextError):
        combine_spend_bundles([bundle])


def test_initialize_signing_is_idempotent(signing) -> None:
    assert initialize_signing() is signing


def test_combine_concatenates_spends_and_aggregates(signing) -> None:
    first, sig_a = _bundle(1, b"a", _spend(1), _spend(2))
    second, sig_b = _bundle(2, b"b", _spend(3))

    combined = combine_spend_bundles([first, second])

    assert combined.coin_spends == first.coin_spends + second.coin_spends
    assert combined.aggregated_signature == bytes(AugSchemeMPL.aggregate([sig_a, sig_b]))
    assert AugSchemeMPL.aggregate_verify(
        [_key(1).get_g1(), _key(2).get_g1()],
        [b"a", b"b"],
        G2Element.from_bytes(combined.aggregated_signature),
    )


def test_combine_is_associative(signing) -> None:
    a, _ = _bundle(1, b"a", _spend(1))
    b, _ = _bundle(2, b"b", _spend(2))
    c, _ = _bundle(3, b"c", _spend(3))

    assert combine_spend_bundles([a, b, c]) == combine_spend_bundles(
        [combine_spend_bundles([a, b]), c]
    )


def test_combine_skips_unsigned_bundles(signing) -> None:
    signed, signature = _bundle(1, b"a", _spend(1))
    unsigned = SpendBundle(b"", (_spend(2),))

    combined = combine_spend_bundles([None, unsigned, signed])

    assert combined.coin_spends == signed.coin_spends
    assert combined.aggregated_signature == bytes(signature)


def test_combine_of_nothing_is_identity(signing) -> None:
    assert combine_spend_bundles([]) == SpendBundle(bytes(G2Element()), ())


def test_sign_coin_spends_signs_agg_sig_me_and_unsafe(signing) -> None:
    key = _key(7)
    public_key = bytes(key.get_g1())
    spend = _spend(4)
    executor = ConditionsExecutor(
        [[AGG_SIG_ME, public_key, b"me"], [AGG_SIG_UNSAFE, public_key, b"unsafe"], [51, b"\x00" * 32, 1]]
    )

    bundle = sign_coin_spends([spend], [key], GENESIS, executor)

    assert bundle.coin_spends == (spend,)
    assert executor.calls == 1
    assert signing.verify(
        [key.get_g1(), key.get_g1()],
        [b"me" + spend.coin.name() + GENESIS, b"unsafe"],
        signing.signature_from_bytes(bundle.aggregated_signature),
    )
    assert not signing.verify(
        [key.get_g1()],
        [b"me"],
        signing.signature_from_bytes(bundle.aggregated_signature),
    )


def test_sign_coin_spends_without_conditions_returns_identity(signing) -> None:
    bundle = sign_coin_spends([_spend(5)], [_key(1)], GENESIS, ConditionsExecutor([]))

    assert bundle.aggregated_signature == bytes(G2Element())


def test_sign_coin_spends_requires_matching_key(signing) -> None:
    executor = ConditionsExecutor([[AGG_SIG_ME, bytes(_key(8).get_g1()), b"me"]])

    with pytest.raises(SigningError, match="No private key"):
        sign_coin_spends([_spend(6)], [_key(9)], GENESIS, executor)


def test_sign_coin_spends_rejects_malformed_condition(signing) -> None:
    executor = ConditionsExecutor([[AGG_SIG_ME, bytes(_key(8).get_g1())]])

    with pytest.raises(SigningError, match="Malformed"):
        sign_coin_spends([_spend(6)], [_key(8)], GENESIS, executor)


def test_private_key_from_hex_round_trip() -> None:
    key = _key(3)

    assert bytes(private_key_from_hex("0x" + bytes(key).hex())) == bytes(key)
