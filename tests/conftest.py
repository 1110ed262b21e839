from __future__ import annotations

import pytest
from clvm import SExp
from clvm_tools.binutils import assemble

from coinlens.signing import initialize_signing, reset_signing
from coinlens.templates import TemplateRegistry

# Small stand-in programs; only their distinct tree hashes matter here.
TEMPLATE_SOURCES = {
    "cat_v1": "(c (q . 1) 2)",
    "cat_v2": "(c (q . 2) 5)",
    "singleton_top_layer_v1_1": "(c (q . 3) 11)",
    "nft_state_layer": "(c (q . 4) 23)",
    "nft_ownership_layer": "(c (q . 5) 47)",
    "nft_ownership_transfer_program_one_way_claim_with_royalties": "(c (q . 6) 95)",
    "did_innerpuz": "(c (q . 7) 191)",
    "genesis_by_coin_id": "(c (q . 8) 2)",
    "generator": "(a 2 5)",
}


def template_programs() -> dict[str, SExp]:
    return {name: assemble(source) for name, source in TEMPLATE_SOURCES.items()}


@pytest.fixture()
def registry() -> TemplateRegistry:
    return TemplateRegistry(template_programs())


@pytest.fixture()
def signing():
    reset_signing()
    context = initialize_signing()
    yield context
    reset_signing()
