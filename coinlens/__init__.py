"""Decode chia puzzles and assemble CAT mint spend bundles."""

from .block_parser import (
    CoinInfo,
    parse_block,
    parse_block_coins,
    parse_coin,
    parse_generator,
    parse_puzzle,
)
from .decompiler import (
    RawLeaf,
    SimplifiedPuzzle,
    TemplateMatch,
    mods_path,
    node_from_dict,
    rebuild_program,
    simplify,
)
from .key_params import extract_key_param
from .mint import MintCatResult, generate_mint_cat_bundle, sanitize_memo
from .model import Coin, CoinSpend, SpendBundle, coin_name
from .signing import (
    SigningContextError,
    combine_spend_bundles,
    initialize_signing,
    sign_coin_spends,
)
from .templates import TemplateRegistry, TemplateRegistryError

__all__ = [
    "Coin",
    "CoinInfo",
    "CoinSpend",
    "MintCatResult",
    "RawLeaf",
    "SigningContextError",
    "SimplifiedPuzzle",
    "SpendBundle",
    "TemplateMatch",
    "TemplateRegistry",
    "TemplateRegistryError",
    "coin_name",
    "combine_spend_bundles",
    "extract_key_param",
    "generate_mint_cat_bundle",
    "initialize_signing",
    "mods_path",
    "node_from_dict",
    "parse_block",
    "parse_block_coins",
    "parse_coin",
    "parse_generator",
    "parse_puzzle",
    "rebuild_program",
    "sanitize_memo",
    "sign_coin_spends",
    "simplify",
]
