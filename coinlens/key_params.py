"""Pull domain-meaningful values out of known nested template shapes.

Only exact, fully matched nestings are recognised:

* ``cat_v1``/``cat_v2``: argument 1, the asset's tail hash;
* ``singleton_top_layer_v1_1`` → ``nft_state_layer`` (arg 1) →
  ``nft_ownership_layer`` (arg 3) → transfer program (arg 2): the royalty
  address at argument 1 of the transfer program;
* ``singleton_top_layer_v1_1`` → ``did_innerpuz`` (arg 1): the recovery
  list hash at argument 1.

Anything else yields ``None``.
"""

from __future__ import annotations

from .decompiler import RawLeaf, SimplifiedPuzzle, TemplateMatch
from .templates import (
    CAT_V1,
    CAT_V2,
    DID_INNERPUZ,
    NFT_OWNERSHIP_LAYER,
    NFT_STATE_LAYER,
    NFT_TRANSFER_PROGRAM,
    SINGLETON_TOP_LAYER,
)

# Each step names the template expected at that level and the argument to
# descend into; the final entry's argument must be a raw leaf.
NFT_ROYALTY_PATH: tuple[tuple[str, int], ...] = (
    (SINGLETON_TOP_LAYER, 1),
    (NFT_STATE_LAYER, 3),
    (NFT_OWNERSHIP_LAYER, 2),
    (NFT_TRANSFER_PROGRAM, 1),
)
DID_RECOVERY_PATH: tuple[tuple[str, int], ...] = (
    (SINGLETON_TOP_LAYER, 1),
    (DID_INNERPUZ, 1),
)


def extract_key_param(node: SimplifiedPuzzle) -> str | None:
    if not isinstance(node, TemplateMatch):
        return None
    if node.template in (CAT_V1, CAT_V2):
        return _raw_arg(node, 1)
    if node.template == SINGLETON_TOP_LAYER:
        inner = _arg(node, 1)
        if isinstance(inner, TemplateMatch) and inner.template == NFT_STATE_LAYER:
            return _follow(node, NFT_ROYALTY_PATH)
        if isinstance(inner, TemplateMatch) and inner.template == DID_INNERPUZ:
            return _follow(node, DID_RECOVERY_PATH)
    return None


def _follow(node: SimplifiedPuzzle, path: tuple[tuple[str, int], ...]) -> str | None:
    current: SimplifiedPuzzle | None = node
    for template, index in path[:-1]:
        if not isinstance(current, TemplateMatch) or current.template != template:
            return None
        current = _arg(current, index)
    template, index = path[-1]
    if not isinstance(current, TemplateMatch) or current.template != template:
        return None
    return _raw_arg(current, index)


def _arg(node: TemplateMatch, index: int) -> SimplifiedPuzzle | None:
    if index >= len(node.args):
        return None
    return node.args[index]


def _raw_arg(node: TemplateMatch, index: int) -> str | None:
    value = _arg(node, index)
    if isinstance(value, RawLeaf):
        return value.hex
    return None
