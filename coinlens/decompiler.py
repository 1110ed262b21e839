"""Turn opaque curried puzzles into trees of recognised templates.

:func:`simplify` walks a puzzle top-down. Each node is either a
:class:`TemplateMatch` (a registered template plus its simplified curried
arguments) or a :class:`RawLeaf` holding the exact serialization of the
sub-program it stands in for. Recognition is all-or-nothing per node: a
curried program whose module is not registered becomes a single raw leaf,
even when some of its arguments would have been recognised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from clvm import SExp

from .program import (
    ProgramDecodeError,
    curry,
    program_from_hex,
    program_to_hex,
    tree_hash,
    uncurry,
)
from .templates import TemplateRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawLeaf:
    """An unrecognised sub-program, kept as ``0x`` prefixed bytecode hex."""

    hex: str

    def to_dict(self) -> dict[str, Any]:
        return {"raw": self.hex}

    def to_program(self) -> SExp:
        return program_from_hex(self.hex)


@dataclass(frozen=True)
class TemplateMatch:
    """A registered template with its curried arguments, in order."""

    template: str
    args: tuple["SimplifiedPuzzle", ...] = ()
    # False only when the program is the bare template itself.
    curried: bool = field(default=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"mod": self.template, "args": [arg.to_dict() for arg in self.args]}
        if self.curried and not self.args:
            data["curried"] = True
        return data


SimplifiedPuzzle = Union[TemplateMatch, RawLeaf]


def simplify(program: SExp, registry: TemplateRegistry) -> SimplifiedPuzzle:
    """Simplify ``program`` against ``registry``; never raises on mismatch.

    Puzzles nested beyond the interpreter's recursion limit are kept whole as
    a raw leaf.
    """

    try:
        return _simplify(program, registry)
    except (ProgramDecodeError, RecursionError):
        logger.warning("Puzzle is nested too deeply to simplify; keeping it raw")
        return RawLeaf(program_to_hex(program))


def _simplify(program: SExp, registry: TemplateRegistry) -> SimplifiedPuzzle:
    name = registry.resolve_by_hash(tree_hash(program))
    if name is not None:
        return TemplateMatch(name)

    uncurried = uncurry(program)
    if uncurried is None:
        return RawLeaf(program_to_hex(program))

    module, curried_args = uncurried
    args = tuple(_simplify(arg, registry) for arg in curried_args)
    module_name = registry.resolve_by_hash(tree_hash(module))
    if module_name is None:
        logger.debug("Curried module 0x%s is not registered", tree_hash(module).hex())
        return RawLeaf(program_to_hex(program))
    return TemplateMatch(module_name, args, curried=True)


def mods_path(node: SimplifiedPuzzle) -> str:
    """Serialize the template shape as ``name(child,child,...)``.

    Raw leaves contribute nothing, so ``cat_v2(singleton_top_layer_v1_1())``
    is the path of a CAT wrapping a singleton regardless of the raw data
    curried in beside them.
    """

    if isinstance(node, RawLeaf):
        return ""
    children = [path for path in (mods_path(arg) for arg in node.args) if path]
    return f"{node.template}({','.join(children)})"


def rebuild_program(node: SimplifiedPuzzle, registry: TemplateRegistry) -> SExp:
    """Reconstruct the exact program a simplified tree was derived from."""

    if isinstance(node, RawLeaf):
        return node.to_program()
    module = registry.resolve_by_name(node.template)
    if not node.args and not node.curried:
        return module
    return curry(module, *(rebuild_program(arg, registry) for arg in node.args))


def node_from_dict(data: Mapping[str, Any]) -> SimplifiedPuzzle:
    """Inverse of ``to_dict`` for both node variants."""

    if "raw" in data:
        return RawLeaf(str(data["raw"]))
    if "mod" not in data:
        raise ValueError("Simplified puzzle node must contain 'raw' or 'mod'")
    return TemplateMatch(
        template=str(data["mod"]),
        args=tuple(node_from_dict(arg) for arg in data.get("args", [])),
        curried=bool(data.get("args")) or bool(data.get("curried", False)),
    )
