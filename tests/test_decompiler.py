from __future__ import annotations

from clvm import SExp
from clvm_tools.binutils import assemble

from coinlens.decompiler import (
    RawLeaf,
    TemplateMatch,
    mods_path,
    node_from_dict,
    rebuild_program,
    simplify,
)
from coinlens.program import curry, program_to_hex
from coinlens.templates import TemplateRegistry

TAIL_HASH = bytes.fromhex("cc" * 32)


def _raw(value: object) -> RawLeaf:
    return RawLeaf(program_to_hex(SExp.to(value)))


def _cat(registry: TemplateRegistry, inner: SExp) -> SExp:
    return curry(
        registry.resolve_by_name("cat_v2"),
        registry.hash_of("cat_v2"),
        TAIL_HASH,
        inner,
    )


def test_registered_program_simplifies_without_arguments(registry: TemplateRegistry) -> None:
    assert simplify(registry.resolve_by_name("cat_v2"), registry) == TemplateMatch("cat_v2")


def test_non_curried_program_becomes_raw_leaf(registry: TemplateRegistry) -> None:
    program = assemble("(+ 2 (q . 7))")

    node = simplify(program, registry)

    assert node == RawLeaf(program_to_hex(program))
    assert node.to_program().as_bin() == program.as_bin()


def test_atom_becomes_raw_leaf_with_serialization_prefix(registry: TemplateRegistry) -> None:
    node = simplify(SExp.to(TAIL_HASH), registry)

    assert node == RawLeaf("0xa0" + "cc" * 32)


def test_curried_template_keeps_argument_order(registry: TemplateRegistry) -> None:
    inner = assemble("(q . ((51 0x00 1)))")

    node = simplify(_cat(registry, inner), registry)

    assert node == TemplateMatch(
        "cat_v2",
        (
            _raw(registry.hash_of("cat_v2")),
            _raw(TAIL_HASH),
            RawLeaf(program_to_hex(inner)),
        ),
    )


def test_nested_templates_are_recognised(registry: TemplateRegistry) -> None:
    did = curry(registry.resolve_by_name("did_innerpuz"), b"\x01" * 32, b"\x02" * 32)
    singleton = curry(
        registry.resolve_by_name("singleton_top_layer_v1_1"), assemble("(0x11 0x22)"), did
    )

    node = simplify(_cat(registry, singleton), registry)

    assert isinstance(node, TemplateMatch)
    inner = node.args[2]
    assert isinstance(inner, TemplateMatch)
    assert inner.template == "singleton_top_layer_v1_1"
    assert inner.args[1] == TemplateMatch("did_innerpuz", (_raw(b"\x01" * 32), _raw(b"\x02" * 32)))


def test_unregistered_module_makes_whole_node_raw(registry: TemplateRegistry) -> None:
    recognised_arg = curry(registry.resolve_by_name("did_innerpuz"), b"\x01" * 32)
    program = curry(assemble("(+ 2 5)"), recognised_arg, b"\x05")

    assert simplify(program, registry) == RawLeaf(program_to_hex(program))


def test_mods_path_skips_raw_children(registry: TemplateRegistry) -> None:
    did = curry(registry.resolve_by_name("did_innerpuz"), b"\x01" * 32)
    singleton = curry(registry.resolve_by_name("singleton_top_layer_v1_1"), b"\x03", did)

    node = simplify(_cat(registry, singleton), registry)

    assert mods_path(node) == "cat_v2(singleton_top_layer_v1_1(did_innerpuz()))"
    assert mods_path(node) == mods_path(node)
    assert mods_path(RawLeaf("0x80")) == ""
    assert mods_path(TemplateMatch("cat_v2")) == "cat_v2()"


def test_rebuild_program_is_lossless(registry: TemplateRegistry) -> None:
    did = curry(registry.resolve_by_name("did_innerpuz"), b"\x01" * 32, assemble("(1 2 3)"))
    singleton = curry(registry.resolve_by_name("singleton_top_layer_v1_1"), b"\x03", did)
    programs = [
        _cat(registry, singleton),
        curry(registry.resolve_by_name("genesis_by_coin_id")),
        registry.resolve_by_name("generator"),
        assemble("(+ 2 5)"),
    ]

    for program in programs:
        rebuilt = rebuild_program(simplify(program, registry), registry)
        assert rebuilt.as_bin() == program.as_bin()


def test_interchange_document_round_trip(registry: TemplateRegistry) -> None:
    did = curry(registry.resolve_by_name("did_innerpuz"), b"\x01" * 32)
    node = simplify(curry(registry.resolve_by_name("singleton_top_layer_v1_1"), b"\x03", did), registry)

    document = node.to_dict()

    assert document == {
        "mod": "singleton_top_layer_v1_1",
        "args": [
            {"raw": "0x03"},
            {"mod": "did_innerpuz", "args": [{"raw": "0xa0" + "01" * 32}]},
        ],
    }
    assert node_from_dict(document) == node


def test_curried_template_without_arguments_survives_document_round_trip(
    registry: TemplateRegistry,
) -> None:
    program = curry(registry.resolve_by_name("genesis_by_coin_id"))

    document = simplify(program, registry).to_dict()

    assert document == {"mod": "genesis_by_coin_id", "args": [], "curried": True}
    assert TemplateMatch("genesis_by_coin_id").to_dict() == {"mod": "genesis_by_coin_id", "args": []}
    rebuilt = rebuild_program(node_from_dict(document), registry)
    assert rebuilt.as_bin() == program.as_bin()
    bare = rebuild_program(node_from_dict({"mod": "genesis_by_coin_id", "args": []}), registry)
    assert bare.as_bin() == registry.resolve_by_name("genesis_by_coin_id").as_bin()


def test_deeply_nested_curry_chain_stays_raw(registry: TemplateRegistry) -> None:
    module = assemble("(+ 2 5)")
    program = module
    for _ in range(520):
        program = curry(module, program)

    assert simplify(program, registry) == RawLeaf(program_to_hex(program))
