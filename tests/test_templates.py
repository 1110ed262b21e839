from __future__ import annotations

from pathlib import Path

import pytest
from clvm_tools.binutils import assemble

from coinlens.program import program_to_hex, tree_hash
from coinlens.templates import TemplateRegistry, TemplateRegistryError


def test_registry_resolves_both_directions(registry: TemplateRegistry) -> None:
    program = registry.resolve_by_name("cat_v2")

    assert registry.resolve_by_hash(tree_hash(program)) == "cat_v2"
    assert registry.hash_of("cat_v2") == tree_hash(program)
    assert "cat_v2" in registry
    assert len(registry) == 9


def test_registry_missing_hash_is_not_an_error(registry: TemplateRegistry) -> None:
    assert registry.resolve_by_hash(b"\x00" * 32) is None


def test_registry_unknown_name_raises(registry: TemplateRegistry) -> None:
    with pytest.raises(TemplateRegistryError):
        registry.resolve_by_name("not_a_template")


def test_registry_rejects_hash_collisions() -> None:
    program = assemble("(+ 2 5)")

    with pytest.raises(TemplateRegistryError):
        TemplateRegistry({"first": program, "second": program})


def test_registry_loads_yaml_catalogue(tmp_path: Path) -> None:
    catalogue = tmp_path / "templates.yaml"
    catalogue.write_text(
        "templates:\n"
        f"  cat_v2: \"{program_to_hex(assemble('(+ 2 5)'))}\"\n"
        f"  did_innerpuz: \"{program_to_hex(assemble('(* 2 5)'))}\"\n"
    )

    registry = TemplateRegistry.load(catalogue)

    assert registry.names() == ["cat_v2", "did_innerpuz"]
    assert registry.resolve_by_hash(tree_hash(assemble("(* 2 5)"))) == "did_innerpuz"


def test_registry_loads_hex_directory(tmp_path: Path) -> None:
    (tmp_path / "cat_v2.clsp.hex").write_text(program_to_hex(assemble("(+ 2 5)"))[2:] + "\n")
    (tmp_path / "generator.hex").write_text(program_to_hex(assemble("(a 2 5)")))
    (tmp_path / "README.md").write_text("ignored")

    registry = TemplateRegistry.load(tmp_path)

    assert registry.names() == ["cat_v2", "generator"]


def test_registry_rejects_invalid_bytecode(tmp_path: Path) -> None:
    catalogue = tmp_path / "templates.yaml"
    catalogue.write_text("templates:\n  broken: \"ff\"\n")

    with pytest.raises(TemplateRegistryError):
        TemplateRegistry.load(catalogue)


def test_registry_missing_catalogue(tmp_path: Path) -> None:
    with pytest.raises(TemplateRegistryError):
        TemplateRegistry.load(tmp_path / "missing.yaml")
