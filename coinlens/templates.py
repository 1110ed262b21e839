"""Registry of known puzzle templates ("mods").

A template is a compiled chialisp module recognised by the tree hash of its
bytecode. The registry is built once, usually from a catalogue on disk, and
is read-only afterwards so it can be shared freely between threads. Missing
entries are not errors: the decompiler treats an unknown hash as the signal
to fall back to a raw leaf.

Catalogues come in two shapes:

* a YAML file with a ``templates`` mapping of ``name: <program hex>``;
* a directory of ``<name>.clsp.hex`` (or ``<name>.hex``) files, the layout
  used by the chialisp build tooling.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml
from clvm import SExp

from .program import ProgramDecodeError, program_from_hex, tree_hash

logger = logging.getLogger(__name__)

CAT_V1 = "cat_v1"
CAT_V2 = "cat_v2"
SINGLETON_TOP_LAYER = "singleton_top_layer_v1_1"
NFT_STATE_LAYER = "nft_state_layer"
NFT_OWNERSHIP_LAYER = "nft_ownership_layer"
NFT_TRANSFER_PROGRAM = "nft_ownership_transfer_program_one_way_claim_with_royalties"
DID_INNERPUZ = "did_innerpuz"
GENESIS_BY_COIN_ID = "genesis_by_coin_id"
GENERATOR = "generator"

_HEX_SUFFIXES = (".clsp.hex", ".clvm.hex", ".hex")


class TemplateRegistryError(RuntimeError):
    """Raised when a template catalogue is invalid or a name is unknown."""


class TemplateRegistry:
    """Immutable two-way mapping between template hashes and programs."""

    def __init__(self, programs: Mapping[str, SExp]) -> None:
        by_name: dict[str, SExp] = {}
        name_by_hash: dict[bytes, str] = {}
        hash_by_name: dict[str, bytes] = {}
        for name, program in programs.items():
            digest = tree_hash(program)
            existing = name_by_hash.get(digest)
            if existing is not None and existing != name:
                raise TemplateRegistryError(
                    f"Templates {existing} and {name} share hash 0x{digest.hex()}"
                )
            by_name[name] = program
            name_by_hash[digest] = name
            hash_by_name[name] = digest
        self._by_name = MappingProxyType(by_name)
        self._name_by_hash = MappingProxyType(name_by_hash)
        self._hash_by_name = MappingProxyType(hash_by_name)

    @classmethod
    def from_hex_mapping(cls, mapping: Mapping[str, str]) -> "TemplateRegistry":
        programs: dict[str, SExp] = {}
        for name, program_hex in mapping.items():
            if not isinstance(program_hex, str):
                raise TemplateRegistryError(f"Template {name} must be a hex string")
            try:
                programs[str(name)] = program_from_hex(program_hex)
            except ProgramDecodeError as exc:
                raise TemplateRegistryError(f"Template {name} is not valid bytecode: {exc}") from exc
        return cls(programs)

    @classmethod
    def load(cls, path: str | Path) -> "TemplateRegistry":
        """Load a catalogue from a YAML file or a directory of hex files."""

        path = Path(path).expanduser()
        if path.is_dir():
            registry = cls.from_hex_mapping(_read_hex_directory(path))
        elif path.exists():
            registry = cls.from_hex_mapping(_read_yaml_catalogue(path))
        else:
            raise TemplateRegistryError(f"Template catalogue does not exist: {path}")
        logger.debug("Loaded %d templates from %s", len(registry), path)
        return registry

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def resolve_by_hash(self, digest: bytes) -> str | None:
        return self._name_by_hash.get(digest)

    def resolve_by_name(self, name: str) -> SExp:
        try:
            return self._by_name[name]
        except KeyError as exc:
            raise TemplateRegistryError(f"Unknown template: {name}") from exc

    def hash_of(self, name: str) -> bytes:
        try:
            return self._hash_by_name[name]
        except KeyError as exc:
            raise TemplateRegistryError(f"Unknown template: {name}") from exc


def _read_yaml_catalogue(path: Path) -> dict[str, str]:
    try:
        data: Any = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML handles details
        raise TemplateRegistryError(f"Failed to parse template catalogue {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TemplateRegistryError(f"Template catalogue {path} must contain a mapping")
    templates = data.get("templates", data)
    if not isinstance(templates, dict) or not templates:
        raise TemplateRegistryError(f"Template catalogue {path} must define at least one template")
    return {str(name): value for name, value in templates.items()}


def _read_hex_directory(path: Path) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for entry in sorted(path.iterdir()):
        if not entry.is_file():
            continue
        for suffix in _HEX_SUFFIXES:
            if entry.name.endswith(suffix):
                mapping[entry.name[: -len(suffix)]] = entry.read_text().strip()
                break
    if not mapping:
        raise TemplateRegistryError(f"No template hex files found in {path}")
    return mapping
