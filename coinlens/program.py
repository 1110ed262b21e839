"""Program tree helpers shared by the decompiler and the bundle assembler.

Puzzles travel as serialized CLVM bytecode, usually hex encoded with an
optional ``0x`` prefix. This module is the single place where hex is turned
into :class:`clvm.SExp` trees and back, and where the two structural
operations the rest of the package relies on live: the tree hash used for
content addressing, and the curry/uncurry pair that binds arguments into a
module.
"""

from __future__ import annotations

import io
from typing import Any

from clvm import SExp
from clvm.serialize import sexp_from_stream
from clvm_tools.curry import curry as curry_program
from clvm_tools.curry import uncurry as uncurry_program
from clvm_tools.sha256tree import sha256tree


class ProgramDecodeError(ValueError):
    """Raised when a program cannot be decoded or is too deep to process."""


def prefix0x(value: str) -> str:
    return value if value.startswith("0x") else f"0x{value}"


def unprefix0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def bytes_from_hex(value: str, *, length: int | None = None) -> bytes:
    """Decode ``value`` (optionally ``0x`` prefixed) into bytes."""

    try:
        raw = bytes.fromhex(unprefix0x(value.strip()))
    except ValueError as exc:
        raise ProgramDecodeError(f"Invalid hex string: {value!r}") from exc
    if length is not None and len(raw) != length:
        raise ProgramDecodeError(f"Expected {length} bytes, got {len(raw)} from {value!r}")
    return raw


def program_from_bytes(blob: bytes) -> SExp:
    """Deserialize a complete program; trailing bytes are rejected."""

    stream = io.BytesIO(blob)
    try:
        program = sexp_from_stream(stream, SExp.to)
    except (ValueError, IndexError) as exc:
        raise ProgramDecodeError(f"Malformed program bytes: {exc}") from exc
    if stream.read(1):
        raise ProgramDecodeError("Trailing bytes after serialized program")
    return program


def program_from_hex(value: str) -> SExp:
    return program_from_bytes(bytes_from_hex(value))


def program_to_hex(program: SExp) -> str:
    """Return the ``0x`` prefixed serialization of ``program``."""

    return prefix0x(program.as_bin().hex())


def tree_hash(program: SExp) -> bytes:
    """Compute the sha256 tree hash of ``program``.

    The hash recurses once per nesting level, so trees deeper than the
    interpreter's recursion limit are reported as :class:`ProgramDecodeError`.
    """

    try:
        return sha256tree(program)
    except RecursionError as exc:
        raise ProgramDecodeError("Program is nested too deeply to hash") from exc


def curry(module: SExp, *args: Any) -> SExp:
    """Bind ``args`` into ``module`` as ``(a (q . module) (c (q . arg) ... 1))``."""

    _cost, curried = curry_program(module, SExp.to(list(args)))
    return curried


def uncurry(program: SExp) -> tuple[SExp, list[SExp]] | None:
    """Recover ``(module, args)`` from a curried program.

    Returns ``None`` when ``program`` is not in the exact shape produced by
    :func:`curry`.
    """

    result = uncurry_program(program)
    if result is None:
        return None
    module, args = result
    return module, list(args.as_iter())
