"""Puzzle execution collaborators.

Running CLVM bytecode is delegated to something outside this package: the
``brun`` tool shipped with ``clvm_tools`` or a remote execution service
speaking JSON over HTTP. Both accept hex bytecode and return the fully
expanded hex result, and both surface every failure as
:class:`ExecutionError` so a request can abort with the cause attached.
Timeouts are owned by the caller through the executor's configuration; no
retries happen here.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Protocol, Sequence

import requests
from requests import RequestException

from .config import CoinlensConfig, ConfigurationError
from .program import ProgramDecodeError, bytes_from_hex, unprefix0x

logger = logging.getLogger(__name__)

HEX_FLAG = "--hex"
DUMP_FLAG = "--dump"
DEFAULT_FLAGS: tuple[str, ...] = (HEX_FLAG, DUMP_FLAG)
EMPTY_ENV_HEX = "ff8080"  # (())


class ExecutionError(RuntimeError):
    """Raised when the program runner fails, times out, or returns garbage."""

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.status_code = status_code


class PuzzleExecutor(Protocol):
    def execute(
        self, program_hex: str, env_hex: str, flags: Sequence[str] = DEFAULT_FLAGS
    ) -> str:
        """Run ``program_hex`` against ``env_hex`` and return the result hex."""


def _validated_result(raw: str, source: str) -> str:
    result = unprefix0x(raw.strip())
    if result.startswith("FAIL"):
        raise ExecutionError(f"{source} reported a failure: {result}")
    try:
        bytes_from_hex(result)
    except ProgramDecodeError as exc:
        raise ExecutionError(f"{source} returned malformed output: {raw[:120]!r}") from exc
    return result


class BrunExecutor:
    """Run programs through the ``brun`` command line tool.

    Program and environment are written to temporary files because block
    generators easily exceed command line length limits.
    """

    def __init__(self, brun_path: str = "brun", timeout_seconds: float = 30) -> None:
        self.brun_path = brun_path
        self.timeout_seconds = timeout_seconds

    def execute(
        self, program_hex: str, env_hex: str, flags: Sequence[str] = DEFAULT_FLAGS
    ) -> str:
        with tempfile.TemporaryDirectory(prefix="coinlens-") as tmp:
            program_path = Path(tmp) / "program.hex"
            env_path = Path(tmp) / "env.hex"
            program_path.write_text(unprefix0x(program_hex))
            env_path.write_text(unprefix0x(env_hex))
            command = [self.brun_path, *flags, str(program_path), str(env_path)]
            logger.debug("Running %s", " ".join(command[:-2] + ["<program>", "<env>"]))
            try:
                completed = subprocess.run(
                    command,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_seconds,
                    check=False,
                )
            except FileNotFoundError as exc:
                raise ExecutionError(
                    f"Program runner {self.brun_path!r} not found; install clvm_tools or set COINLENS_BRUN_PATH."
                ) from exc
            except subprocess.TimeoutExpired as exc:
                raise ExecutionError(
                    f"Program execution timed out after {self.timeout_seconds}s"
                ) from exc

        if completed.returncode != 0:
            logger.error("brun exited with %s: %s", completed.returncode, completed.stderr.strip())
            raise ExecutionError(
                f"Program execution failed: {completed.stderr.strip() or completed.stdout.strip()}",
                returncode=completed.returncode,
            )
        return _validated_result(completed.stdout, "brun")


class HTTPExecutor:
    """Client for a remote execution service.

    The service receives ``{"program": hex, "env": hex, "flags": [...]}`` and
    answers with ``{"result": hex}`` or ``{"error": message}``.
    """

    def __init__(self, url: str, timeout_seconds: float = 30) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._session = requests.Session()

    def execute(
        self, program_hex: str, env_hex: str, flags: Sequence[str] = DEFAULT_FLAGS
    ) -> str:
        payload = {
            "program": unprefix0x(program_hex),
            "env": unprefix0x(env_hex),
            "flags": list(flags),
        }
        logger.debug("POST %s flags=%s", self.url, list(flags))
        try:
            response = self._session.post(self.url, json=payload, timeout=self.timeout_seconds)
        except RequestException as exc:
            logger.error(
                "Execution service unreachable: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise ExecutionError(
                f"Execution service at {self.url} is unreachable; check COINLENS_EXECUTOR_URL."
            ) from exc
        if not response.ok:
            logger.error("Execution service HTTP %s: %s", response.status_code, response.text[:500])
            raise ExecutionError(
                f"Execution service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            body: Any = response.json()
        except ValueError as exc:
            raise ExecutionError("Execution service returned malformed JSON") from exc
        if not isinstance(body, dict):
            raise ExecutionError("Execution service returned an unexpected document")
        if body.get("error"):
            raise ExecutionError(f"Execution service error: {body['error']}")
        result = body.get("result")
        if not isinstance(result, str):
            raise ExecutionError("Execution service response is missing 'result'")
        return _validated_result(result, "Execution service")


def executor_from_config(config: CoinlensConfig) -> PuzzleExecutor:
    if config.executor == "http":
        if not config.executor_url:
            raise ConfigurationError("executor_url is required when executor is 'http'")
        return HTTPExecutor(config.executor_url, timeout_seconds=config.timeout_seconds)
    return BrunExecutor(config.brun_path, timeout_seconds=config.timeout_seconds)
