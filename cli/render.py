from __future__ import annotations

import logging
from typing import Callable, Sequence

import typer

from models.records import DispatchResult

LOGGER = logging.getLogger(__name__)


def _describe(result: DispatchResult) -> str:
    return result.device_path or str(result.address)


class ConsoleSink:
    """Prints one line per device and returns a process exit code."""

    def __init__(self, echo: Callable[..., None] = typer.secho) -> None:
        self._echo = echo

    def emit(self, results: Sequence[DispatchResult]) -> int:
        failed = 0
        for result in results:
            try:
                if result.success:
                    self._echo(
                        f"OK      {_describe(result)} (attempts={result.attempts})",
                        fg=typer.colors.GREEN,
                    )
                    continue
                failed += 1
                kind = result.error_kind.value if result.error_kind else "unknown"
                self._echo(
                    f"FAILED  {_describe(result)} [{kind}] "
                    f"(attempts={result.attempts}): {result.error}",
                    fg=typer.colors.RED,
                )
            except Exception:  # noqa: BLE001 - keep reporting the rest
                LOGGER.exception("Could not print dispatch result")
        succeeded = len(results) - failed
        self._echo(
            f"{succeeded} succeeded, {failed} failed",
            bold=True,
        )
        return 0 if failed == 0 else 1
