from __future__ import annotations

from threading import Lock
from typing import Dict, Iterable, List, Optional, Tuple

import pytest


class ScriptedRegistry:
    """Registry double that replays scripted outcomes per device path.

    Each entry in a path's script is either ``None`` (success) or an exception
    to raise. Once a script is exhausted every further call succeeds.
    """

    def __init__(self, script: Optional[Dict[str, Iterable[Optional[Exception]]]] = None) -> None:
        self._script = {path: list(outcomes) for path, outcomes in (script or {}).items()}
        self._lock = Lock()
        self.calls: List[Tuple[str, str, Optional[float]]] = []
        self.closed = False

    def push_config(self, path: str, encoded_payload: str, *, timeout: Optional[float] = None) -> None:
        with self._lock:
            self.calls.append((path, encoded_payload, timeout))
            outcomes = self._script.get(path)
            outcome = outcomes.pop(0) if outcomes else None
        if outcome is not None:
            raise outcome

    def calls_for(self, path: str) -> List[Tuple[str, str, Optional[float]]]:
        with self._lock:
            return [call for call in self.calls if call[0] == path]

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def scripted_registry():
    return ScriptedRegistry
