"""Command-line front end for device config dispatch."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# ``cli.app`` must resolve to the module, not the Typer instance, so tests can
# patch ``cli.app.build_registry_client``.

__all__ = []
