"""Public package surface for waymark.

Exports ``Waymark`` (one mark session) and ``main`` for programmatic CLI
invocation. Hosts supply their editor integration through ``HostCallbacks``.
"""

from __future__ import annotations

from .host import HeadlessHost, HostCallbacks, JumpResult
from .session import Waymark


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["HeadlessHost", "HostCallbacks", "JumpResult", "Waymark", "main"]
