"""Default buffer-ignore policy: special buffer types, filetypes, name patterns."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .config import WaymarkConfig


@dataclass(frozen=True)
class BufferInfo:
    name: str
    filetype: str = ""
    buftype: str = ""


class BufferFilter:
    """Caches one verdict per buffer name until ``invalidate`` is called."""

    def __init__(self, config: WaymarkConfig) -> None:
        self._filetypes = frozenset(config.ignored_filetypes)
        self._patterns = tuple(re.compile(pattern) for pattern in config.ignored_patterns)
        self._cache: dict[str, bool] = {}

    def _decide(self, buffer: BufferInfo) -> bool:
        # Terminal, quickfix, help, prompt and similar buffers are not files.
        if buffer.buftype:
            return True
        if buffer.filetype in self._filetypes:
            return True
        return any(pattern.search(buffer.name) for pattern in self._patterns)

    def is_ignored(self, buffer: BufferInfo) -> bool:
        cached = self._cache.get(buffer.name)
        if cached is None:
            cached = self._decide(buffer)
            self._cache[buffer.name] = cached
        return cached

    def invalidate(self, name: str | None = None) -> None:
        if name is None:
            self._cache.clear()
        else:
            self._cache.pop(name, None)


__all__ = ["BufferFilter", "BufferInfo"]
