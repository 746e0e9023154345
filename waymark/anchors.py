"""Attach marks to host anchors and read their live rows back.

A mark whose file is not loaded has no anchor; its stored row is the last
known position until the file is opened again and ``restore_for_file`` runs.
"""

from __future__ import annotations

from collections.abc import Iterable

from .host import HostCallbacks


class AnchorBook:
    def __init__(self, host: HostCallbacks) -> None:
        self.host = host

    def place(self, mark) -> None:
        ref = self.host.place_anchor(mark.fname, mark.row)
        mark.anchor = ref
        if ref is not None:
            row = self.host.read_anchor_row(ref)
            if row is not None:
                mark.row = row

    def release(self, mark) -> None:
        if mark.anchor is not None:
            self.host.release_anchor(mark.anchor)
            mark.anchor = None

    def sync(self, mark) -> None:
        """Refresh ``mark.row`` from its anchor, if it has a live one."""
        if mark.anchor is None:
            return
        row = self.host.read_anchor_row(mark.anchor)
        if row is not None:
            mark.row = row

    def sync_all(self, marks: Iterable) -> None:
        for mark in marks:
            self.sync(mark)

    def restore_for_file(self, fname: str, marks: Iterable) -> None:
        """Anchor every unanchored mark in ``fname``."""
        for mark in marks:
            if mark.fname == fname and mark.anchor is None:
                self.place(mark)

    def detach_file(self, fname: str, marks: Iterable) -> None:
        """Sync then drop anchors of marks in ``fname`` (file being closed)."""
        for mark in marks:
            if mark.fname == fname and mark.anchor is not None:
                self.sync(mark)
                self.release(mark)


__all__ = ["AnchorBook"]
