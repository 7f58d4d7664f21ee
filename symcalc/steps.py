"""Append-only derivation traces."""

from typing import List, Tuple


class StepTrace:
    """Ordered record of the algebraic moves made during one public call.

    Entries are never removed. Bookkeeping entries (coefficient dumps,
    simplification echoes) are flagged as details so a caller can leave them
    out when rendering.
    """

    def __init__(self):
        self._entries: List[Tuple[str, bool]] = []

    def add(self, text: str, detail: bool = False) -> None:
        self._entries.append((text, detail))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def render(self, include_details: bool = True) -> List[str]:
        return [text for text, detail in self._entries if include_details or not detail]
