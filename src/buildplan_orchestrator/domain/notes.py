"""Parsers for the free-text ``notes`` field of a feature request.

Plans list related objects on header lines such as ``Prefabs: Enemy, Coin`` or
``Managers: GameManager``. Headers are matched case-insensitively anywhere in a
line; English and Spanish spellings are both recognised.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from typing import Final

PREFAB_HEADERS: Final[tuple[str, ...]] = (
    "prefabs:",
    "assets:",
    "includes:",
    "prefabs en escena:",
    "incluye:",
)
MANAGER_HEADERS: Final[tuple[str, ...]] = (
    "managers:",
    "manager:",
    "gestores:",
)
COMPONENT_HEADERS: Final[tuple[str, ...]] = (
    "scripts:",
    "components:",
    "add scripts:",
    "add components:",
    "componentes:",
    "agrega scripts:",
    "agrega componentes:",
)

_LINE_SPLIT: Final[re.Pattern[str]] = re.compile(r"[\r\n]+")
_ITEM_SPLIT: Final[re.Pattern[str]] = re.compile(r"[,;]")


def parse_prefab_names(notes: str | None) -> list[str]:
    """Names listed under a prefab header (``Prefabs:``, ``Includes:``...)."""
    return list(_iter_header_items(notes, PREFAB_HEADERS))


def parse_manager_names(notes: str | None) -> list[str]:
    return list(_iter_header_items(notes, MANAGER_HEADERS))


def parse_component_names(notes: str | None) -> list[str]:
    return list(_iter_header_items(notes, COMPONENT_HEADERS))


def unique_names(*groups: Sequence[str]) -> list[str]:
    """Concatenate ``groups`` keeping the first spelling of each name (case-insensitive)."""
    seen: set[str] = set()
    merged: list[str] = []
    for group in groups:
        for item in group:
            text = item.strip()
            if not text or text.casefold() in seen:
                continue
            seen.add(text.casefold())
            merged.append(text)
    return merged


def _iter_header_items(notes: str | None, headers: Sequence[str]) -> Iterator[str]:
    if notes is None or not notes.strip():
        return

    for line in _LINE_SPLIT.split(notes):
        trimmed = line.strip()
        if not trimmed:
            continue
        lowered = trimmed.lower()
        index = -1
        # First header in priority order wins, not the leftmost occurrence.
        for header in headers:
            index = lowered.find(header)
            if index >= 0:
                break
        if index < 0:
            continue

        tail = trimmed[index:]
        colon = tail.find(":")
        if colon < 0 or colon >= len(tail) - 1:
            continue
        for entry in _ITEM_SPLIT.split(tail[colon + 1 :]):
            name = entry.strip()
            if name:
                yield name


__all__ = [
    "COMPONENT_HEADERS",
    "MANAGER_HEADERS",
    "PREFAB_HEADERS",
    "parse_component_names",
    "parse_manager_names",
    "parse_prefab_names",
    "unique_names",
]
