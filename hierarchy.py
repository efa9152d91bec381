"""Location forest helpers.

Both functions work on one full snapshot of the locations table and never
trust the stored parent pointers to be acyclic.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Iterable, Protocol


class _LocationNode(Protocol):
    id: int
    parent_id: int | None


def build_children_map(locations: Iterable[_LocationNode]) -> dict[int, list[int]]:
    children: dict[int, list[int]] = defaultdict(list)
    for loc in locations:
        if loc.parent_id is not None:
            children[loc.parent_id].append(loc.id)
    return children


def descendants_of(location_id: int, locations: Iterable[_LocationNode]) -> set[int]:
    """Return ``location_id`` plus every location below it."""
    children = build_children_map(locations)

    visited: set[int] = {location_id}
    queue: deque[int] = deque([location_id])
    while queue:
        current = queue.popleft()
        for child_id in children.get(current, ()):
            if child_id not in visited:
                visited.add(child_id)
                queue.append(child_id)
    return visited


def ancestry_path(location_id: int, locations: Iterable[_LocationNode]) -> list:
    """Return the chain of locations from the root down to ``location_id``.

    Unknown ids give an empty list. A corrupted parent cycle stops the walk
    at the first repeated node.
    """
    by_id = {loc.id: loc for loc in locations}

    path = []
    seen: set[int] = set()
    current = by_id.get(location_id)
    while current is not None and current.id not in seen:
        seen.add(current.id)
        path.append(current)
        if current.parent_id is None:
            break
        current = by_id.get(current.parent_id)
    path.reverse()
    return path
