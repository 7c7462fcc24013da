"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence


@dataclass(slots=True, frozen=True)
class Location:
    """An addressable stop as sent to the distance provider."""

    id: str
    address: str


@dataclass(slots=True, frozen=True)
class DistanceEdge:
    from_id: str
    to_id: str
    minutes: int


def edge_key(from_id: str, to_id: str) -> str:
    return f"{from_id}->{to_id}"


@dataclass(slots=True)
class DistanceCache:
    """Run-scoped travel-time cache keyed by ``"{from}->{to}"``.

    A missing key means the edge is unknown, never zero.
    """

    edges: dict[str, int] = field(default_factory=dict)

    def add(self, edge: DistanceEdge) -> None:
        self.edges[edge_key(edge.from_id, edge.to_id)] = edge.minutes

    def extend(self, edges: Iterable[DistanceEdge]) -> None:
        for edge in edges:
            self.add(edge)

    def get(self, from_id: str, to_id: str) -> int | None:
        return self.edges.get(edge_key(from_id, to_id))

    def has(self, from_id: str, to_id: str) -> bool:
        return edge_key(from_id, to_id) in self.edges

    def missing_edges(self, order: Sequence[str]) -> int:
        """Count consecutive legs of ``order`` that have no known travel time."""
        return sum(1 for a, b in _legs(order) if not self.has(a, b))

    def __len__(self) -> int:
        return len(self.edges)


def _legs(order: Sequence[str]) -> Iterator[tuple[str, str]]:
    for index in range(len(order) - 1):
        yield order[index], order[index + 1]


def route_travel_minutes(order: Sequence[str], cache: DistanceCache) -> int:
    """Sum of known leg travel times; unknown legs contribute nothing."""
    total = 0
    for a, b in _legs(order):
        total += cache.get(a, b) or 0
    return total
