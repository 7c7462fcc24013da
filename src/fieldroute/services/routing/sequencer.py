"""Visit ordering for a single route.

Nearest-neighbour construction from the first stop, optionally followed by a
2-opt pass. This is a heuristic: it does not promise a globally optimal tour.
"""

from __future__ import annotations

import math
from typing import Sequence

from .models import DistanceCache


def _edge_weight(cache: DistanceCache, from_id: str, to_id: str) -> float:
    minutes = cache.get(from_id, to_id)
    return math.inf if minutes is None else float(minutes)


def path_cost(order: Sequence[str], cache: DistanceCache) -> float:
    """Total travel along ``order``; infinite when any leg is unknown."""
    return sum(_edge_weight(cache, order[i], order[i + 1]) for i in range(len(order) - 1))


def nearest_neighbor_order(stop_ids: Sequence[str], cache: DistanceCache) -> list[str]:
    """Greedy route starting at ``stop_ids[0]``.

    Unknown edges are treated as infinite. When every remaining candidate is
    unreachable from the current tail, the rest keep their input order.
    """
    if len(stop_ids) <= 2:
        return list(stop_ids)

    route = [stop_ids[0]]
    unvisited = list(stop_ids[1:])
    current = stop_ids[0]

    while unvisited:
        nearest: str | None = None
        best = math.inf
        for candidate in unvisited:
            weight = _edge_weight(cache, current, candidate)
            if weight < best:
                best = weight
                nearest = candidate
        if nearest is None:
            route.extend(unvisited)
            break
        route.append(nearest)
        unvisited.remove(nearest)
        current = nearest

    return route


def two_opt(order: Sequence[str], cache: DistanceCache, *, max_passes: int = 20) -> list[str]:
    """Improve an open path by segment reversal, keeping the first stop fixed.

    Travel times may be asymmetric, so every candidate is costed in full.
    A move is only taken when the new path is fully known and strictly shorter.
    """
    best = list(order)
    if len(best) < 3:
        return best
    best_cost = path_cost(best, cache)

    for _ in range(max_passes):
        improved = False
        for i in range(1, len(best) - 1):
            for j in range(i + 1, len(best)):
                candidate = best[:i] + best[i : j + 1][::-1] + best[j + 1 :]
                cost = path_cost(candidate, cache)
                if cost < best_cost:
                    best, best_cost = candidate, cost
                    improved = True
        if not improved:
            break
    return best


def sequence_route(
    stop_ids: Sequence[str],
    cache: DistanceCache,
    *,
    local_search: bool = True,
) -> list[str]:
    """Propose a visit order for ``stop_ids`` using the populated cache."""
    order = nearest_neighbor_order(stop_ids, cache)
    if local_search:
        order = two_opt(order, cache)
    return order
