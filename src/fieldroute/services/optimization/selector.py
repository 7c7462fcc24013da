"""Versioned tier strategy selection."""

from __future__ import annotations

from dataclasses import dataclass

from .base import OptimizationContext, OptimizationTier, TierResult
from .cross_day import CrossDayRebalance
from .intra_day import IntraDayReorder
from .slot_swap import RestrictedSlotSwap


@dataclass(slots=True, frozen=True)
class TierThresholds:
    intra_day: int = 0
    cross_day: int = 5
    slot_swap: int = 5


def get_tiers(version: str, thresholds: TierThresholds | None = None) -> list[OptimizationTier]:
    """Return the ordered tier list for a strategy version.

    Cross-day results are staged after intra-day ones so their retiming wins.
    """
    thresholds = thresholds or TierThresholds()
    match version:
        case "v1":
            return [
                IntraDayReorder(thresholds.intra_day),
                CrossDayRebalance(thresholds.cross_day),
                RestrictedSlotSwap(thresholds.slot_swap),
            ]
        case _:
            raise ValueError(f"Unknown optimization strategy version '{version}'.")


def evaluate_tiers(
    context: OptimizationContext,
    version: str = "v1",
    thresholds: TierThresholds | None = None,
) -> list[TierResult]:
    results: list[TierResult] = []
    for tier in get_tiers(version, thresholds):
        results.extend(tier.evaluate(context))
    return results
