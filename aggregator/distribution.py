"""Optimal distribution of input parts across venues.

Given a quote matrix ``amounts[venue][k]`` (output if that venue alone
received ``k`` parts), find the integer split of ``parts`` across venues
that maximizes total output.

The solver is a discrete resource-allocation DP over venues in order:

    best[0][s] = amounts[0][s]
    best[i][s] = max over k in [0, s] of best[i-1][s-k] + amounts[i][k]

Every integer split is enumerated, so the result is optimal whether or
not the venue curves are monotonic or concave.

Determinism:
- k is swept upward from 0 and a candidate replaces the incumbent only
  when strictly greater, so ties keep the split that gives the least to
  the later venue.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from aggregator.errors import NoVenuesProvided

logger = structlog.get_logger()

# Marks unreachable DP states; never wins a max comparison
VERY_NEGATIVE_VALUE = -(10**72)


@dataclass(frozen=True)
class DistributionResult:
    """Optimal split of parts across venues.

    Attributes:
        total_amount_out: Total output of the split (0 for a degenerate matrix)
        distribution: Parts per venue, in venue order, summing to ``parts``
    """

    total_amount_out: int
    distribution: tuple[int, ...]

    @property
    def parts(self) -> int:
        return sum(self.distribution)


def find_best_distribution(amounts: Sequence[Sequence[int]]) -> DistributionResult:
    """Find the split of parts across venues that maximizes total output.

    Args:
        amounts: One row per venue; row[k] is the output for k parts.
                 All rows must have the same length ``parts + 1``.

    Returns:
        DistributionResult with the total output and parts per venue

    Raises:
        NoVenuesProvided: If amounts is empty
    """
    if not amounts:
        raise NoVenuesProvided()

    venues = len(amounts)
    parts = len(amounts[0]) - 1

    answer = [[VERY_NEGATIVE_VALUE] * (parts + 1) for _ in range(venues)]
    parent = [[0] * (parts + 1) for _ in range(venues)]

    for s in range(parts + 1):
        answer[0][s] = amounts[0][s]

    for i in range(1, venues):
        prev = answer[i - 1]
        row = amounts[i]
        for s in range(parts + 1):
            # k = 0: everything stays with the previous venues
            best = prev[s] + row[0]
            best_parent = s
            for k in range(1, s + 1):
                candidate = prev[s - k] + row[k]
                if candidate > best:
                    best = candidate
                    best_parent = s - k
            answer[i][s] = best
            parent[i][s] = best_parent

    distribution = [0] * venues
    parts_left = parts
    for i in range(venues - 1, -1, -1):
        if parts_left <= 0:
            break
        # parent[i][s] is what remains for venues before i
        distribution[i] = parts_left - parent[i][parts_left]
        parts_left = parent[i][parts_left]

    total = answer[venues - 1][parts]
    if total == VERY_NEGATIVE_VALUE:
        total = 0
        distribution = [0] * venues

    logger.debug(
        "distribution_found",
        venues=venues,
        parts=parts,
        total_amount_out=total,
        distribution=distribution,
    )
    return DistributionResult(total_amount_out=total, distribution=tuple(distribution))


optimize = find_best_distribution


__all__ = ["DistributionResult", "VERY_NEGATIVE_VALUE", "find_best_distribution", "optimize"]
