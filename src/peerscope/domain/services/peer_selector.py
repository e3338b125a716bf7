# src/peerscope/domain/services/peer_selector.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Size-based peer cohort selection.

Purpose:
    Select the institutions closest in size to a target within one reporting
    period: up to N strictly larger and up to N strictly smaller.

Layer:
    domain

Notes:
    - The target is never part of its own cohort.
    - Institutions whose size equals the target's exactly are excluded from
      both sides.
    - Institutions without an applicable size never qualify.
    - Equal-sized candidates on the same side are ordered by institution id.
"""

from __future__ import annotations

from collections.abc import Iterable

from peerscope.domain.entities.institution import InstitutionSize
from peerscope.domain.entities.peer_analysis import PeerCohort

#: Default number of peers taken on each side of the target.
DEFAULT_PEER_COUNT = 10


def select_peers(
    population: Iterable[InstitutionSize],
    target_id: str,
    target_size: float | None,
    peer_count: int = DEFAULT_PEER_COUNT,
) -> PeerCohort:
    """Select the closest-larger and closest-smaller peers of a target.

    Args:
        population: Sizes of every institution reporting at the period.
        target_id: Target institution key (excluded from the result).
        target_size: Target's size; ``None`` yields an empty cohort.
        peer_count: Maximum number of peers per side (N).

    Returns:
        PeerCohort with ``larger_ids`` ascending by size and ``smaller_ids``
        descending by size, each truncated to ``peer_count``.

    Raises:
        ValueError: If ``peer_count`` is negative.
    """
    if peer_count < 0:
        raise ValueError("peer_count must be >= 0")
    if target_size is None or peer_count == 0:
        return PeerCohort()

    larger: list[InstitutionSize] = []
    smaller: list[InstitutionSize] = []
    for member in population:
        if member.institution_id == target_id or member.size is None:
            continue
        if member.size > target_size:
            larger.append(member)
        elif member.size < target_size:
            smaller.append(member)

    larger.sort(key=lambda m: (m.size, m.institution_id))
    smaller.sort(key=lambda m: (-m.size, m.institution_id))  # type: ignore[operator]

    return PeerCohort(
        larger_ids=tuple(m.institution_id for m in larger[:peer_count]),
        smaller_ids=tuple(m.institution_id for m in smaller[:peer_count]),
    )


__all__ = ["DEFAULT_PEER_COUNT", "select_peers"]
