# tests/unit/domain/test_peer_averager.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT

from __future__ import annotations

import itertools

from peerscope.domain.enums.peer_metric import ALL_PEER_METRICS, PeerMetric
from peerscope.domain.services.peer_averager import average_metrics, mean_of_applicable
from tests.fixtures.peer_testkit import make_statement


def test_mean_ignores_not_applicable_values() -> None:
    assert mean_of_applicable([10.0, None, 20.0]) == 15.0


def test_mean_of_nothing_is_none() -> None:
    assert mean_of_applicable([]) is None
    assert mean_of_applicable([None, None]) is None


def test_mean_keeps_zero() -> None:
    assert mean_of_applicable([0.0, 4.0]) == 2.0


def test_mean_is_order_independent() -> None:
    values = [0.1, 0.2, 0.3, 1e16, -1e16, 0.7]
    results = {mean_of_applicable(list(p)) for p in itertools.permutations(values)}
    assert len(results) == 1


def test_average_metrics_uses_per_metric_denominator() -> None:
    cohort = [
        make_statement("A", roa=1.0, efficiency_ratio=50.0),
        make_statement("B", roa=3.0),
        make_statement("C", efficiency_ratio=70.0),
    ]

    averages = average_metrics(cohort, [PeerMetric.ROA, PeerMetric.EFFICIENCY_RATIO])

    assert averages == {PeerMetric.ROA: 2.0, PeerMetric.EFFICIENCY_RATIO: 60.0}


def test_empty_cohort_averages_to_none() -> None:
    averages = average_metrics([], ALL_PEER_METRICS)

    assert set(averages) == set(ALL_PEER_METRICS)
    assert all(v is None for v in averages.values())
