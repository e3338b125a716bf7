# tests/unit/domain/test_peer_analysis_entities.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT

from __future__ import annotations

import json
from datetime import UTC, date, datetime

from peerscope.domain.entities.peer_analysis import MetricRanking, PeerAnalysis, PeerCohort
from peerscope.domain.enums.peer_metric import PeerMetric


def test_cohort_document_lists_larger_peers_first() -> None:
    cohort = PeerCohort(larger_ids=("L1", "L2"), smaller_ids=("S1",))

    assert cohort.to_document() == {
        "count": 3,
        "largerCount": 2,
        "smallerCount": 1,
        "largerIds": ["L1", "L2"],
        "smallerIds": ["S1"],
        "peerIds": ["L1", "L2", "S1"],
    }
    assert not cohort.is_empty
    assert PeerCohort().is_empty


def test_analysis_document_is_json_serializable_with_camel_case_keys() -> None:
    analysis = PeerAnalysis(
        institution_id="1001",
        reporting_period=date(2024, 3, 31),
        cohort=PeerCohort(larger_ids=("2002",)),
        peer_averages={PeerMetric.ROA: 1.25, PeerMetric.EFFICIENCY_RATIO: None},
        rankings={
            PeerMetric.ROA: MetricRanking(rank=2, total=4, percentile=75, value=1.0),
            PeerMetric.EFFICIENCY_RATIO: MetricRanking(
                rank=0, total=3, percentile=None, value=None
            ),
        },
        institution_metrics={PeerMetric.ROA: 1.0, PeerMetric.EFFICIENCY_RATIO: None},
        generated_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
    )

    document = analysis.to_document()

    assert set(document) == {
        "peers",
        "peerAverages",
        "rankings",
        "institutionMetrics",
        "generatedAt",
    }
    assert document["peerAverages"] == {"roa": 1.25, "efficiencyRatio": None}
    assert document["rankings"]["roa"] == {"rank": 2, "total": 4, "percentile": 75, "value": 1.0}
    assert document["rankings"]["efficiencyRatio"]["rank"] == 0
    assert document["institutionMetrics"] == {"roa": 1.0, "efficiencyRatio": None}
    assert document["generatedAt"] == "2024-05-01T12:00:00+00:00"
    assert json.loads(json.dumps(document)) == document
