# tests/unit/domain/test_metric_extractor.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT

from __future__ import annotations

from decimal import Decimal

import pytest

from peerscope.domain.entities.financial_statement import FinancialStatement
from peerscope.domain.enums.peer_metric import (
    ALL_PEER_METRICS,
    SIZE_METRIC,
    MetricDirection,
    PeerMetric,
)
from peerscope.domain.services.metric_extractor import (
    METRIC_EXTRACTORS,
    coerce_metric_value,
    extract_metric,
    extract_metrics,
)
from tests.fixtures.peer_testkit import Q1, make_statement


def test_every_metric_has_an_extractor() -> None:
    assert set(METRIC_EXTRACTORS) == set(PeerMetric)
    assert ALL_PEER_METRICS == tuple(PeerMetric)
    assert SIZE_METRIC is PeerMetric.TOTAL_ASSETS


def test_metric_keys_are_stable_camel_case() -> None:
    assert PeerMetric.EFFICIENCY_RATIO.value == "efficiencyRatio"
    assert PeerMetric.TOTAL_ASSETS.value == "totalAssets"
    assert PeerMetric.NIM.value == "nim"


def test_only_efficiency_ratio_is_lower_is_better() -> None:
    lower = [m for m in PeerMetric if m.direction is MetricDirection.LOWER_IS_BETTER]
    assert lower == [PeerMetric.EFFICIENCY_RATIO]


def test_extracts_nested_paths() -> None:
    stmt = FinancialStatement(
        institution_id="1001",
        reporting_period=Q1,
        balance_sheet={
            "assets": {
                "totalAssets": 5_000,
                "earningAssets": {"loansAndLeases": {"net": 3_200}},
            },
            "liabilities": {"deposits": {"total": 4_100}},
            "equity": {"totalEquity": 450},
        },
        income_statement={
            "netIncome": 55,
            "netInterestIncome": 140,
            "noninterestIncome": {"total": 30},
            "noninterestExpense": {"total": 95},
        },
        ratios={
            "roe": 12.2,
            "roa": 1.1,
            "netInterestMargin": 3.4,
            "efficiencyRatio": 58.0,
            "operatingLeverage": 1.8,
        },
    )

    values = extract_metrics(stmt, ALL_PEER_METRICS)

    assert values == {
        PeerMetric.TOTAL_ASSETS: 5000.0,
        PeerMetric.TOTAL_LOANS: 3200.0,
        PeerMetric.TOTAL_DEPOSITS: 4100.0,
        PeerMetric.TOTAL_EQUITY: 450.0,
        PeerMetric.NET_INCOME: 55.0,
        PeerMetric.NET_INTEREST_INCOME: 140.0,
        PeerMetric.NONINTEREST_INCOME: 30.0,
        PeerMetric.NONINTEREST_EXPENSE: 95.0,
        PeerMetric.ROE: 12.2,
        PeerMetric.ROA: 1.1,
        PeerMetric.NIM: 3.4,
        PeerMetric.EFFICIENCY_RATIO: 58.0,
        PeerMetric.OPERATING_LEVERAGE: 1.8,
    }
    assert list(values) == list(ALL_PEER_METRICS)


def test_missing_path_is_not_applicable() -> None:
    stmt = FinancialStatement(institution_id="1001", reporting_period=Q1)
    assert all(v is None for v in extract_metrics(stmt, ALL_PEER_METRICS).values())


def test_non_mapping_intermediate_is_not_applicable() -> None:
    stmt = FinancialStatement(
        institution_id="1001",
        reporting_period=Q1,
        balance_sheet={"assets": 12, "liabilities": {"deposits": [1, 2]}},
    )
    assert extract_metric(stmt, PeerMetric.TOTAL_ASSETS) is None
    assert extract_metric(stmt, PeerMetric.TOTAL_DEPOSITS) is None


def test_zero_is_a_real_value() -> None:
    stmt = make_statement("1001", roa=0, net_income=0.0)
    assert extract_metric(stmt, PeerMetric.ROA) == 0.0
    assert extract_metric(stmt, PeerMetric.NET_INCOME) == 0.0


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, None),
        (True, None),
        (False, None),
        ("1.5", None),
        (float("nan"), None),
        (float("inf"), None),
        (float("-inf"), None),
        ({"value": 1}, None),
        (7, 7.0),
        (-2.5, -2.5),
        (Decimal("1.25"), 1.25),
        (10**400, None),
    ],
)
def test_coerce_metric_value(raw: object, expected: float | None) -> None:
    assert coerce_metric_value(raw) == expected


def test_non_numeric_leaf_is_not_applicable() -> None:
    stmt = make_statement("1001", roa="n/a", efficiency_ratio=float("nan"))
    assert extract_metric(stmt, PeerMetric.ROA) is None
    assert extract_metric(stmt, PeerMetric.EFFICIENCY_RATIO) is None
