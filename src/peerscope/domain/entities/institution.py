# src/peerscope/domain/entities/institution.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Institution size entity.

Purpose:
    Represent a financial institution's size at a reporting period, as read
    from the externally-populated statement store.

Layer:
    domain
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class InstitutionSize:
    """Size of one institution at one reporting period.

    Attributes:
        institution_id: Institution key.
        size: Size metric value (total assets), or ``None`` when not applicable.
    """

    institution_id: str
    size: float | None


__all__ = ["InstitutionSize"]
