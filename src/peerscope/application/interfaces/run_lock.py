# src/peerscope/application/interfaces/run_lock.py
# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Application Interface: Run Lock.

Synopsis:
    Cross-process exclusivity for the peer-analysis batch. Only one run may
    write peer analyses at a time; a second run must fail fast.

Layer:
    application/interfaces
"""

from __future__ import annotations

from typing import Protocol


class RunLock(Protocol):
    """Non-blocking exclusive lock held for the duration of one run."""

    async def acquire(self) -> bool:
        """Try to take the lock.

        Returns:
            True when the lock was acquired, False when another holder has it.
        """

    async def release(self) -> None:
        """Release the lock if held (idempotent)."""


class NullRunLock:
    """Run lock that always succeeds (single-process deployments and tests)."""

    async def acquire(self) -> bool:
        return True

    async def release(self) -> None:
        return None
