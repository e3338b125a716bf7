# Copyright (c) Peerscope.
# SPDX-License-Identifier: MIT
"""Peerscope: peer-cohort analytics for financial institutions."""

__version__ = "0.1.0"
