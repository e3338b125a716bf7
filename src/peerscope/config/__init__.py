"""
Config package export.

Keeps import sites clean and stable:
    from peerscope.config import get_settings, Settings
"""

from __future__ import annotations

from .settings import EmptyInstitutionPolicy, Environment, Settings, get_settings

__all__ = ["EmptyInstitutionPolicy", "Environment", "Settings", "get_settings"]
