# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for programwatch.

Example:
    >>> from programwatch.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.environment
    'development'
"""

from programwatch.core.config.settings import (
    DatabaseSettings,
    MonitoringSettings,
    SchedulerSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "DatabaseSettings",
    "MonitoringSettings",
    "SchedulerSettings",
]
