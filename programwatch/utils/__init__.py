# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for programwatch.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
"""

from programwatch.utils.datetime import (
    Clock,
    ensure_utc,
    format_iso,
    start_of_day_utc,
    utc_now,
)
from programwatch.utils.logging import (
    bind_context,
    clear_context,
    setup_logging,
    tenant_log_context,
)

__all__ = [
    # Logging
    "setup_logging",
    "bind_context",
    "clear_context",
    "tenant_log_context",
    # Datetime
    "Clock",
    "utc_now",
    "ensure_utc",
    "start_of_day_utc",
    "format_iso",
]
