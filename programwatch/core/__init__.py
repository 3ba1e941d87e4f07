# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for programwatch.

This package contains the core business logic:
- config: Application configuration and settings
- monitoring: Detectors, alert lifecycle, notification emission
"""
