"""programwatch.

Partner-scoped monitoring and alerting engine for training-program data:
attendance, survey completion, score validity and enrollment consistency.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
