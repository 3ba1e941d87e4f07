# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the program data store.

Provides the async engine/session management and the SQLAlchemy
implementation of the monitoring store interfaces.

Usage:
    from programwatch.infrastructure.database import (
        init_database,
        sql_unit_of_work_factory,
    )

    await init_database(settings)
    uow_factory = sql_unit_of_work_factory()
"""

from programwatch.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    create_tables,
    get_engine,
    get_session,
    get_sessionmaker,
    init_database,
)
from programwatch.infrastructure.database.sql_store import (
    SqlAlertStore,
    SqlAuditLogStore,
    SqlMonitoringDataSource,
    SqlNotificationStore,
    SqlPartnerDirectory,
    SqlUnitOfWork,
    sql_unit_of_work_factory,
)

__all__ = [
    # Connection
    "DatabaseError",
    "check_database_connection",
    "close_database",
    "create_tables",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "init_database",
    # Stores
    "SqlAlertStore",
    "SqlAuditLogStore",
    "SqlMonitoringDataSource",
    "SqlNotificationStore",
    "SqlPartnerDirectory",
    "SqlUnitOfWork",
    "sql_unit_of_work_factory",
]
