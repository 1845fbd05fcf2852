"""Storage layer.

SQLite persistence for workflow state and daily usage counters, using
SQLAlchemy.
"""

from .database import Database, init_database
from .models import Base, UsageCounter, WorkflowRecord
from .stores import SqlCounterStore, SqlWorkflowStateStore

__all__ = [
    "Base",
    "Database",
    "SqlCounterStore",
    "SqlWorkflowStateStore",
    "UsageCounter",
    "WorkflowRecord",
    "init_database",
]
