"""SQLite-backed workflow state and usage counter stores."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from agentrelay.engine.errors import WorkflowNotFoundError
from agentrelay.engine.state import WorkflowStateStore, apply_patch
from agentrelay.gateway.usage import CounterStore, UsageCounters
from agentrelay.models import WorkflowState, WorkflowStatus

from .models import UsageCounter, WorkflowRecord

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from .database import Database

logger = logging.getLogger(__name__)


def _record_from_state(state: WorkflowState) -> WorkflowRecord:
    return WorkflowRecord(
        workflow_id=state.workflow_id,
        definition_id=state.definition.id,
        status=state.status.value,
        user_id=state.user_id,
        state=state.model_dump(mode="json"),
        created_at=state.created_at,
        updated_at=state.updated_at,
    )


class SqlWorkflowStateStore(WorkflowStateStore):
    """Stores each workflow as one JSON document row.

    Writes are committed before the call returns.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    def _get(self, session: Session, workflow_id: str) -> WorkflowRecord:
        record = session.get(WorkflowRecord, workflow_id)
        if record is None:
            raise WorkflowNotFoundError(workflow_id)
        return record

    async def create(self, state: WorkflowState) -> WorkflowState:
        async with self._lock:
            with self._db.session_scope() as session:
                session.add(_record_from_state(state))
        logger.debug(f"Stored workflow {state.workflow_id}")
        return state

    async def load(self, workflow_id: str) -> WorkflowState:
        with self._db.session_scope() as session:
            record = self._get(session, workflow_id)
            return WorkflowState.model_validate(record.state)

    async def save(self, workflow_id: str, patch: dict[str, Any]) -> WorkflowState:
        async with self._lock:
            with self._db.session_scope() as session:
                record = self._get(session, workflow_id)
                updated = apply_patch(WorkflowState.model_validate(record.state), patch)
                record.state = updated.model_dump(mode="json")
                record.status = updated.status.value
                record.updated_at = updated.updated_at
        return updated

    async def list_workflows(
        self, status: WorkflowStatus | None = None, limit: int = 50
    ) -> list[WorkflowState]:
        """Most recently updated workflows, optionally filtered by status."""
        stmt = select(WorkflowRecord).order_by(WorkflowRecord.updated_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(WorkflowRecord.status == status.value)
        with self._db.session_scope() as session:
            return [WorkflowState.model_validate(r.state) for r in session.scalars(stmt)]


class SqlCounterStore(CounterStore):
    """Usage counters in the ``usage_counters`` table."""

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def get(self, key: str, day: str) -> UsageCounters | None:
        with self._db.session_scope() as session:
            row = session.get(UsageCounter, (key, day))
            if row is None:
                return None
            return UsageCounters(requests=row.requests, tokens=row.tokens, cost=row.cost)

    async def increment(
        self, key: str, day: str, requests: int, tokens: int, cost: float
    ) -> UsageCounters:
        async with self._lock:
            with self._db.session_scope() as session:
                row = session.get(UsageCounter, (key, day))
                if row is None:
                    row = UsageCounter(key=key, day=day, requests=0, tokens=0, cost=0.0)
                    session.add(row)
                row.requests += requests
                row.tokens += tokens
                row.cost += cost
                return UsageCounters(requests=row.requests, tokens=row.tokens, cost=row.cost)

    async def scan(self, prefix: str, day: str) -> dict[str, UsageCounters]:
        stmt = select(UsageCounter).where(
            UsageCounter.day == day, UsageCounter.key.startswith(prefix, autoescape=True)
        )
        with self._db.session_scope() as session:
            return {
                row.key: UsageCounters(requests=row.requests, tokens=row.tokens, cost=row.cost)
                for row in session.scalars(stmt)
            }
