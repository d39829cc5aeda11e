"""Audit trail for LGPD compliance."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from pydantic_core import to_jsonable_python
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_booking.models.audit_logs import audit_logs


class AuditLog(ABC):
    """Append-only record of actions taken on behalf of a patient."""

    @abstractmethod
    async def record(self, patient_id: UUID, action: str, payload: dict[str, Any]) -> None:
        """Persist one audit entry."""


class SqlAuditLog(AuditLog):
    """
    Writes entries to the ``audit_logs`` table.

    Each entry is written in its own session so an audit failure never rolls
    back the caller's transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(self, patient_id: UUID, action: str, payload: dict[str, Any]) -> None:
        async with self.session_factory() as session:
            await session.execute(
                insert(audit_logs).values(
                    patient_id=patient_id,
                    action=action,
                    payload=to_jsonable_python(payload),
                )
            )
            await session.commit()


@dataclass
class AuditEntry:
    patient_id: UUID
    action: str
    payload: dict[str, Any]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryAuditLog(AuditLog):
    """Keeps entries in a list."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def record(self, patient_id: UUID, action: str, payload: dict[str, Any]) -> None:
        self.entries.append(AuditEntry(patient_id, action, to_jsonable_python(payload)))

    def actions(self) -> list[str]:
        return [entry.action for entry in self.entries]
