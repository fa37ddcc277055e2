"""Progress persistence."""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from certflow.core.database import translate_driver_errors
from certflow.utils.time import ensure_utc_aware

from .models import ProgressRecord


if TYPE_CHECKING:
    from cassandra.cluster import Session


class ProgressRepository(ABC):
    @abstractmethod
    async def get(self, enrollment_id: UUID) -> ProgressRecord | None:
        """Stored completions, ``total_lessons`` left at 0."""

    @abstractmethod
    async def add_lesson(
        self, enrollment_id: UUID, lesson_id: UUID, completed_at: datetime
    ) -> None:
        """Atomically add a lesson to the completed set."""


class CassandraProgressRepository(ProgressRepository):
    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_progress = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollment_progress WHERE enrollment_id = ?"
        )
        self._add_lesson = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollment_progress
            SET completed_lessons = completed_lessons + ?, updated_at = ?
            WHERE enrollment_id = ?
        """)

    @translate_driver_errors
    async def get(self, enrollment_id: UUID) -> ProgressRecord | None:
        result = await self.session.aexecute(self._get_progress, [enrollment_id])
        row = result.one()
        if row is None:
            return None
        return ProgressRecord(
            enrollment_id=row.enrollment_id,
            completed_lessons=frozenset(row.completed_lessons or ()),
            updated_at=ensure_utc_aware(row.updated_at),
        )

    @translate_driver_errors
    async def add_lesson(
        self, enrollment_id: UUID, lesson_id: UUID, completed_at: datetime
    ) -> None:
        await self.session.aexecute(
            self._add_lesson, [{lesson_id}, completed_at, enrollment_id]
        )


class InMemoryProgressRepository(ProgressRepository):
    def __init__(self) -> None:
        self._records: dict[UUID, ProgressRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, enrollment_id: UUID) -> ProgressRecord | None:
        return self._records.get(enrollment_id)

    async def add_lesson(
        self, enrollment_id: UUID, lesson_id: UUID, completed_at: datetime
    ) -> None:
        async with self._lock:
            current = self._records.get(enrollment_id)
            completed = current.completed_lessons if current else frozenset()
            self._records[enrollment_id] = ProgressRecord(
                enrollment_id=enrollment_id,
                completed_lessons=completed | {lesson_id},
                updated_at=completed_at,
            )
