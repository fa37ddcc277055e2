"""Enrollment persistence.

``create_if_absent`` is the only write and is atomic per (user, course):
of two concurrent calls for the same pair exactly one returns True.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from uuid import UUID

from certflow.core.database import translate_driver_errors, was_applied

from .models import Enrollment


if TYPE_CHECKING:
    from cassandra.cluster import Session


class EnrollmentRepository(ABC):
    @abstractmethod
    async def create_if_absent(self, enrollment: Enrollment) -> bool:
        """Store the enrollment unless the pair exists. True if stored."""

    @abstractmethod
    async def get(self, enrollment_id: UUID) -> Enrollment | None: ...

    @abstractmethod
    async def get_by_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...

    @abstractmethod
    async def list_by_user(self, user_id: UUID) -> list[Enrollment]: ...


class CassandraEnrollmentRepository(EnrollmentRepository):
    """Enrollments on Cassandra, uniqueness through a lightweight transaction."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._insert_pair = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, course_id, enrollment_id, enrolled_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (id, user_id, course_id, enrolled_at)
            VALUES (?, ?, ?, ?)
        """)
        self._get_enrollment = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollments WHERE id = ?"
        )
        self._get_pair = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ? AND course_id = ?
        """)
        self._get_user_enrollments = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollments_by_user WHERE user_id = ?"
        )

    @staticmethod
    def _from_pair_row(row) -> Enrollment:
        return Enrollment(
            id=row.enrollment_id,
            user_id=row.user_id,
            course_id=row.course_id,
            enrolled_at=row.enrolled_at,
        )

    @translate_driver_errors
    async def create_if_absent(self, enrollment: Enrollment) -> bool:
        # Id row first: a pair row never points at a missing enrollment.
        # Losing the pair insert leaves an unreferenced id row behind.
        await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.id,
                enrollment.user_id,
                enrollment.course_id,
                enrollment.enrolled_at,
            ],
        )
        result = await self.session.aexecute(
            self._insert_pair,
            [
                enrollment.user_id,
                enrollment.course_id,
                enrollment.id,
                enrollment.enrolled_at,
            ],
        )
        return was_applied(result)

    @translate_driver_errors
    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(self._get_enrollment, [enrollment_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    @translate_driver_errors
    async def get_by_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        result = await self.session.aexecute(self._get_pair, [user_id, course_id])
        row = result.one()
        return self._from_pair_row(row) if row else None

    @translate_driver_errors
    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        enrollments = [self._from_pair_row(row) for row in rows]
        return sorted(enrollments, key=lambda e: e.enrolled_at, reverse=True)


class InMemoryEnrollmentRepository(EnrollmentRepository):
    """Process-local enrollments for tests and local runs."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, Enrollment] = {}
        self._by_pair: dict[tuple[UUID, UUID], UUID] = {}
        self._lock = asyncio.Lock()

    async def create_if_absent(self, enrollment: Enrollment) -> bool:
        async with self._lock:
            key = (enrollment.user_id, enrollment.course_id)
            if key in self._by_pair:
                return False
            self._by_pair[key] = enrollment.id
            self._by_id[enrollment.id] = enrollment
            return True

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def get_by_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        enrollment_id = self._by_pair.get((user_id, course_id))
        return self._by_id.get(enrollment_id) if enrollment_id else None

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        enrollments = [e for e in self._by_id.values() if e.user_id == user_id]
        return sorted(enrollments, key=lambda e: e.enrolled_at, reverse=True)
