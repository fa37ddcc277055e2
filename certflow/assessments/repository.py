"""Assessment attempt persistence.

Writes that race are conditional:
- ``reserve_slot``: ``IF NOT EXISTS`` on (enrollment_id, attempt_number)
- ``save_answers``: ``IF status = 'in_progress'``
- ``complete``: ``IF status = 'in_progress' AND answers = ?``, the submit
  transition, applied only to the answers that were graded
"""

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from uuid import UUID

import orjson

from certflow.core.database import translate_driver_errors, was_applied

from .models import AssessmentAttempt, AttemptStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session


class AttemptRepository(ABC):
    @abstractmethod
    async def create(self, attempt: AssessmentAttempt) -> None:
        """Store a new attempt row (not yet visible through its enrollment)."""

    @abstractmethod
    async def reserve_slot(
        self, enrollment_id: UUID, attempt_number: int, attempt_id: UUID
    ) -> bool:
        """Claim an attempt number for the enrollment. True if claimed."""

    @abstractmethod
    async def delete(self, attempt_id: UUID) -> None: ...

    @abstractmethod
    async def get(self, attempt_id: UUID) -> AssessmentAttempt | None: ...

    @abstractmethod
    async def list_by_enrollment(self, enrollment_id: UUID) -> list[AssessmentAttempt]:
        """Attempts holding a slot, ordered by attempt number."""

    @abstractmethod
    async def save_answers(
        self, attempt_id: UUID, answers: list[int | None]
    ) -> bool:
        """Replace the answers of an in-progress attempt. False if submitted."""

    @abstractmethod
    async def complete(self, attempt: AssessmentAttempt) -> bool:
        """Persist a graded attempt if it is still in progress.

        Applies only while the stored answers equal ``attempt.answers``, the
        answers that were graded. Exactly one of two concurrent calls for the
        same attempt returns True.
        """

    @abstractmethod
    async def set_certificate(self, attempt_id: UUID, certificate_id: str) -> None: ...


class CassandraAttemptRepository(AttemptRepository):
    """Attempts on Cassandra with lightweight transactions for transitions."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._insert_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.assessment_attempts
            (id, enrollment_id, quiz_id, attempt_number, status, answers,
             started_at, time_limit_seconds, auto_submitted)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._reserve_slot = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.attempts_by_enrollment
            (enrollment_id, attempt_number, attempt_id)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)
        self._delete_attempt = self.session.prepare(
            f"DELETE FROM {self.keyspace}.assessment_attempts WHERE id = ? IF EXISTS"
        )
        self._get_attempt = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.assessment_attempts WHERE id = ?"
        )
        self._get_slots = self.session.prepare(f"""
            SELECT attempt_id FROM {self.keyspace}.attempts_by_enrollment
            WHERE enrollment_id = ?
        """)
        self._save_answers = self.session.prepare(f"""
            UPDATE {self.keyspace}.assessment_attempts
            SET answers = ?
            WHERE id = ?
            IF status = '{AttemptStatus.IN_PROGRESS.value}'
        """)
        self._complete = self.session.prepare(f"""
            UPDATE {self.keyspace}.assessment_attempts
            SET status = ?, submitted_at = ?, time_spent_seconds = ?,
                auto_submitted = ?, score = ?, total_possible_points = ?,
                percentage_score = ?, grade = ?, passed = ?, question_results = ?
            WHERE id = ?
            IF status = '{AttemptStatus.IN_PROGRESS.value}' AND answers = ?
        """)
        self._set_certificate = self.session.prepare(f"""
            UPDATE {self.keyspace}.assessment_attempts
            SET certificate_id = ?
            WHERE id = ?
            IF status = '{AttemptStatus.SUBMITTED.value}'
        """)

    @staticmethod
    def _json(value: list) -> str:
        return orjson.dumps(value).decode()

    @translate_driver_errors
    async def create(self, attempt: AssessmentAttempt) -> None:
        await self.session.aexecute(
            self._insert_attempt,
            [
                attempt.id,
                attempt.enrollment_id,
                attempt.quiz_id,
                attempt.attempt_number,
                attempt.status.value,
                self._json(attempt.answers),
                attempt.started_at,
                attempt.time_limit_seconds,
                attempt.auto_submitted,
            ],
        )

    @translate_driver_errors
    async def reserve_slot(
        self, enrollment_id: UUID, attempt_number: int, attempt_id: UUID
    ) -> bool:
        result = await self.session.aexecute(
            self._reserve_slot, [enrollment_id, attempt_number, attempt_id]
        )
        return was_applied(result)

    @translate_driver_errors
    async def delete(self, attempt_id: UUID) -> None:
        await self.session.aexecute(self._delete_attempt, [attempt_id])

    @translate_driver_errors
    async def get(self, attempt_id: UUID) -> AssessmentAttempt | None:
        result = await self.session.aexecute(self._get_attempt, [attempt_id])
        row = result.one()
        return AssessmentAttempt.from_row(row) if row else None

    @translate_driver_errors
    async def list_by_enrollment(self, enrollment_id: UUID) -> list[AssessmentAttempt]:
        slots = await self.session.aexecute(self._get_slots, [enrollment_id])
        attempts = []
        for slot in slots:
            attempt = await self.get(slot.attempt_id)
            if attempt is not None:
                attempts.append(attempt)
        return attempts

    @translate_driver_errors
    async def save_answers(
        self, attempt_id: UUID, answers: list[int | None]
    ) -> bool:
        result = await self.session.aexecute(
            self._save_answers, [self._json(answers), attempt_id]
        )
        return was_applied(result)

    @translate_driver_errors
    async def complete(self, attempt: AssessmentAttempt) -> bool:
        result = await self.session.aexecute(
            self._complete,
            [
                AttemptStatus.SUBMITTED.value,
                attempt.submitted_at,
                attempt.time_spent_seconds,
                attempt.auto_submitted,
                attempt.score,
                attempt.total_possible_points,
                attempt.percentage_score,
                attempt.grade,
                attempt.passed,
                self._json(attempt.question_results),
                attempt.id,
                self._json(attempt.answers),
            ],
        )
        return was_applied(result)

    @translate_driver_errors
    async def set_certificate(self, attempt_id: UUID, certificate_id: str) -> None:
        await self.session.aexecute(self._set_certificate, [certificate_id, attempt_id])


class InMemoryAttemptRepository(AttemptRepository):
    """Process-local attempts for tests and local runs."""

    def __init__(self) -> None:
        self._attempts: dict[UUID, AssessmentAttempt] = {}
        self._slots: dict[UUID, dict[int, UUID]] = {}
        self._lock = asyncio.Lock()

    async def create(self, attempt: AssessmentAttempt) -> None:
        async with self._lock:
            self._attempts[attempt.id] = attempt.copy()

    async def reserve_slot(
        self, enrollment_id: UUID, attempt_number: int, attempt_id: UUID
    ) -> bool:
        async with self._lock:
            slots = self._slots.setdefault(enrollment_id, {})
            if attempt_number in slots:
                return False
            slots[attempt_number] = attempt_id
            return True

    async def delete(self, attempt_id: UUID) -> None:
        async with self._lock:
            self._attempts.pop(attempt_id, None)

    async def get(self, attempt_id: UUID) -> AssessmentAttempt | None:
        attempt = self._attempts.get(attempt_id)
        return attempt.copy() if attempt else None

    async def list_by_enrollment(self, enrollment_id: UUID) -> list[AssessmentAttempt]:
        slots = self._slots.get(enrollment_id, {})
        return [
            self._attempts[attempt_id].copy()
            for _, attempt_id in sorted(slots.items())
            if attempt_id in self._attempts
        ]

    async def save_answers(
        self, attempt_id: UUID, answers: list[int | None]
    ) -> bool:
        async with self._lock:
            attempt = self._attempts.get(attempt_id)
            if attempt is None or not attempt.is_in_progress:
                return False
            attempt.answers = list(answers)
            return True

    async def complete(self, attempt: AssessmentAttempt) -> bool:
        async with self._lock:
            current = self._attempts.get(attempt.id)
            if current is None or not current.is_in_progress:
                return False
            if current.answers != attempt.answers:
                return False
            stored = attempt.copy()
            stored.status = AttemptStatus.SUBMITTED
            self._attempts[attempt.id] = stored
            return True

    async def set_certificate(self, attempt_id: UUID, certificate_id: str) -> None:
        async with self._lock:
            attempt = self._attempts.get(attempt_id)
            if attempt is not None and attempt.is_submitted:
                attempt.certificate_id = certificate_id
