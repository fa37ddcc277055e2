"""Certificate persistence.

The enrollment pointer decides which certificate is canonical. A writer
inserts its certificate row first, then claims the pointer; a writer that
loses the claim deletes its row and returns the winner's certificate.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from certflow.core.database import translate_driver_errors, was_applied

from .models import Certificate


if TYPE_CHECKING:
    from cassandra.cluster import Session


class CertificateRepository(ABC):
    @abstractmethod
    async def insert(self, certificate: Certificate) -> bool:
        """Store a new certificate. False if the id is already taken."""

    @abstractmethod
    async def get(self, certificate_id: str) -> Certificate | None: ...

    @abstractmethod
    async def delete(self, certificate_id: str) -> None: ...

    @abstractmethod
    async def get_enrollment_pointer(self, enrollment_id: UUID) -> str | None:
        """Id of the canonical certificate of an enrollment."""

    @abstractmethod
    async def claim_enrollment(self, enrollment_id: UUID, certificate_id: str) -> bool:
        """Set the pointer if the enrollment has none. True if set."""

    @abstractmethod
    async def replace_enrollment(
        self, enrollment_id: UUID, expected_id: str, certificate_id: str
    ) -> bool:
        """Move the pointer if it still holds ``expected_id``. True if moved."""

    @abstractmethod
    async def add_to_user(self, certificate: Certificate) -> None: ...

    @abstractmethod
    async def list_by_user(self, user_id: UUID) -> list[Certificate]: ...

    @abstractmethod
    async def revoke(
        self, certificate_id: str, reason: str | None, revoked_at: datetime
    ) -> None: ...


class CassandraCertificateRepository(CertificateRepository):
    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates
            (certificate_id, user_id, course_id, course_title, enrollment_id,
             attempt_id, score, total_possible_points, percentage_score, grade,
             completion_date, issued_at, revoked)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._get_certificate = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.certificates WHERE certificate_id = ?"
        )
        self._delete_certificate = self.session.prepare(
            f"DELETE FROM {self.keyspace}.certificates WHERE certificate_id = ? "
            "IF EXISTS"
        )
        self._get_pointer = self.session.prepare(f"""
            SELECT certificate_id FROM {self.keyspace}.certificates_by_enrollment
            WHERE enrollment_id = ?
        """)
        self._claim_pointer = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_enrollment
            (enrollment_id, certificate_id)
            VALUES (?, ?)
            IF NOT EXISTS
        """)
        self._replace_pointer = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates_by_enrollment
            SET certificate_id = ?
            WHERE enrollment_id = ?
            IF certificate_id = ?
        """)
        self._add_to_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_user (user_id, certificate_id)
            VALUES (?, ?)
        """)
        self._get_user_certificates = self.session.prepare(f"""
            SELECT certificate_id FROM {self.keyspace}.certificates_by_user
            WHERE user_id = ?
        """)
        self._revoke = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates
            SET revoked = true, revoked_reason = ?, revoked_at = ?
            WHERE certificate_id = ?
            IF EXISTS
        """)

    @translate_driver_errors
    async def insert(self, certificate: Certificate) -> bool:
        result = await self.session.aexecute(
            self._insert_certificate,
            [
                certificate.certificate_id,
                certificate.user_id,
                certificate.course_id,
                certificate.course_title,
                certificate.enrollment_id,
                certificate.attempt_id,
                certificate.score,
                certificate.total_possible_points,
                certificate.percentage_score,
                certificate.grade,
                certificate.completion_date,
                certificate.issued_at,
                certificate.revoked,
            ],
        )
        return was_applied(result)

    @translate_driver_errors
    async def get(self, certificate_id: str) -> Certificate | None:
        result = await self.session.aexecute(self._get_certificate, [certificate_id])
        row = result.one()
        return Certificate.from_row(row) if row else None

    @translate_driver_errors
    async def delete(self, certificate_id: str) -> None:
        await self.session.aexecute(self._delete_certificate, [certificate_id])

    @translate_driver_errors
    async def get_enrollment_pointer(self, enrollment_id: UUID) -> str | None:
        result = await self.session.aexecute(self._get_pointer, [enrollment_id])
        row = result.one()
        return row.certificate_id if row else None

    @translate_driver_errors
    async def claim_enrollment(self, enrollment_id: UUID, certificate_id: str) -> bool:
        result = await self.session.aexecute(
            self._claim_pointer, [enrollment_id, certificate_id]
        )
        return was_applied(result)

    @translate_driver_errors
    async def replace_enrollment(
        self, enrollment_id: UUID, expected_id: str, certificate_id: str
    ) -> bool:
        result = await self.session.aexecute(
            self._replace_pointer, [certificate_id, enrollment_id, expected_id]
        )
        return was_applied(result)

    @translate_driver_errors
    async def add_to_user(self, certificate: Certificate) -> None:
        await self.session.aexecute(
            self._add_to_user, [certificate.user_id, certificate.certificate_id]
        )

    @translate_driver_errors
    async def list_by_user(self, user_id: UUID) -> list[Certificate]:
        rows = await self.session.aexecute(self._get_user_certificates, [user_id])
        certificates = []
        for row in rows:
            certificate = await self.get(row.certificate_id)
            if certificate is not None:
                certificates.append(certificate)
        return sorted(certificates, key=lambda c: c.issued_at, reverse=True)

    @translate_driver_errors
    async def revoke(
        self, certificate_id: str, reason: str | None, revoked_at: datetime
    ) -> None:
        await self.session.aexecute(self._revoke, [reason, revoked_at, certificate_id])


class InMemoryCertificateRepository(CertificateRepository):
    """Process-local certificates for tests and local runs."""

    def __init__(self) -> None:
        self._certificates: dict[str, Certificate] = {}
        self._by_enrollment: dict[UUID, str] = {}
        self._by_user: dict[UUID, set[str]] = {}
        self._lock = asyncio.Lock()

    async def insert(self, certificate: Certificate) -> bool:
        async with self._lock:
            if certificate.certificate_id in self._certificates:
                return False
            self._certificates[certificate.certificate_id] = certificate.copy()
            return True

    async def get(self, certificate_id: str) -> Certificate | None:
        certificate = self._certificates.get(certificate_id)
        return certificate.copy() if certificate else None

    async def delete(self, certificate_id: str) -> None:
        async with self._lock:
            self._certificates.pop(certificate_id, None)

    async def get_enrollment_pointer(self, enrollment_id: UUID) -> str | None:
        return self._by_enrollment.get(enrollment_id)

    async def claim_enrollment(self, enrollment_id: UUID, certificate_id: str) -> bool:
        async with self._lock:
            if enrollment_id in self._by_enrollment:
                return False
            self._by_enrollment[enrollment_id] = certificate_id
            return True

    async def replace_enrollment(
        self, enrollment_id: UUID, expected_id: str, certificate_id: str
    ) -> bool:
        async with self._lock:
            if self._by_enrollment.get(enrollment_id) != expected_id:
                return False
            self._by_enrollment[enrollment_id] = certificate_id
            return True

    async def add_to_user(self, certificate: Certificate) -> None:
        async with self._lock:
            self._by_user.setdefault(certificate.user_id, set()).add(
                certificate.certificate_id
            )

    async def list_by_user(self, user_id: UUID) -> list[Certificate]:
        certificates = [
            self._certificates[cid].copy()
            for cid in self._by_user.get(user_id, set())
            if cid in self._certificates
        ]
        return sorted(certificates, key=lambda c: c.issued_at, reverse=True)

    async def revoke(
        self, certificate_id: str, reason: str | None, revoked_at: datetime
    ) -> None:
        async with self._lock:
            certificate = self._certificates.get(certificate_id)
            if certificate is not None:
                certificate.revoked = True
                certificate.revoked_reason = reason
                certificate.revoked_at = revoked_at
