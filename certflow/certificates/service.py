"""Certificate Issuer service layer.

Business logic for:
- Issuing the canonical certificate of an enrollment from a passed attempt
- Public verification
- Authorized download and public share links
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from certflow.config.settings import Settings, get_settings
from certflow.core.context import Actor
from certflow.core.errors import (
    NotFoundError,
    PersistenceError,
    RevokedError,
    UnauthorizedError,
    ValidationError,
)
from certflow.courses.store import ContentStore
from certflow.enrollments.models import Enrollment
from certflow.enrollments.repository import EnrollmentRepository
from certflow.notifications import NotificationDispatcher
from certflow.notifications.models import certificate_issued
from certflow.utils.time import Clock, utc_now

from .models import Certificate
from .renderer import render_certificate_html
from .repository import CertificateRepository
from .security import (
    generate_certificate_id,
    is_valid_certificate_id,
    normalize_certificate_id,
)


if TYPE_CHECKING:
    from certflow.assessments.models import AssessmentAttempt


logger = structlog.get_logger(__name__)

# Rounds of insert-then-claim before giving up
ISSUE_RETRIES = 5


class CertificateNotFoundError(NotFoundError):
    default_message = "Certificate not found"


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    certificate: Certificate
    reason: str | None = None


class CertificateService:
    """Service for certificate issuance and verification."""

    def __init__(
        self,
        repository: CertificateRepository,
        enrollments: EnrollmentRepository,
        content_store: ContentStore,
        dispatcher: NotificationDispatcher,
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ):
        self.repository = repository
        self.enrollments = enrollments
        self.content_store = content_store
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.clock = clock

    def verify_url(self, certificate_id: str) -> str:
        """Stable public link of a certificate."""
        base = self.settings.certificate_verify_base_url.rstrip("/")
        return f"{base}/{certificate_id}"

    # ==========================================================================
    # Issuance
    # ==========================================================================

    async def issue_certificate(
        self, attempt: "AssessmentAttempt", enrollment: Enrollment | None = None
    ) -> Certificate:
        """Issue the certificate of a passed attempt, or return the existing one.

        The first passing attempt of an enrollment produces the canonical
        certificate; later passing retakes get that same certificate. A
        revoked canonical certificate is replaced by a new one.

        Raises:
            ValidationError: If the attempt is not submitted and passed
            NotFoundError: If the enrollment no longer exists
        """
        if not attempt.is_submitted or not attempt.passed:
            raise ValidationError(
                "Certificate requires a submitted, passing attempt",
                [f"Attempt {attempt.id} is not a passed submission"],
            )

        if enrollment is None:
            enrollment = await self.enrollments.get(attempt.enrollment_id)
            if enrollment is None:
                raise NotFoundError(
                    "Enrollment not found", enrollment_id=str(attempt.enrollment_id)
                )

        for _ in range(ISSUE_RETRIES):
            pointer = await self.repository.get_enrollment_pointer(enrollment.id)
            existing = await self.repository.get(pointer) if pointer else None
            if existing is not None and not existing.revoked:
                return existing

            candidate = await self._new_certificate(attempt, enrollment)
            if not await self.repository.insert(candidate):
                continue

            if pointer is None:
                claimed = await self.repository.claim_enrollment(
                    enrollment.id, candidate.certificate_id
                )
            else:
                claimed = await self.repository.replace_enrollment(
                    enrollment.id, pointer, candidate.certificate_id
                )

            if claimed:
                await self.repository.add_to_user(candidate)
                logger.info(
                    "certificate_issued",
                    certificate_id=candidate.certificate_id,
                    enrollment_id=str(enrollment.id),
                    attempt_id=str(attempt.id),
                    grade=candidate.grade,
                    replaced_certificate_id=pointer,
                )
                self.dispatcher.emit(certificate_issued(candidate))
                return candidate

            # Another issuer won the pointer; drop ours and return theirs
            await self.repository.delete(candidate.certificate_id)

        raise PersistenceError(
            "Could not issue certificate", enrollment_id=str(enrollment.id)
        )

    async def _new_certificate(
        self, attempt: "AssessmentAttempt", enrollment: Enrollment
    ) -> Certificate:
        outline = await self.content_store.get_course_outline(enrollment.course_id)
        return Certificate(
            certificate_id=generate_certificate_id(self.settings.certificate_id_prefix),
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            course_title=outline.title if outline else "",
            enrollment_id=enrollment.id,
            attempt_id=attempt.id,
            score=attempt.score,
            total_possible_points=attempt.total_possible_points,
            percentage_score=attempt.percentage_score,
            grade=attempt.grade,
            completion_date=attempt.submitted_at or self.clock(),
            issued_at=self.clock(),
        )

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def _get(self, certificate_id: str) -> Certificate:
        if not is_valid_certificate_id(certificate_id):
            raise CertificateNotFoundError(certificate_id=certificate_id)
        certificate = await self.repository.get(
            normalize_certificate_id(certificate_id)
        )
        if certificate is None:
            raise CertificateNotFoundError(certificate_id=certificate_id)
        return certificate

    async def get_for_enrollment(self, enrollment_id: UUID) -> Certificate | None:
        """Canonical, non-revoked certificate of an enrollment."""
        pointer = await self.repository.get_enrollment_pointer(enrollment_id)
        if pointer is None:
            return None
        certificate = await self.repository.get(pointer)
        if certificate is None or certificate.revoked:
            return None
        return certificate

    async def list_user_certificates(self, user_id: UUID) -> list[Certificate]:
        """Non-revoked certificates of a learner, newest first."""
        certificates = await self.repository.list_by_user(user_id)
        return [c for c in certificates if not c.revoked]

    async def verify_certificate(self, certificate_id: str) -> VerificationResult:
        """Public verification, no authentication.

        Raises:
            CertificateNotFoundError: If the id is malformed or unknown
        """
        certificate = await self._get(certificate_id)
        if certificate.revoked:
            logger.info(
                "certificate_verification_revoked",
                certificate_id=certificate.certificate_id,
            )
            return VerificationResult(
                valid=False,
                certificate=certificate,
                reason=certificate.revoked_reason or "Certificate has been revoked",
            )
        return VerificationResult(valid=True, certificate=certificate)

    async def download_certificate(self, actor: Actor, certificate_id: str) -> bytes:
        """Render the certificate document for its owner or an admin.

        Raises:
            CertificateNotFoundError: If the id is malformed or unknown
            UnauthorizedError: If the actor is neither owner nor admin
            RevokedError: If the certificate was revoked
        """
        certificate = await self._get(certificate_id)
        if not actor.owns(certificate.user_id):
            raise UnauthorizedError(
                "Only the certificate owner can download it",
                certificate_id=certificate.certificate_id,
            )
        if certificate.revoked:
            raise RevokedError(certificate_id=certificate.certificate_id)

        logger.info(
            "certificate_downloaded",
            certificate_id=certificate.certificate_id,
            by_admin=actor.user_id != certificate.user_id,
        )
        return render_certificate_html(
            certificate,
            issuer=self.settings.certificate_issuer_name,
            verify_url=self.verify_url(certificate.certificate_id),
        )

    async def share_certificate(self, certificate_id: str) -> str:
        """Public link that shows the verification result.

        Raises:
            CertificateNotFoundError: If the id is malformed or unknown
            RevokedError: If the certificate was revoked
        """
        certificate = await self._get(certificate_id)
        if certificate.revoked:
            raise RevokedError(certificate_id=certificate.certificate_id)
        return self.verify_url(certificate.certificate_id)
