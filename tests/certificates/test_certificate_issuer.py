"""Tests for certificate issuance, verification, download and sharing."""

import asyncio
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from certflow.assessments.models import AssessmentAttempt, AttemptStatus
from certflow.certificates.models import Certificate
from certflow.certificates.repository import InMemoryCertificateRepository
from certflow.certificates.security import generate_certificate_id
from certflow.certificates.service import CertificateNotFoundError, CertificateService
from certflow.core.errors import RevokedError, UnauthorizedError, ValidationError
from certflow.notifications import EventType


def graded_attempt(enrollment, passed: bool = True) -> AssessmentAttempt:
    return AssessmentAttempt(
        enrollment_id=enrollment.id,
        quiz_id=uuid4(),
        attempt_number=1,
        time_limit_seconds=600,
        status=AttemptStatus.SUBMITTED,
        answers=[1, 1],
        submitted_at=datetime(2025, 3, 1, 9, 20, tzinfo=UTC),
        time_spent_seconds=300,
        score=10 if passed else 0,
        total_possible_points=10,
        percentage_score=100 if passed else 0,
        grade="A+" if passed else "F",
        passed=passed,
    )


@pytest.fixture
def enrollment(services, course, student):
    async def _enroll():
        return await services.enrollment_service.enroll(student, course.id)

    return _enroll


class TestIssueCertificate:
    @pytest.mark.asyncio
    async def test_issue_freezes_attempt_results(
        self, services, course, student, enrollment, clock, publisher
    ) -> None:
        enrolled = await enrollment()
        attempt = graded_attempt(enrolled)

        certificate = await services.certificate_service.issue_certificate(attempt)
        await services.dispatcher.drain()

        assert certificate.user_id == student.user_id
        assert certificate.course_id == course.id
        assert certificate.course_title == course.title
        assert certificate.attempt_id == attempt.id
        assert certificate.score == 10
        assert certificate.grade == "A+"
        assert certificate.completion_date == attempt.submitted_at
        assert certificate.issued_at == clock.now
        assert certificate.certificate_id.startswith("CERT-")
        assert [e.type for e in publisher.events][-1] == EventType.CERTIFICATE_ISSUED

    @pytest.mark.asyncio
    async def test_issue_is_idempotent(self, services, student, enrollment) -> None:
        enrolled = await enrollment()
        attempt = graded_attempt(enrolled)

        first = await services.certificate_service.issue_certificate(attempt)
        second = await services.certificate_service.issue_certificate(attempt)

        assert first == second
        mine = await services.certificate_service.list_user_certificates(
            student.user_id
        )
        assert [c.certificate_id for c in mine] == [first.certificate_id]

    @pytest.mark.asyncio
    async def test_concurrent_issue_yields_one_certificate(
        self, services, student, enrollment
    ) -> None:
        enrolled = await enrollment()
        attempt = graded_attempt(enrolled)

        issued = await asyncio.gather(
            *(services.certificate_service.issue_certificate(attempt) for _ in range(5))
        )

        assert len({c.certificate_id for c in issued}) == 1

    @pytest.mark.asyncio
    async def test_failed_attempt_is_rejected(self, services, enrollment) -> None:
        enrolled = await enrollment()
        with pytest.raises(ValidationError):
            await services.certificate_service.issue_certificate(
                graded_attempt(enrolled, passed=False)
            )

    @pytest.mark.asyncio
    async def test_revoked_certificate_is_replaced(
        self, services, enrollment, clock
    ) -> None:
        enrolled = await enrollment()
        attempt = graded_attempt(enrolled)
        original = await services.certificate_service.issue_certificate(attempt)
        await services.repositories.certificates.revoke(
            original.certificate_id, "Issued in error", clock()
        )

        replacement = await services.certificate_service.issue_certificate(attempt)

        assert replacement.certificate_id != original.certificate_id
        current = await services.certificate_service.get_for_enrollment(enrolled.id)
        assert current == replacement

    @pytest.mark.asyncio
    async def test_losing_the_pointer_race_returns_winner(
        self, services, course, student, settings, clock
    ) -> None:
        enrolled = await services.enrollment_service.enroll(student, course.id)

        class RacingRepository(InMemoryCertificateRepository):
            """Another issuer claims the enrollment just before us."""

            def __init__(self) -> None:
                super().__init__()
                self.rival: Certificate | None = None
                self.losers: list[str] = []

            async def claim_enrollment(self, enrollment_id, certificate_id):
                if self.rival is None:
                    self.rival = Certificate(
                        certificate_id=generate_certificate_id(),
                        user_id=enrolled.user_id,
                        course_id=enrolled.course_id,
                        enrollment_id=enrollment_id,
                        attempt_id=uuid4(),
                        score=10,
                        total_possible_points=10,
                        percentage_score=100,
                        grade="A+",
                        completion_date=clock(),
                    )
                    await self.insert(self.rival)
                    await super().claim_enrollment(
                        enrollment_id, self.rival.certificate_id
                    )
                    self.losers.append(certificate_id)
                return await super().claim_enrollment(enrollment_id, certificate_id)

        repository = RacingRepository()
        issuer = CertificateService(
            repository,
            services.repositories.enrollments,
            services.repositories.content,
            services.dispatcher,
            settings=settings,
            clock=clock,
        )

        certificate = await issuer.issue_certificate(graded_attempt(enrolled))

        assert certificate == repository.rival
        assert await repository.get(repository.losers[0]) is None


class TestVerification:
    @pytest.mark.asyncio
    async def test_valid_certificate(self, services, enrollment) -> None:
        issued = await services.certificate_service.issue_certificate(
            graded_attempt(await enrollment())
        )

        result = await services.certificate_service.verify_certificate(
            issued.certificate_id.lower()
        )

        assert result.valid is True
        assert result.certificate == issued
        assert result.reason is None

    @pytest.mark.asyncio
    async def test_unknown_id(self, services) -> None:
        with pytest.raises(CertificateNotFoundError):
            await services.certificate_service.verify_certificate(
                generate_certificate_id()
            )

    @pytest.mark.asyncio
    async def test_malformed_id(self, services) -> None:
        with pytest.raises(CertificateNotFoundError):
            await services.certificate_service.verify_certificate("CERT-123")

    @pytest.mark.asyncio
    async def test_revoked_certificate(self, services, enrollment, clock) -> None:
        issued = await services.certificate_service.issue_certificate(
            graded_attempt(await enrollment())
        )
        await services.repositories.certificates.revoke(
            issued.certificate_id, "Academic misconduct", clock()
        )

        result = await services.certificate_service.verify_certificate(
            issued.certificate_id
        )

        assert result.valid is False
        assert result.reason == "Academic misconduct"
        assert (
            await services.certificate_service.list_user_certificates(issued.user_id)
            == []
        )


class TestDownloadAndShare:
    @pytest.fixture
    def issued(self, services, enrollment):
        async def _issue():
            return await services.certificate_service.issue_certificate(
                graded_attempt(await enrollment())
            )

        return _issue

    @pytest.mark.asyncio
    async def test_owner_download(self, services, student, issued) -> None:
        certificate = await issued()

        document = await services.certificate_service.download_certificate(
            student, certificate.certificate_id
        )

        assert certificate.certificate_id.encode() in document
        assert document == await services.certificate_service.download_certificate(
            student, certificate.certificate_id
        )

    @pytest.mark.asyncio
    async def test_admin_download(self, services, admin, issued) -> None:
        certificate = await issued()
        document = await services.certificate_service.download_certificate(
            admin, certificate.certificate_id
        )
        assert document.startswith(b"<!DOCTYPE html>")

    @pytest.mark.asyncio
    async def test_other_learner_cannot_download(
        self, services, other_student, issued
    ) -> None:
        certificate = await issued()
        with pytest.raises(UnauthorizedError):
            await services.certificate_service.download_certificate(
                other_student, certificate.certificate_id
            )

    @pytest.mark.asyncio
    async def test_revoked_download(self, services, student, issued, clock) -> None:
        certificate = await issued()
        await services.repositories.certificates.revoke(
            certificate.certificate_id, None, clock()
        )
        with pytest.raises(RevokedError):
            await services.certificate_service.download_certificate(
                student, certificate.certificate_id
            )

    @pytest.mark.asyncio
    async def test_unknown_download(self, services, student) -> None:
        with pytest.raises(CertificateNotFoundError):
            await services.certificate_service.download_certificate(
                student, generate_certificate_id()
            )

    @pytest.mark.asyncio
    async def test_share_link_is_stable(self, services, settings, issued) -> None:
        certificate = await issued()

        first = await services.certificate_service.share_certificate(
            certificate.certificate_id
        )
        second = await services.certificate_service.share_certificate(
            certificate.certificate_id
        )

        assert first == second
        assert first == (
            f"{settings.certificate_verify_base_url.rstrip('/')}/"
            f"{certificate.certificate_id}"
        )

    @pytest.mark.asyncio
    async def test_share_revoked(self, services, issued, clock) -> None:
        certificate = await issued()
        await services.repositories.certificates.revoke(
            certificate.certificate_id, None, clock()
        )
        with pytest.raises(RevokedError):
            await services.certificate_service.share_certificate(
                certificate.certificate_id
            )


def earn_certificate(client, course, headers) -> str:
    """Run the learner workflow over HTTP and return the certificate id."""
    enrollment_id = client.post(
        "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
    ).json()["id"]
    for lesson_id in course.lesson_ids:
        client.post(
            f"/v1/progress/{enrollment_id}/lessons/{lesson_id}/complete",
            headers=headers,
        )
    attempt_id = client.post(
        f"/v1/assessments/enrollments/{enrollment_id}/start", headers=headers
    ).json()["attempt_id"]
    for index in range(2):
        client.put(
            f"/v1/assessments/attempts/{attempt_id}/answers",
            json={"question_index": index, "option": 1},
            headers=headers,
        )
    submitted = client.post(
        f"/v1/assessments/attempts/{attempt_id}/submit",
        json={"time_spent_seconds": 60},
        headers=headers,
    ).json()
    return submitted["certificate"]["certificate_id"]


class TestCertificateEndpoints:
    def test_verify_without_auth(
        self, client, course, quiz, student, headers_for
    ) -> None:
        certificate_id = earn_certificate(client, course, headers_for(student))

        response = client.get(f"/v1/certificates/{certificate_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["details"]["course_title"] == course.title
        assert body["details"]["grade"] == "A+"
        assert "user_id" not in body["details"]

    def test_verify_unknown(self, client) -> None:
        response = client.get(f"/v1/certificates/{generate_certificate_id()}")
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_verify_revoked(
        self, client, services, course, quiz, student, headers_for, clock
    ) -> None:
        certificate_id = earn_certificate(client, course, headers_for(student))
        asyncio.run(
            services.repositories.certificates.revoke(
                certificate_id, "Revoked by administrator", clock()
            )
        )

        response = client.get(f"/v1/certificates/{certificate_id}")

        assert response.status_code == 200
        assert response.json()["valid"] is False
        assert response.json()["reason"] == "Revoked by administrator"
        assert response.json()["details"] is None

        download = client.get(
            f"/v1/certificates/{certificate_id}/download",
            headers=headers_for(student),
        )
        assert download.status_code == 410

    def test_my_certificates(self, client, course, quiz, student, headers_for) -> None:
        headers = headers_for(student)
        certificate_id = earn_certificate(client, course, headers)

        response = client.get("/v1/certificates/my", headers=headers)

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["items"][0]["certificate_id"] == certificate_id

    def test_download(
        self, client, course, quiz, student, other_student, headers_for
    ) -> None:
        certificate_id = earn_certificate(client, course, headers_for(student))
        url = f"/v1/certificates/{certificate_id}/download"

        owner = client.get(url, headers=headers_for(student))
        assert owner.status_code == 200
        assert owner.headers["content-type"].startswith("text/html")
        assert certificate_id in owner.headers["content-disposition"]
        assert certificate_id in owner.text

        assert client.get(url).status_code == 401
        assert client.get(url, headers=headers_for(other_student)).status_code == 403

    def test_share(self, client, course, quiz, student, headers_for) -> None:
        certificate_id = earn_certificate(client, course, headers_for(student))

        response = client.post(f"/v1/certificates/{certificate_id}/share")

        assert response.status_code == 200
        assert response.json()["certificate_id"] == certificate_id
        assert response.json()["shareable_link"].endswith(f"/{certificate_id}")
