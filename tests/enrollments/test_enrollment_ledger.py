"""Tests for the enrollment ledger."""

import asyncio
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra import OperationTimedOut
from cassandra.cluster import Session

from certflow.core.errors import (
    DuplicateEnrollmentError,
    NotFoundError,
    PersistenceError,
)
from certflow.enrollments.models import Enrollment
from certflow.enrollments.repository import CassandraEnrollmentRepository
from certflow.enrollments.service import EnrollmentNotFoundError
from certflow.notifications import EventType


class TestEnroll:
    @pytest.mark.asyncio
    async def test_enroll_creates_enrollment(
        self, services, course, student, clock
    ) -> None:
        enrollment = await services.enrollment_service.enroll(student, course.id)

        assert enrollment.user_id == student.user_id
        assert enrollment.course_id == course.id
        assert enrollment.enrolled_at == clock.now
        assert await services.enrollment_service.is_enrolled(
            student.user_id, course.id
        )

    @pytest.mark.asyncio
    async def test_enroll_emits_event(
        self, services, course, student, publisher
    ) -> None:
        enrollment = await services.enrollment_service.enroll(student, course.id)
        await services.dispatcher.drain()

        assert len(publisher.events) == 1
        event = publisher.events[0]
        assert event.type == EventType.ENROLLMENT_CREATED
        assert event.recipient_id == student.user_id
        assert event.payload["enrollment_id"] == str(enrollment.id)
        assert event.payload["course_title"] == course.title

    @pytest.mark.asyncio
    async def test_duplicate_enrollment(self, services, course, student) -> None:
        await services.enrollment_service.enroll(student, course.id)
        with pytest.raises(DuplicateEnrollmentError):
            await services.enrollment_service.enroll(student, course.id)

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_have_one_winner(
        self, services, course, student
    ) -> None:
        results = await asyncio.gather(
            services.enrollment_service.enroll(student, course.id),
            services.enrollment_service.enroll(student, course.id),
            return_exceptions=True,
        )

        created = [r for r in results if isinstance(r, Enrollment)]
        duplicates = [r for r in results if isinstance(r, DuplicateEnrollmentError)]
        assert len(created) == 1
        assert len(duplicates) == 1

    @pytest.mark.asyncio
    async def test_unknown_course(self, services, student) -> None:
        with pytest.raises(NotFoundError):
            await services.enrollment_service.enroll(student, uuid4())

    @pytest.mark.asyncio
    async def test_not_enrolled(self, services, course, student) -> None:
        assert not await services.enrollment_service.is_enrolled(
            student.user_id, course.id
        )


class TestGetEnrollment:
    @pytest.mark.asyncio
    async def test_other_learner_sees_not_found(
        self, services, course, student, other_student
    ) -> None:
        enrollment = await services.enrollment_service.enroll(student, course.id)
        with pytest.raises(EnrollmentNotFoundError):
            await services.enrollment_service.get_enrollment(
                other_student, enrollment.id
            )

    @pytest.mark.asyncio
    async def test_admin_sees_any(self, services, course, student, admin) -> None:
        enrollment = await services.enrollment_service.enroll(student, course.id)
        found = await services.enrollment_service.get_enrollment(admin, enrollment.id)
        assert found == enrollment

    @pytest.mark.asyncio
    async def test_find_without_actor(self, services, course, student) -> None:
        enrollment = await services.enrollment_service.enroll(student, course.id)

        assert await services.enrollment_service.find_enrollment(
            enrollment.id
        ) == enrollment
        assert await services.enrollment_service.find_enrollment(uuid4()) is None

    @pytest.mark.asyncio
    async def test_list_newest_first(
        self, services, add_course, student, clock
    ) -> None:
        first = await services.enrollment_service.enroll(student, add_course().id)
        clock.advance(60)
        second = await services.enrollment_service.enroll(student, add_course().id)

        listed = await services.enrollment_service.list_user_enrollments(
            student.user_id
        )
        assert [e.id for e in listed] == [second.id, first.id]


class TestCassandraEnrollmentRepository:
    @pytest.fixture
    def mock_session(self):
        session = Mock(spec=Session)
        session.prepare = Mock(side_effect=lambda cql: Mock(query_string=cql))
        session.aexecute = AsyncMock(return_value=Mock())
        return session

    @pytest.fixture
    def repository(self, mock_session) -> CassandraEnrollmentRepository:
        return CassandraEnrollmentRepository(mock_session, "test_keyspace")

    @pytest.mark.asyncio
    async def test_create_writes_enrollment_before_pair(
        self, repository, mock_session
    ) -> None:
        mock_session.aexecute.return_value = Mock(was_applied=True)
        enrollment = Enrollment(user_id=uuid4(), course_id=uuid4())

        assert await repository.create_if_absent(enrollment) is True

        first, second = mock_session.aexecute.await_args_list
        assert first.args[0] is repository._insert_enrollment
        assert second.args[0] is repository._insert_pair

    @pytest.mark.asyncio
    async def test_existing_pair_is_reported(self, repository, mock_session) -> None:
        mock_session.aexecute.return_value = Mock(was_applied=False)
        enrollment = Enrollment(user_id=uuid4(), course_id=uuid4())

        assert await repository.create_if_absent(enrollment) is False

    @pytest.mark.asyncio
    async def test_retry_after_timed_out_pair_insert(
        self, repository, mock_session
    ) -> None:
        enrollment_rows = set()
        pair_inserts = []

        async def execute(statement, params):
            if statement is repository._insert_enrollment:
                enrollment_rows.add(params[0])
                return Mock()
            pair_inserts.append(params[2])
            if len(pair_inserts) == 1:
                raise OperationTimedOut("pair insert timed out")
            return Mock(was_applied=True)

        mock_session.aexecute.side_effect = execute
        user_id, course_id = uuid4(), uuid4()

        with pytest.raises(PersistenceError):
            await repository.create_if_absent(
                Enrollment(user_id=user_id, course_id=course_id)
            )

        retry = Enrollment(user_id=user_id, course_id=course_id)
        assert await repository.create_if_absent(retry) is True
        assert pair_inserts[-1] == retry.id
        assert retry.id in enrollment_rows

    def test_pair_insert_is_conditional(self, mock_session, repository) -> None:
        statements = [c.args[0] for c in mock_session.prepare.call_args_list]
        pair_insert = next(s for s in statements if "enrollments_by_user" in s)
        assert "IF NOT EXISTS" in pair_insert


class TestEnrollmentEndpoints:
    def test_enroll_and_list(self, client, course, student, headers_for) -> None:
        headers = headers_for(student)
        response = client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )
        assert response.status_code == 201
        enrollment_id = response.json()["id"]

        response = client.get("/v1/enrollments/my", headers=headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1

        response = client.get(f"/v1/enrollments/{enrollment_id}", headers=headers)
        assert response.status_code == 200

    def test_duplicate_is_409(self, client, course, student, headers_for) -> None:
        headers = headers_for(student)
        body = {"course_id": str(course.id)}
        client.post("/v1/enrollments", json=body, headers=headers)

        response = client.post("/v1/enrollments", json=body, headers=headers)
        assert response.status_code == 409
        assert response.json()["code"] == "duplicate_enrollment"

    def test_requires_token(self, client, course) -> None:
        response = client.post("/v1/enrollments", json={"course_id": str(course.id)})
        assert response.status_code == 401

    def test_malformed_course_id(self, client, student, headers_for) -> None:
        response = client.post(
            "/v1/enrollments",
            json={"course_id": "not-a-uuid"},
            headers=headers_for(student),
        )
        assert response.status_code == 422
