"""Tests for the Cassandra attempt repository."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import orjson
import pytest
from cassandra.cluster import NoHostAvailable, Session

from certflow.assessments.models import AssessmentAttempt, AttemptStatus
from certflow.assessments.repository import CassandraAttemptRepository
from certflow.core.errors import PersistenceError


@pytest.fixture
def session():
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: Mock(query_string=cql))
    session.aexecute = AsyncMock(return_value=Mock(was_applied=True))
    return session


@pytest.fixture
def repository(session):
    return CassandraAttemptRepository(session, "test_keyspace")


def executed_cql(session) -> str:
    return session.aexecute.await_args.args[0].query_string


def submitted_attempt() -> AssessmentAttempt:
    return AssessmentAttempt(
        enrollment_id=uuid4(),
        quiz_id=uuid4(),
        attempt_number=1,
        time_limit_seconds=600,
        status=AttemptStatus.SUBMITTED,
        answers=[1, None],
        started_at=datetime(2025, 3, 1, 9, 0, tzinfo=UTC),
        submitted_at=datetime(2025, 3, 1, 9, 5, tzinfo=UTC),
        time_spent_seconds=300,
        score=5,
        total_possible_points=10,
        percentage_score=50,
        grade="F",
        passed=False,
        question_results=[{"question_id": "q1", "is_correct": True}],
    )


class TestConditionalWrites:
    @pytest.mark.asyncio
    async def test_reserve_slot_uses_lwt(self, repository, session) -> None:
        enrollment_id, attempt_id = uuid4(), uuid4()

        assert await repository.reserve_slot(enrollment_id, 2, attempt_id) is True
        assert "IF NOT EXISTS" in executed_cql(session)
        assert session.aexecute.await_args.args[1] == [enrollment_id, 2, attempt_id]

    @pytest.mark.asyncio
    async def test_reserve_slot_lost(self, repository, session) -> None:
        session.aexecute.return_value = Mock(was_applied=False)
        assert await repository.reserve_slot(uuid4(), 1, uuid4()) is False

    @pytest.mark.asyncio
    async def test_complete_is_status_and_answers_compare_and_set(
        self, repository, session
    ) -> None:
        attempt = submitted_attempt()

        assert await repository.complete(attempt) is True

        cql = executed_cql(session)
        assert "IF status = 'in_progress' AND answers = ?" in cql
        assert "SET status = ?, submitted_at" in cql
        params = session.aexecute.await_args.args[1]
        assert params[0] == "submitted"
        assert orjson.loads(params[9]) == attempt.question_results
        assert params[10] == attempt.id
        assert params[-1] == "[1,null]"

    @pytest.mark.asyncio
    async def test_complete_lost_race(self, repository, session) -> None:
        session.aexecute.return_value = Mock(was_applied=False)
        assert await repository.complete(submitted_attempt()) is False

    @pytest.mark.asyncio
    async def test_save_answers_only_while_in_progress(
        self, repository, session
    ) -> None:
        session.aexecute.return_value = Mock(was_applied=False)
        attempt_id = uuid4()

        assert await repository.save_answers(attempt_id, [0, None, 2]) is False
        assert "IF status = 'in_progress'" in executed_cql(session)
        assert session.aexecute.await_args.args[1] == ["[0,null,2]", attempt_id]

    @pytest.mark.asyncio
    async def test_set_certificate_requires_submitted(
        self, repository, session
    ) -> None:
        await repository.set_certificate(uuid4(), "CERT-ABC")
        assert "IF status = 'submitted'" in executed_cql(session)


class TestReads:
    @pytest.mark.asyncio
    async def test_get_decodes_json_columns(self, repository, session) -> None:
        attempt = submitted_attempt()
        row = Mock(
            **{
                **attempt.to_dict(),
                "answers": orjson.dumps(attempt.answers).decode(),
                "question_results": orjson.dumps(attempt.question_results).decode(),
            }
        )
        session.aexecute.return_value = Mock(one=Mock(return_value=row))

        loaded = await repository.get(attempt.id)

        assert loaded.id == attempt.id
        assert loaded.status == AttemptStatus.SUBMITTED
        assert loaded.answers == [1, None]
        assert loaded.question_results == attempt.question_results
        assert loaded.percentage_score == 50

    @pytest.mark.asyncio
    async def test_get_missing(self, repository, session) -> None:
        session.aexecute.return_value = Mock(one=Mock(return_value=None))
        assert await repository.get(uuid4()) is None

    @pytest.mark.asyncio
    async def test_driver_errors_become_persistence_errors(
        self, repository, session
    ) -> None:
        session.aexecute.side_effect = NoHostAvailable("down", {})
        with pytest.raises(PersistenceError):
            await repository.get(uuid4())
