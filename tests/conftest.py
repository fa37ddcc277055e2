"""Shared fixtures.

The suite runs against the in-memory repositories; environment variables
are set before ``certflow`` is imported so the cached settings pick them up.
"""

import os
import tempfile


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="certflow-logs-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "json")

from collections.abc import Iterator  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from certflow.auth.permissions import UserRole  # noqa: E402
from certflow.auth.security import create_access_token  # noqa: E402
from certflow.config import Settings, get_settings  # noqa: E402
from certflow.core.container import (  # noqa: E402
    Services,
    build_services,
    in_memory_repositories,
)
from certflow.core.context import Actor  # noqa: E402
from certflow.core.errors import NotificationFailure  # noqa: E402
from certflow.courses.models import (  # noqa: E402
    CourseOutline,
    LessonRef,
    ModuleOutline,
    QuizDefinition,
    QuizQuestion,
)
from certflow.main import create_app  # noqa: E402
from certflow.notifications import (  # noqa: E402
    NotificationEvent,
    NotificationPublisher,
)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingPublisher(NotificationPublisher):
    """Keeps published events; can be told to fail."""

    def __init__(self, fail: bool = False):
        self.events: list[NotificationEvent] = []
        self.fail = fail

    async def publish(self, event: NotificationEvent) -> None:
        if self.fail:
            raise NotificationFailure("broker down", event_type=event.type.value)
        self.events.append(event)


def make_course(lessons: int = 2, modules: int = 1, title: str = "Python 101"):
    """Course outline with ``lessons`` lessons spread over ``modules`` modules."""
    lesson_refs = [
        LessonRef(id=uuid4(), title=f"Lesson {i + 1}", duration_seconds=300)
        for i in range(lessons)
    ]
    per_module = max(1, -(-lessons // modules)) if lessons else 0
    module_outlines = []
    for m in range(modules):
        chunk = lesson_refs[m * per_module : (m + 1) * per_module] if lessons else []
        module_outlines.append(
            ModuleOutline(id=uuid4(), title=f"Module {m + 1}", lessons=tuple(chunk))
        )
    return CourseOutline(id=uuid4(), title=title, modules=tuple(module_outlines))


def make_quiz(
    course_id: UUID,
    questions: int = 2,
    points: int = 5,
    passing_score_percent: int = 80,
    max_attempts: int = 3,
    time_limit_minutes: int = 10,
) -> QuizDefinition:
    """Quiz whose correct option is always index 1."""
    return QuizDefinition(
        id=uuid4(),
        course_id=course_id,
        title="Final assessment",
        questions=tuple(
            QuizQuestion(
                id=uuid4(),
                text=f"Question {i + 1}?",
                options=("a", "b", "c"),
                correct_option=1,
                points=points,
                explanation=f"Because of {i + 1}",
            )
            for i in range(questions)
        ),
        time_limit_minutes=time_limit_minutes,
        passing_score_percent=passing_score_percent,
        max_attempts=max_attempts,
    )


@pytest.fixture
def settings() -> Settings:
    """Settings with the server-side auto-submit timer disabled."""
    return get_settings().model_copy(update={"assessment_server_auto_submit": False})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def services(settings, clock, publisher) -> Services:
    return build_services(in_memory_repositories(), publisher, settings, clock)


@pytest.fixture
def add_course(services: Services):
    """Register a course outline in the content store."""

    def _add(lessons: int = 2, modules: int = 1) -> CourseOutline:
        outline = make_course(lessons=lessons, modules=modules)
        services.repositories.content.add_course(outline)
        return outline

    return _add


@pytest.fixture
def add_quiz(services: Services):
    """Publish a quiz for a course, bypassing payload validation."""

    def _add(course_id: UUID, **kwargs) -> QuizDefinition:
        definition = make_quiz(course_id, **kwargs)
        services.repositories.content.add_quiz(definition)
        return definition

    return _add


@pytest.fixture
def course(add_course) -> CourseOutline:
    return add_course(lessons=2)


@pytest.fixture
def quiz(add_quiz, course: CourseOutline) -> QuizDefinition:
    return add_quiz(course.id)


@pytest.fixture
def student() -> Actor:
    return Actor(user_id=uuid4(), role=UserRole.STUDENT)


@pytest.fixture
def other_student() -> Actor:
    return Actor(user_id=uuid4(), role=UserRole.STUDENT)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=uuid4(), role=UserRole.ADMIN)


@pytest.fixture
def headers_for():
    """Authorization headers carrying a token for an actor."""

    def _headers(actor: Actor) -> dict[str, str]:
        token = create_access_token(
            {"sub": str(actor.user_id), "role": actor.role.value}
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(services: Services) -> Iterator[TestClient]:
    app = create_app(services_factory=lambda: services)
    with TestClient(app) as test_client:
        yield test_client
