"""Course Content Store.

Read-only source of course outlines and published quizzes for the
workflow core. The only write is ``save_quiz``, used by the admin publish
endpoint after validation.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import orjson

from certflow.core.database import translate_driver_errors

from .models import (
    CourseOutline,
    LessonRef,
    ModuleOutline,
    QuizDefinition,
    QuizQuestion,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session


class ContentStore(ABC):
    """Course/module/lesson tree and one current quiz per course."""

    @abstractmethod
    async def get_course_outline(self, course_id: UUID) -> CourseOutline | None:
        """Ordered modules and lessons, or None for an unknown course."""

    @abstractmethod
    async def get_quiz(self, course_id: UUID) -> QuizDefinition | None:
        """Current quiz of the course, if any."""

    @abstractmethod
    async def get_quiz_by_id(self, quiz_id: UUID) -> QuizDefinition | None:
        """A published quiz, current or superseded."""

    @abstractmethod
    async def save_quiz(
        self, quiz: QuizDefinition, published_by: UUID | None = None
    ) -> None:
        """Store a validated quiz and make it the course's current quiz."""


# ==============================================================================
# Cassandra implementation
# ==============================================================================


def _quiz_from_row(row: Any) -> QuizDefinition:
    return QuizDefinition(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        description=row.description,
        questions=tuple(QuizQuestion.from_dict(q) for q in orjson.loads(row.questions)),
        time_limit_minutes=row.time_limit_minutes,
        passing_score_percent=row.passing_score_percent,
        max_attempts=row.max_attempts,
    )


class CassandraContentStore(ContentStore):
    """Content store backed by the course tables."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        # Outline
        self._get_course = self.session.prepare(
            f"SELECT id, title FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._get_course_modules = self.session.prepare(
            f"SELECT module_id FROM {self.keyspace}.course_modules WHERE course_id = ?"
        )
        self._get_module = self.session.prepare(
            f"SELECT id, title FROM {self.keyspace}.modules WHERE id = ?"
        )
        self._get_module_lessons = self.session.prepare(
            f"SELECT lesson_id FROM {self.keyspace}.module_lessons WHERE module_id = ?"
        )
        self._get_lesson = self.session.prepare(
            f"SELECT id, title, duration_seconds FROM {self.keyspace}.lessons "
            "WHERE id = ?"
        )

        # Quizzes
        self._get_course_quiz = self.session.prepare(
            f"SELECT quiz_id FROM {self.keyspace}.course_quizzes WHERE course_id = ?"
        )
        self._get_quiz_definition = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.quiz_definitions WHERE id = ?"
        )
        self._insert_quiz_definition = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_definitions
            (id, course_id, title, description, questions, time_limit_minutes,
             passing_score_percent, max_attempts, published_at, published_by)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._upsert_course_quiz = self.session.prepare(
            f"INSERT INTO {self.keyspace}.course_quizzes (course_id, quiz_id) "
            "VALUES (?, ?)"
        )

    async def _load_module(self, module_id: UUID) -> ModuleOutline:
        module_row = (await self.session.aexecute(self._get_module, [module_id])).one()
        lesson_rows = await self.session.aexecute(self._get_module_lessons, [module_id])

        lessons = []
        for lesson_row in lesson_rows:
            row = (
                await self.session.aexecute(self._get_lesson, [lesson_row.lesson_id])
            ).one()
            lessons.append(
                LessonRef(
                    id=lesson_row.lesson_id,
                    title=(row.title or "") if row else "",
                    duration_seconds=(row.duration_seconds or 0) if row else 0,
                )
            )

        return ModuleOutline(
            id=module_id,
            title=(module_row.title or "") if module_row else "",
            lessons=tuple(lessons),
        )

    @translate_driver_errors
    async def get_course_outline(self, course_id: UUID) -> CourseOutline | None:
        course_row = (await self.session.aexecute(self._get_course, [course_id])).one()
        if course_row is None:
            return None

        module_rows = await self.session.aexecute(self._get_course_modules, [course_id])
        modules = [await self._load_module(row.module_id) for row in module_rows]

        return CourseOutline(
            id=course_id, title=course_row.title or "", modules=tuple(modules)
        )

    @translate_driver_errors
    async def get_quiz(self, course_id: UUID) -> QuizDefinition | None:
        result = await self.session.aexecute(self._get_course_quiz, [course_id])
        pointer = result.one()
        if pointer is None or pointer.quiz_id is None:
            return None
        return await self.get_quiz_by_id(pointer.quiz_id)

    @translate_driver_errors
    async def get_quiz_by_id(self, quiz_id: UUID) -> QuizDefinition | None:
        row = (await self.session.aexecute(self._get_quiz_definition, [quiz_id])).one()
        return _quiz_from_row(row) if row else None

    @translate_driver_errors
    async def save_quiz(
        self, quiz: QuizDefinition, published_by: UUID | None = None
    ) -> None:
        await self.session.aexecute(
            self._insert_quiz_definition,
            [
                quiz.id,
                quiz.course_id,
                quiz.title,
                quiz.description,
                orjson.dumps([q.to_dict() for q in quiz.questions]).decode(),
                quiz.time_limit_minutes,
                quiz.passing_score_percent,
                quiz.max_attempts,
                datetime.now(UTC),
                published_by,
            ],
        )
        await self.session.aexecute(self._upsert_course_quiz, [quiz.course_id, quiz.id])


# ==============================================================================
# In-memory implementation
# ==============================================================================


class InMemoryContentStore(ContentStore):
    """Process-local content store for tests and local runs."""

    def __init__(self) -> None:
        self._courses: dict[UUID, CourseOutline] = {}
        self._quizzes: dict[UUID, QuizDefinition] = {}
        self._current_quiz: dict[UUID, UUID] = {}

    def add_course(self, outline: CourseOutline) -> None:
        self._courses[outline.id] = outline

    async def get_course_outline(self, course_id: UUID) -> CourseOutline | None:
        return self._courses.get(course_id)

    async def get_quiz(self, course_id: UUID) -> QuizDefinition | None:
        quiz_id = self._current_quiz.get(course_id)
        return self._quizzes.get(quiz_id) if quiz_id else None

    async def get_quiz_by_id(self, quiz_id: UUID) -> QuizDefinition | None:
        return self._quizzes.get(quiz_id)

    async def save_quiz(
        self, quiz: QuizDefinition, published_by: UUID | None = None
    ) -> None:
        self._quizzes[quiz.id] = quiz
        self._current_quiz[quiz.course_id] = quiz.id

    def add_quiz(self, quiz: QuizDefinition) -> None:
        self._quizzes[quiz.id] = quiz
        self._current_quiz[quiz.course_id] = quiz.id
