"""Course content models (read-only to the workflow core).

Cassandra table definitions for:
- Courses, modules and lessons
- Junction tables: course_modules, module_lessons (ordered by position)
- Quiz definitions and the current quiz pointer of each course

Outlines and quizzes are immutable value objects; the workflow only
references them.
"""

from dataclasses import dataclass
from typing import Any
from uuid import UUID


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    status TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

MODULE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    created_at TIMESTAMP
)
"""

LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    title TEXT,
    content_type TEXT,
    duration_seconds INT,
    created_at TIMESTAMP
)
"""

# Junction Tables (ordered)
COURSE_MODULES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_modules (
    course_id UUID,
    position INT,
    module_id UUID,
    PRIMARY KEY (course_id, position, module_id)
) WITH CLUSTERING ORDER BY (position ASC, module_id ASC)
"""

MODULE_LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.module_lessons (
    module_id UUID,
    position INT,
    lesson_id UUID,
    PRIMARY KEY (module_id, position, lesson_id)
) WITH CLUSTERING ORDER BY (position ASC, lesson_id ASC)
"""

# Published quiz definitions are immutable; a new publish writes a new row
# and moves the course pointer. Questions are stored as one JSON document.
QUIZ_DEFINITIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_definitions (
    id UUID PRIMARY KEY,
    course_id UUID,
    title TEXT,
    description TEXT,
    questions TEXT,
    time_limit_minutes INT,
    passing_score_percent INT,
    max_attempts INT,
    published_at TIMESTAMP,
    published_by UUID
)
"""

# Current quiz of each course
COURSE_QUIZZES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_quizzes (
    course_id UUID PRIMARY KEY,
    quiz_id UUID
)
"""

CONTENT_TABLES_CQL = [
    COURSE_TABLE_CQL,
    MODULE_TABLE_CQL,
    LESSON_TABLE_CQL,
    COURSE_MODULES_TABLE_CQL,
    MODULE_LESSONS_TABLE_CQL,
    QUIZ_DEFINITIONS_TABLE_CQL,
    COURSE_QUIZZES_TABLE_CQL,
]


# ==============================================================================
# Course outline
# ==============================================================================


@dataclass(frozen=True)
class LessonRef:
    """A lesson as seen by the workflow: identity and duration."""

    id: UUID
    title: str = ""
    duration_seconds: int = 0


@dataclass(frozen=True)
class ModuleOutline:
    id: UUID
    title: str = ""
    lessons: tuple[LessonRef, ...] = ()


@dataclass(frozen=True)
class CourseOutline:
    """Ordered modules and lessons of a course."""

    id: UUID
    title: str = ""
    modules: tuple[ModuleOutline, ...] = ()

    @property
    def lesson_ids(self) -> list[UUID]:
        """Lesson ids in course order, without duplicates."""
        seen: dict[UUID, None] = {}
        for module in self.modules:
            for lesson in module.lessons:
                seen.setdefault(lesson.id, None)
        return list(seen)

    @property
    def total_lessons(self) -> int:
        return len(self.lesson_ids)

    @property
    def total_duration_seconds(self) -> int:
        return sum(
            lesson.duration_seconds for m in self.modules for lesson in m.lessons
        )

    def has_lesson(self, lesson_id: UUID) -> bool:
        return any(
            lesson.id == lesson_id for m in self.modules for lesson in m.lessons
        )


# ==============================================================================
# Quiz definition
# ==============================================================================


@dataclass(frozen=True)
class QuizQuestion:
    """Multiple-choice question. ``correct_option`` indexes ``options``."""

    id: UUID
    text: str
    options: tuple[str, ...]
    correct_option: int
    points: int
    explanation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "text": self.text,
            "options": list(self.options),
            "correct_option": self.correct_option,
            "points": self.points,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizQuestion":
        return cls(
            id=UUID(data["id"]),
            text=data["text"],
            options=tuple(data["options"]),
            correct_option=int(data["correct_option"]),
            points=int(data["points"]),
            explanation=data.get("explanation"),
        )


@dataclass(frozen=True)
class QuizDefinition:
    """Published assessment of a course. Never mutated after publish."""

    id: UUID
    course_id: UUID
    title: str
    questions: tuple[QuizQuestion, ...]
    time_limit_minutes: int
    passing_score_percent: int
    max_attempts: int
    description: str | None = None

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    @property
    def time_limit_seconds(self) -> int:
        return self.time_limit_minutes * 60

    def __repr__(self) -> str:
        return (
            f"<QuizDefinition course={self.course_id} "
            f"questions={len(self.questions)} points={self.total_points}>"
        )
