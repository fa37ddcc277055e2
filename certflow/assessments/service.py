"""Assessment Session Manager.

Business logic for:
- Starting (or resuming) a timed attempt behind the lesson gate
- Recording answers while the attempt is in progress
- Submitting, manually or on expiry, exactly once per attempt
- Handing passing attempts to the certificate issuer
"""

from dataclasses import dataclass
from uuid import UUID

import structlog

from certflow.certificates.models import Certificate
from certflow.certificates.service import CertificateService
from certflow.config.settings import Settings, get_settings
from certflow.core.context import Actor
from certflow.core.errors import (
    AlreadySubmittedError,
    AttemptLimitExceededError,
    NotEligibleError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from certflow.courses.models import QuizDefinition
from certflow.courses.store import ContentStore
from certflow.enrollments.models import Enrollment
from certflow.enrollments.service import EnrollmentNotFoundError, EnrollmentService
from certflow.grading import grade
from certflow.progress.service import ProgressService
from certflow.utils.time import Clock, utc_now

from .models import AssessmentAttempt, AttemptStatus
from .repository import AttemptRepository
from .timer import TimerRegistry


logger = structlog.get_logger(__name__)

# Attempts to take a slot when concurrent starts collide
START_RETRIES = 3

# Grading passes before a submit racing answer saves gives up
SUBMIT_RETRIES = 5


class AttemptNotFoundError(NotFoundError):
    default_message = "Assessment attempt not found"


class QuizNotFoundError(NotFoundError):
    default_message = "Course has no published assessment"


@dataclass(frozen=True)
class AttemptSession:
    """A started or resumed attempt as handed to the learner."""

    attempt: AssessmentAttempt
    quiz: QuizDefinition
    time_remaining_seconds: int
    attempts_remaining: int
    resumed: bool = False


@dataclass(frozen=True)
class SubmissionResult:
    attempt: AssessmentAttempt
    certificate: Certificate | None
    attempts_remaining: int


@dataclass(frozen=True)
class AttemptHistory:
    attempts: list[AssessmentAttempt]
    max_attempts: int | None
    attempts_remaining: int
    certificate_id: str | None


class AssessmentService:
    """Service for timed assessment attempts."""

    def __init__(
        self,
        repository: AttemptRepository,
        enrollment_service: EnrollmentService,
        progress_service: ProgressService,
        content_store: ContentStore,
        certificate_service: CertificateService,
        timers: TimerRegistry | None = None,
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ):
        self.repository = repository
        self.enrollment_service = enrollment_service
        self.progress_service = progress_service
        self.content_store = content_store
        self.certificate_service = certificate_service
        self.timers = timers or TimerRegistry()
        self.settings = settings or get_settings()
        self.clock = clock

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def _owned_attempt(
        self, actor: Actor, attempt_id: UUID
    ) -> tuple[AssessmentAttempt, Enrollment]:
        attempt = await self.repository.get(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(attempt_id=str(attempt_id))
        try:
            enrollment = await self.enrollment_service.get_enrollment(
                actor, attempt.enrollment_id
            )
        except EnrollmentNotFoundError as e:
            raise AttemptNotFoundError(attempt_id=str(attempt_id)) from e
        return attempt, enrollment

    async def _quiz_for_attempt(self, attempt: AssessmentAttempt) -> QuizDefinition:
        quiz = await self.content_store.get_quiz_by_id(attempt.quiz_id)
        if quiz is None:
            raise QuizNotFoundError(quiz_id=str(attempt.quiz_id))
        return quiz

    @staticmethod
    def _remaining(max_attempts: int, used: int) -> int:
        return max(0, max_attempts - used)

    # ==========================================================================
    # Start
    # ==========================================================================

    async def start_assessment(
        self, actor: Actor, enrollment_id: UUID
    ) -> AttemptSession:
        """Start an attempt, or resume the one in progress.

        Raises:
            EnrollmentNotFoundError: If the enrollment is unknown or not the actor's
            NotEligibleError: If some lessons are not completed
            QuizNotFoundError: If the course has no published assessment
            AttemptLimitExceededError: If every attempt has been used
        """
        enrollment = await self.enrollment_service.get_enrollment(actor, enrollment_id)

        progress = await self.progress_service.progress_for(enrollment)
        if not progress.all_completed:
            raise NotEligibleError(
                lessons_completed=progress.completed_count,
                total_lessons=progress.total_lessons,
            )

        quiz = await self.content_store.get_quiz(enrollment.course_id)
        if quiz is None:
            raise QuizNotFoundError(course_id=str(enrollment.course_id))

        for _ in range(START_RETRIES):
            attempts = await self.repository.list_by_enrollment(enrollment.id)
            now = self.clock()

            for existing in attempts:
                if not existing.is_in_progress:
                    continue
                if not existing.is_expired(now):
                    return await self._resume(existing, len(attempts))
                await self.auto_submit(existing.id)

            used = len(attempts)
            if used >= quiz.max_attempts:
                raise AttemptLimitExceededError(
                    max_attempts=quiz.max_attempts, attempts_used=used
                )

            attempt = AssessmentAttempt(
                enrollment_id=enrollment.id,
                quiz_id=quiz.id,
                attempt_number=used + 1,
                time_limit_seconds=quiz.time_limit_seconds,
                question_count=len(quiz.questions),
                started_at=now,
            )
            await self.repository.create(attempt)
            if await self.repository.reserve_slot(
                enrollment.id, attempt.attempt_number, attempt.id
            ):
                break

            # A concurrent start took the slot; retry against the new state
            await self.repository.delete(attempt.id)
            logger.info(
                "assessment_slot_contended",
                enrollment_id=str(enrollment.id),
                attempt_number=attempt.attempt_number,
            )
        else:
            raise PersistenceError(
                "Could not reserve an assessment attempt",
                enrollment_id=str(enrollment.id),
            )

        self._arm_timer(attempt)
        logger.info(
            "assessment_started",
            attempt_id=str(attempt.id),
            enrollment_id=str(enrollment.id),
            quiz_id=str(quiz.id),
            attempt_number=attempt.attempt_number,
            time_limit_seconds=attempt.time_limit_seconds,
        )
        return AttemptSession(
            attempt=attempt,
            quiz=quiz,
            time_remaining_seconds=attempt.time_limit_seconds,
            attempts_remaining=self._remaining(
                quiz.max_attempts, attempt.attempt_number
            ),
        )

    async def _resume(self, attempt: AssessmentAttempt, used: int) -> AttemptSession:
        quiz = await self._quiz_for_attempt(attempt)
        remaining = attempt.time_remaining_seconds(self.clock())
        if attempt.id not in self.timers:
            self._arm_timer(attempt)
        logger.info(
            "assessment_resumed",
            attempt_id=str(attempt.id),
            time_remaining_seconds=remaining,
        )
        return AttemptSession(
            attempt=attempt,
            quiz=quiz,
            time_remaining_seconds=remaining,
            attempts_remaining=self._remaining(quiz.max_attempts, used),
            resumed=True,
        )

    def _arm_timer(self, attempt: AssessmentAttempt) -> None:
        if not self.settings.assessment_server_auto_submit:
            return
        delay = attempt.time_remaining_seconds(self.clock())
        self.timers.arm(attempt.id, delay, self.auto_submit)

    # ==========================================================================
    # Answers
    # ==========================================================================

    async def record_answer(
        self,
        actor: Actor,
        attempt_id: UUID,
        question_index: int,
        option: int | None,
    ) -> AssessmentAttempt:
        """Record or overwrite the answer to one question.

        ``option=None`` clears the answer.

        Raises:
            AttemptNotFoundError: If the attempt is unknown or not the actor's
            AlreadySubmittedError: If the attempt is no longer in progress
            ValidationError: If the question index or option is out of range
        """
        attempt, _ = await self._owned_attempt(actor, attempt_id)
        if not attempt.is_in_progress:
            raise AlreadySubmittedError(attempt_id=str(attempt_id))

        if attempt.is_expired(self.clock()):
            await self.auto_submit(attempt.id)
            raise AlreadySubmittedError(
                "Assessment time limit has elapsed", attempt_id=str(attempt_id)
            )

        quiz = await self._quiz_for_attempt(attempt)
        if not 0 <= question_index < len(quiz.questions):
            raise ValidationError(
                "Invalid answer",
                [f"Question index must be between 0 and {len(quiz.questions) - 1}"],
            )
        options = quiz.questions[question_index].options
        if option is not None and not 0 <= option < len(options):
            raise ValidationError(
                "Invalid answer",
                [f"Option must be between 0 and {len(options) - 1}"],
            )

        answers = list(attempt.answers)
        if len(answers) < len(quiz.questions):
            answers.extend([None] * (len(quiz.questions) - len(answers)))
        answers[question_index] = option

        if not await self.repository.save_answers(attempt.id, answers):
            raise AlreadySubmittedError(attempt_id=str(attempt_id))

        attempt.answers = answers
        logger.debug(
            "assessment_answer_recorded",
            attempt_id=str(attempt.id),
            question_index=question_index,
            cleared=option is None,
        )
        return attempt

    # ==========================================================================
    # Submit
    # ==========================================================================

    async def submit_assessment(
        self,
        actor: Actor,
        attempt_id: UUID,
        time_spent_seconds: int,
        auto_submitted: bool = False,
    ) -> SubmissionResult:
        """Submit an attempt, grade it and issue a certificate on pass.

        The reported time is clamped to ``[0, time limit]``.

        Raises:
            AttemptNotFoundError: If the attempt is unknown or not the actor's
            AlreadySubmittedError: If the attempt was already submitted
            InvalidAssessmentError: If the quiz awards no points
        """
        attempt, enrollment = await self._owned_attempt(actor, attempt_id)
        return await self._finalize(
            attempt, enrollment, time_spent_seconds, auto_submitted
        )

    async def auto_submit(self, attempt_id: UUID) -> SubmissionResult | None:
        """Submit an attempt with its recorded answers when time runs out.

        Losing the race against a manual submit is not an error.
        """
        attempt = await self.repository.get(attempt_id)
        if attempt is None or not attempt.is_in_progress:
            return None
        enrollment = await self.enrollment_service.find_enrollment(
            attempt.enrollment_id
        )
        if enrollment is None:
            logger.warning("assessment_auto_submit_orphan", attempt_id=str(attempt_id))
            return None

        try:
            return await self._finalize(
                attempt, enrollment, attempt.time_limit_seconds, auto_submitted=True
            )
        except AlreadySubmittedError:
            logger.info(
                "assessment_auto_submit_skipped",
                attempt_id=str(attempt_id),
                reason="already_submitted",
            )
            return None

    def _graded(
        self,
        attempt: AssessmentAttempt,
        quiz: QuizDefinition,
        time_spent_seconds: int,
        auto_submitted: bool,
    ) -> AssessmentAttempt:
        result = grade(quiz, attempt.answers[: len(quiz.questions)])

        graded = attempt.copy()
        graded.status = AttemptStatus.SUBMITTED
        graded.submitted_at = self.clock()
        graded.time_spent_seconds = max(
            0, min(int(time_spent_seconds), attempt.time_limit_seconds)
        )
        graded.auto_submitted = auto_submitted
        graded.score = result.score
        graded.total_possible_points = result.total_possible_points
        graded.percentage_score = result.percentage_score
        graded.grade = result.grade
        graded.passed = result.passed
        graded.question_results = [
            {
                "question_id": r.question_id,
                "selected_option": r.selected_option,
                "correct_option": r.correct_option,
                "is_correct": r.is_correct,
                "points_awarded": r.points_awarded,
                "points_possible": r.points_possible,
                "explanation": r.explanation,
            }
            for r in result.question_results
        ]
        return graded

    async def _finalize(
        self,
        attempt: AssessmentAttempt,
        enrollment: Enrollment,
        time_spent_seconds: int,
        auto_submitted: bool,
    ) -> SubmissionResult:
        if not attempt.is_in_progress:
            raise AlreadySubmittedError(attempt_id=str(attempt.id))

        quiz = await self._quiz_for_attempt(attempt)

        # Answers saved while grading void the write; grade the fresh copy
        for _ in range(SUBMIT_RETRIES):
            graded = self._graded(attempt, quiz, time_spent_seconds, auto_submitted)
            if await self.repository.complete(graded):
                break
            current = await self.repository.get(attempt.id)
            if current is None or not current.is_in_progress:
                raise AlreadySubmittedError(attempt_id=str(attempt.id))
            logger.debug("assessment_submit_regrade", attempt_id=str(attempt.id))
            attempt = current
        else:
            raise PersistenceError(
                "Answers kept changing during submit", attempt_id=str(attempt.id)
            )

        self.timers.cancel(attempt.id)
        logger.info(
            "assessment_submitted",
            attempt_id=str(graded.id),
            enrollment_id=str(enrollment.id),
            score=graded.score,
            total=graded.total_possible_points,
            percentage=graded.percentage_score,
            grade=graded.grade,
            passed=graded.passed,
            auto_submitted=auto_submitted,
            time_spent_seconds=graded.time_spent_seconds,
        )

        certificate = None
        if graded.passed:
            try:
                certificate = await self._certify(graded, enrollment)
            except PersistenceError:
                # Repaired on the next get_attempt or list_attempts
                logger.warning(
                    "certificate_issue_deferred", attempt_id=str(graded.id)
                )

        used = len(await self.repository.list_by_enrollment(enrollment.id))
        return SubmissionResult(
            attempt=graded,
            certificate=certificate,
            attempts_remaining=self._remaining(quiz.max_attempts, used),
        )

    async def _certify(
        self, attempt: AssessmentAttempt, enrollment: Enrollment
    ) -> Certificate:
        certificate = await self.certificate_service.issue_certificate(
            attempt, enrollment
        )
        if attempt.certificate_id != certificate.certificate_id:
            await self.repository.set_certificate(
                attempt.id, certificate.certificate_id
            )
            attempt.certificate_id = certificate.certificate_id
        return certificate

    async def _repair_certificate(
        self, attempt: AssessmentAttempt, enrollment: Enrollment
    ) -> None:
        if attempt.is_submitted and attempt.passed and not attempt.certificate_id:
            await self._certify(attempt, enrollment)

    # ==========================================================================
    # History
    # ==========================================================================

    async def get_attempt(self, actor: Actor, attempt_id: UUID) -> AssessmentAttempt:
        """Get an attempt of the actor (admins see all).

        A passed attempt whose certificate was not recorded (issuer failure
        after submit) gets it issued here.
        """
        attempt, enrollment = await self._owned_attempt(actor, attempt_id)
        await self._repair_certificate(attempt, enrollment)
        return attempt

    async def list_attempts(self, actor: Actor, enrollment_id: UUID) -> AttemptHistory:
        """Attempt history of an enrollment with attempts remaining.

        Passed attempts missing their certificate are repaired as in
        ``get_attempt``.
        """
        enrollment = await self.enrollment_service.get_enrollment(actor, enrollment_id)
        attempts = await self.repository.list_by_enrollment(enrollment.id)
        for attempt in attempts:
            await self._repair_certificate(attempt, enrollment)
        quiz = await self.content_store.get_quiz(enrollment.course_id)
        max_attempts = quiz.max_attempts if quiz else None
        certificate = await self.certificate_service.get_for_enrollment(enrollment.id)
        return AttemptHistory(
            attempts=attempts,
            max_attempts=max_attempts,
            attempts_remaining=(
                self._remaining(max_attempts, len(attempts)) if max_attempts else 0
            ),
            certificate_id=certificate.certificate_id if certificate else None,
        )
