"""Service wiring.

Builds the workflow services on top of either the Cassandra repositories
or the in-memory ones (``STORAGE_BACKEND=memory``). The application
lifespan and the test suite both go through ``build_services``.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from certflow.assessments.repository import (
    AttemptRepository,
    CassandraAttemptRepository,
    InMemoryAttemptRepository,
)
from certflow.assessments.service import AssessmentService
from certflow.assessments.timer import TimerRegistry
from certflow.certificates.repository import (
    CassandraCertificateRepository,
    CertificateRepository,
    InMemoryCertificateRepository,
)
from certflow.certificates.service import CertificateService
from certflow.config.settings import Settings, get_settings
from certflow.courses.service import ContentService
from certflow.courses.store import (
    CassandraContentStore,
    ContentStore,
    InMemoryContentStore,
)
from certflow.enrollments.repository import (
    CassandraEnrollmentRepository,
    EnrollmentRepository,
    InMemoryEnrollmentRepository,
)
from certflow.enrollments.service import EnrollmentService
from certflow.notifications import (
    LoggingPublisher,
    NotificationDispatcher,
    NotificationPublisher,
    RedisPublisher,
)
from certflow.progress.repository import (
    CassandraProgressRepository,
    InMemoryProgressRepository,
    ProgressRepository,
)
from certflow.progress.service import ProgressService
from certflow.utils.time import Clock, utc_now


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


@dataclass
class Repositories:
    content: ContentStore
    enrollments: EnrollmentRepository
    progress: ProgressRepository
    attempts: AttemptRepository
    certificates: CertificateRepository


@dataclass
class Services:
    """Everything the routers need, attached to ``app.state``."""

    repositories: Repositories
    dispatcher: NotificationDispatcher
    timers: TimerRegistry
    content_service: ContentService
    enrollment_service: EnrollmentService
    progress_service: ProgressService
    certificate_service: CertificateService
    assessment_service: AssessmentService

    def attach(self, state: Any) -> None:
        state.dispatcher = self.dispatcher
        state.timers = self.timers
        state.content_service = self.content_service
        state.enrollment_service = self.enrollment_service
        state.progress_service = self.progress_service
        state.certificate_service = self.certificate_service
        state.assessment_service = self.assessment_service

    async def shutdown(self) -> None:
        """Stop pending timers and flush queued notifications."""
        self.timers.cancel_all()
        await self.timers.drain()
        await self.dispatcher.drain()


def cassandra_repositories(session: "Session", keyspace: str) -> Repositories:
    return Repositories(
        content=CassandraContentStore(session, keyspace),
        enrollments=CassandraEnrollmentRepository(session, keyspace),
        progress=CassandraProgressRepository(session, keyspace),
        attempts=CassandraAttemptRepository(session, keyspace),
        certificates=CassandraCertificateRepository(session, keyspace),
    )


def in_memory_repositories() -> Repositories:
    return Repositories(
        content=InMemoryContentStore(),
        enrollments=InMemoryEnrollmentRepository(),
        progress=InMemoryProgressRepository(),
        attempts=InMemoryAttemptRepository(),
        certificates=InMemoryCertificateRepository(),
    )


def default_publisher(
    redis: "Redis | None", settings: Settings
) -> NotificationPublisher:
    """Redis pub/sub when connected, log-only otherwise."""
    if redis is None:
        return LoggingPublisher()
    return RedisPublisher(redis, channel_prefix=settings.notification_channel_prefix)


def build_services(
    repositories: Repositories,
    publisher: NotificationPublisher | None = None,
    settings: Settings | None = None,
    clock: Clock = utc_now,
) -> Services:
    """Wire the workflow services around a set of repositories."""
    settings = settings or get_settings()
    dispatcher = NotificationDispatcher(
        publisher or LoggingPublisher(),
        timeout_seconds=settings.notification_timeout_seconds,
    )
    timers = TimerRegistry()

    content_service = ContentService(repositories.content, settings)
    enrollment_service = EnrollmentService(
        repositories.enrollments, repositories.content, dispatcher, clock=clock
    )
    progress_service = ProgressService(
        repositories.progress, enrollment_service, repositories.content, clock=clock
    )
    certificate_service = CertificateService(
        repositories.certificates,
        repositories.enrollments,
        repositories.content,
        dispatcher,
        settings=settings,
        clock=clock,
    )
    assessment_service = AssessmentService(
        repositories.attempts,
        enrollment_service,
        progress_service,
        repositories.content,
        certificate_service,
        timers=timers,
        settings=settings,
        clock=clock,
    )

    return Services(
        repositories=repositories,
        dispatcher=dispatcher,
        timers=timers,
        content_service=content_service,
        enrollment_service=enrollment_service,
        progress_service=progress_service,
        certificate_service=certificate_service,
        assessment_service=assessment_service,
    )
