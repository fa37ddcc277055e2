"""Pydantic schemas for certificates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .models import Certificate


class CertificateResponse(BaseModel):
    """Certificate as seen by its owner."""

    model_config = ConfigDict(from_attributes=True)

    certificate_id: str
    user_id: UUID
    course_id: UUID
    course_title: str
    enrollment_id: UUID
    attempt_id: UUID
    score: int
    total_possible_points: int
    percentage_score: int
    grade: str
    completion_date: datetime
    issued_at: datetime

    @classmethod
    def from_entity(cls, entity: Certificate) -> "CertificateResponse":
        return cls.model_validate(entity)


class CertificateListResponse(BaseModel):
    items: list[CertificateResponse]
    total: int


class PublicCertificateDetails(BaseModel):
    """Frozen fields shown by public verification."""

    model_config = ConfigDict(from_attributes=True)

    certificate_id: str
    course_id: UUID
    course_title: str
    score: int
    total_possible_points: int
    percentage_score: int
    grade: str
    completion_date: datetime
    issued_at: datetime


class VerifyCertificateResponse(BaseModel):
    """Verification result. Details are omitted for revoked certificates."""

    valid: bool
    certificate_id: str
    reason: str | None = None
    details: PublicCertificateDetails | None = None


class ShareCertificateResponse(BaseModel):
    certificate_id: str
    shareable_link: str
