"""Certificate API endpoints.

Provides routes for:
- Listing the caller's certificates
- Public verification (no authentication)
- Download for the owner or an admin
- Share links
"""

from fastapi import APIRouter, Response

from certflow.auth.dependencies import CurrentActor
from certflow.core.errors import DomainError, handle_domain_error

from .dependencies import CertificateServiceDep
from .schemas import (
    CertificateListResponse,
    CertificateResponse,
    PublicCertificateDetails,
    ShareCertificateResponse,
    VerifyCertificateResponse,
)


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


@router.get(
    "/my",
    response_model=CertificateListResponse,
    summary="Get my certificates",
)
async def get_my_certificates(
    certificate_service: CertificateServiceDep,
    actor: CurrentActor,
) -> CertificateListResponse:
    try:
        certificates = await certificate_service.list_user_certificates(actor.user_id)
    except DomainError as e:
        raise handle_domain_error(e) from e
    items = [CertificateResponse.from_entity(c) for c in certificates]
    return CertificateListResponse(items=items, total=len(items))


@router.get(
    "/{certificate_id}",
    response_model=VerifyCertificateResponse,
    summary="Verify certificate",
)
async def verify_certificate(
    certificate_id: str,
    certificate_service: CertificateServiceDep,
) -> VerifyCertificateResponse:
    """Verify a certificate by its public id. No authentication required."""
    try:
        result = await certificate_service.verify_certificate(certificate_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return VerifyCertificateResponse(
        valid=result.valid,
        certificate_id=result.certificate.certificate_id,
        reason=result.reason,
        details=(
            PublicCertificateDetails.model_validate(result.certificate)
            if result.valid
            else None
        ),
    )


@router.get(
    "/{certificate_id}/download",
    summary="Download certificate",
    response_class=Response,
)
async def download_certificate(
    certificate_id: str,
    certificate_service: CertificateServiceDep,
    actor: CurrentActor,
) -> Response:
    """Download the certificate document (owner or admin only)."""
    try:
        document = await certificate_service.download_certificate(
            actor, certificate_id
        )
    except DomainError as e:
        raise handle_domain_error(e) from e

    return Response(
        content=document,
        media_type="text/html; charset=utf-8",
        headers={
            "Content-Disposition": (
                f'attachment; filename="{certificate_id.strip().upper()}.html"'
            )
        },
    )


@router.post(
    "/{certificate_id}/share",
    response_model=ShareCertificateResponse,
    summary="Share certificate",
)
async def share_certificate(
    certificate_id: str,
    certificate_service: CertificateServiceDep,
) -> ShareCertificateResponse:
    """Get the stable public verification link of a certificate."""
    try:
        link = await certificate_service.share_certificate(certificate_id)
    except DomainError as e:
        raise handle_domain_error(e) from e
    return ShareCertificateResponse(
        certificate_id=certificate_id.strip().upper(), shareable_link=link
    )
