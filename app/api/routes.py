import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import CERTIFICATE_OUTPUT_DIR
from app.core.database import SessionLocal
from app.schemas.disposal import (
    CertificateRecordResponse,
    DisposalData,
    DisposalRequestCreate,
    DisposalRequestResponse,
    DisposalReview,
)
from app.services import disposal_requests as repo
from app.services.certificates import GeneratedCertificate, generate_disposal_certificate, save_certificate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["disposals"])


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _pdf_response(certificate: GeneratedCertificate) -> Response:
    return Response(
        content=certificate.pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{certificate.filename}"',
            "X-Folio": certificate.folio,
            "X-Verification-Code": certificate.verification_code,
        },
    )


def _load_request(db: Session, request_id: int) -> dict:
    try:
        return repo.get_disposal_request(db, request_id)
    except repo.DisposalRequestNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/disposals/certificate")
async def build_certificate(data: DisposalData):
    """Generate a certificate straight from caller-supplied data."""
    certificate = generate_disposal_certificate(data, output_dir=CERTIFICATE_OUTPUT_DIR)
    return _pdf_response(certificate)


@router.post("/disposals", status_code=status.HTTP_201_CREATED, response_model=DisposalRequestResponse)
async def create_request(request: DisposalRequestCreate, db: Session = Depends(get_db)):
    request_id = repo.create_disposal_request(db, request)
    logger.info("Disposal request %s created for %s", request_id, request.asset_tag)
    return repo.get_disposal_request(db, request_id)


@router.get("/disposals", response_model=list[DisposalRequestResponse])
async def list_requests(status_filter: str = Query(None, alias="status"), db: Session = Depends(get_db)):
    if status_filter and status_filter not in repo.STATUSES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown status: {status_filter}",
        )
    return repo.list_disposal_requests(db, status_filter)


@router.get("/disposals/{request_id}", response_model=DisposalRequestResponse)
async def read_request(request_id: int, db: Session = Depends(get_db)):
    return _load_request(db, request_id)


@router.post("/disposals/{request_id}/review", response_model=DisposalRequestResponse)
async def review_request(request_id: int, review: DisposalReview, db: Session = Depends(get_db)):
    _load_request(db, request_id)
    try:
        return repo.review_disposal_request(
            db, request_id, review.status, review.reviewer_name, review.review_notes
        )
    except repo.DisposalAlreadyReviewed as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/disposals/{request_id}/certificate")
async def request_certificate(request_id: int, db: Session = Depends(get_db)):
    record = _load_request(db, request_id)
    data = repo.disposal_data_from_record(record)
    certificate = generate_disposal_certificate(data)
    try:
        repo.record_certificate(db, certificate, data.asset_tag, request_id=request_id)
    except IntegrityError as e:
        db.rollback()
        logger.error("Could not record certificate %s: %s", certificate.folio, e)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Certificate {certificate.folio} was already issued, retry",
        )
    # Only recorded certificates reach the archive folder
    certificate = save_certificate(certificate, CERTIFICATE_OUTPUT_DIR)
    return _pdf_response(certificate)


@router.get("/certificates/{folio}", response_model=CertificateRecordResponse)
async def read_certificate(folio: str, db: Session = Depends(get_db)):
    record = repo.find_certificate(db, folio)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Certificate {folio} not found")
    return record
