"""Stored disposal requests and the certificates issued for them."""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from app.models.disposal_records import disposal_certificates, disposal_requests
from app.schemas.disposal import ChangeEntry, DisposalData, DisposalRequestCreate, TicketEntry
from app.services.certificates import GeneratedCertificate

STATUSES = ("pending", "approved", "rejected")

FIELD_LABELS = {
    "asset_tag": "Etiqueta",
    "asset_type": "Tipo",
    "brand": "Marca",
    "model": "Modelo",
    "serial_number": "Número de Serie",
    "status": "Estado",
    "location": "Sede",
    "location_name": "Sede",
    "department": "Departamento",
    "assigned_to": "Usuario Asignado",
    "assigned_user_name": "Usuario Asignado",
    "responsible_user": "Responsable",
    "purchase_date": "Fecha de Compra",
    "warranty_end_date": "Vencimiento Garantía",
    "notes": "Notas",
    "processor": "Procesador",
    "ram_gb": "RAM (GB)",
    "storage_gb": "Almacenamiento (GB)",
    "os": "Sistema Operativo",
    "ip_address": "IP",
    "mac_address": "MAC",
}


class DisposalRequestNotFound(LookupError):
    pass


class DisposalAlreadyReviewed(ValueError):
    pass


def format_date(value) -> Optional[str]:
    """Render a stored date as dd/mm/yyyy; unparseable values pass through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    text = str(value)
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).strftime("%d/%m/%Y")
    except ValueError:
        return text


def _first(mapping: dict, *keys):
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_text(value):
    if value is None:
        return None
    if isinstance(value, bool):
        return "Sí" if value else "No"
    if isinstance(value, dict) and "name" in value:
        return str(value["name"])
    return str(value)


def create_disposal_request(db: Session, request: DisposalRequestCreate) -> int:
    result = db.execute(
        insert(disposal_requests).values(
            asset_code=request.asset_code,
            asset_tag=request.asset_tag,
            reason=request.reason,
            status="pending",
            requester_name=request.requester_name,
            asset_snapshot=request.asset_snapshot,
            tickets_snapshot=request.tickets_snapshot,
            changes_snapshot=request.changes_snapshot,
        )
    )
    db.commit()
    return result.inserted_primary_key[0]


def get_disposal_request(db: Session, request_id: int) -> dict:
    row = db.execute(select(disposal_requests).where(disposal_requests.c.id == request_id)).first()
    if row is None:
        raise DisposalRequestNotFound(f"Disposal request {request_id} not found")
    return dict(row._mapping)


def list_disposal_requests(db: Session, status: str = None) -> list[dict]:
    stmt = select(disposal_requests).order_by(
        disposal_requests.c.created_at.desc(), disposal_requests.c.id.desc()
    )
    if status:
        stmt = stmt.where(disposal_requests.c.status == status)
    return [dict(row._mapping) for row in db.execute(stmt).all()]


def review_disposal_request(
    db: Session,
    request_id: int,
    status: str,
    reviewer_name: str,
    review_notes: str = None,
) -> dict:
    record = get_disposal_request(db, request_id)
    if record["status"] != "pending":
        raise DisposalAlreadyReviewed(f"Disposal request {request_id} is already {record['status']}")
    db.execute(
        update(disposal_requests)
        .where(disposal_requests.c.id == request_id)
        .values(
            status=status,
            reviewer_name=reviewer_name,
            review_notes=review_notes,
            reviewed_at=datetime.now(timezone.utc),
        )
    )
    db.commit()
    return get_disposal_request(db, request_id)


def disposal_data_from_record(record: dict) -> DisposalData:
    """Turn a stored request and its snapshots into certificate input."""
    asset = record.get("asset_snapshot") or {}
    tickets = [
        TicketEntry(
            number=_as_text(_first(t, "number", "ticket_number")) or "",
            title=_as_text(_first(t, "title")) or "",
            status=_as_text(_first(t, "status")) or "",
            date=format_date(_first(t, "date", "created_at")) or "",
        )
        for t in record.get("tickets_snapshot") or []
    ]
    changes = []
    for ch in record.get("changes_snapshot") or []:
        field_name = _as_text(_first(ch, "field", "field_name")) or ""
        changes.append(
            ChangeEntry(
                field=FIELD_LABELS.get(field_name, field_name),
                from_value=_as_text(_first(ch, "from", "old_value")),
                to_value=_as_text(_first(ch, "to", "new_value")),
                date=format_date(_first(ch, "date", "changed_at")) or "",
                by=_as_text(_first(ch, "by", "changed_by_name")),
            )
        )

    return DisposalData(
        asset_code=record.get("asset_code"),
        asset_tag=record["asset_tag"],
        asset_type=_as_text(_first(asset, "asset_type")),
        brand=_as_text(_first(asset, "brand")),
        model=_as_text(_first(asset, "model")),
        serial_number=_as_text(_first(asset, "serial_number")),
        location=_as_text(_first(asset, "location_name", "location")),
        department=_as_text(_first(asset, "department")),
        assigned_user=_as_text(_first(asset, "assigned_user_name", "assigned_to")),
        status=_as_text(_first(asset, "status")),
        purchase_date=format_date(_first(asset, "purchase_date")),
        warranty_date=format_date(_first(asset, "warranty_end_date", "warranty_date")),
        reason=record["reason"],
        requester_name=record.get("requester_name"),
        request_date=format_date(record.get("created_at")),
        approver_name=record.get("reviewer_name"),
        approval_date=format_date(record.get("reviewed_at")),
        approval_notes=record.get("review_notes"),
        tickets=tickets,
        changes=changes,
    )


def record_certificate(db: Session, certificate: GeneratedCertificate, asset_tag: str, request_id: int = None) -> int:
    result = db.execute(
        insert(disposal_certificates).values(
            request_id=request_id,
            folio=certificate.folio,
            verification_code=certificate.verification_code,
            asset_tag=asset_tag,
            filename=certificate.filename,
        )
    )
    db.commit()
    return result.inserted_primary_key[0]


def find_certificate(db: Session, folio: str) -> Optional[dict]:
    row = db.execute(select(disposal_certificates).where(disposal_certificates.c.folio == folio)).first()
    return dict(row._mapping) if row is not None else None
