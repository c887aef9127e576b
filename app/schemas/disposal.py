from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TicketEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Helpdesk numbers are either plain integers or prefixed ids such as "INC-12"
    number: str
    title: str
    status: str
    date: str

    @field_validator("number", mode="before")
    @classmethod
    def _number_as_text(cls, value):
        return str(value) if isinstance(value, int) else value


class ChangeEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    field: str
    from_value: str | None = Field(default=None, alias="from")
    to_value: str | None = Field(default=None, alias="to")
    date: str
    by: str | None = None


class DisposalData(BaseModel):
    """Everything printed on a disposal certificate.

    ``asset_tag`` and ``reason`` must be non-empty; the generator does not
    check them. Any other missing value is printed as a placeholder.
    """

    model_config = ConfigDict(frozen=True)

    asset_code: str | None = None
    asset_tag: str
    asset_type: str | None = None
    brand: str | None = None
    model: str | None = None
    serial_number: str | None = None
    location: str | None = None
    department: str | None = None
    assigned_user: str | None = None
    status: str | None = None
    purchase_date: str | None = None
    warranty_date: str | None = None

    reason: str

    requester_name: str | None = None
    request_date: str | None = None
    approver_name: str | None = None
    approval_date: str | None = None
    approval_notes: str | None = None

    tickets: tuple[TicketEntry, ...] = ()
    changes: tuple[ChangeEntry, ...] = ()


class DisposalRequestCreate(BaseModel):
    asset_code: str | None = None
    asset_tag: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)
    requester_name: str = Field(..., min_length=1)
    asset_snapshot: dict = Field(default_factory=dict)
    tickets_snapshot: list[dict] = Field(default_factory=list)
    changes_snapshot: list[dict] = Field(default_factory=list)


class DisposalReview(BaseModel):
    status: str = Field(..., pattern="^(approved|rejected)$")
    reviewer_name: str = Field(..., min_length=1)
    review_notes: str | None = None


class DisposalRequestResponse(BaseModel):
    id: int
    asset_code: str | None
    asset_tag: str
    reason: str
    status: str
    requester_name: str
    reviewer_name: str | None
    reviewed_at: datetime | None
    review_notes: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class CertificateRecordResponse(BaseModel):
    id: int
    request_id: int | None
    folio: str
    verification_code: str
    asset_tag: str
    filename: str
    created_at: datetime | None

    model_config = {"from_attributes": True}
