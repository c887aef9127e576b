from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, MetaData, String, Table, Text
from sqlalchemy import func

# Disposal tables defined with SQLAlchemy Core (no ORM classes)
metadata = MetaData()

disposal_requests = Table(
    "asset_disposal_requests",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("asset_code", String(64), nullable=True),
    Column("asset_tag", String(64), nullable=False),
    Column("reason", Text, nullable=False),
    Column("status", String(16), nullable=False, server_default="pending"),
    Column("requester_name", String(120), nullable=False),
    Column("reviewer_name", String(120), nullable=True),
    Column("reviewed_at", DateTime(timezone=True), nullable=True),
    Column("review_notes", Text, nullable=True),
    Column("asset_snapshot", JSON, nullable=True),
    Column("tickets_snapshot", JSON, nullable=True),
    Column("changes_snapshot", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

# Identifiers of every certificate handed out; the PDF itself is not stored
disposal_certificates = Table(
    "disposal_certificates",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("request_id", Integer, ForeignKey("asset_disposal_requests.id"), nullable=True),
    Column("folio", String(32), nullable=False, unique=True),
    Column("verification_code", String(64), nullable=False, unique=True),
    Column("asset_tag", String(64), nullable=False),
    Column("filename", String(255), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)


def create_tables(engine):
    """Create the disposal tables in the target database."""
    metadata.create_all(engine)


__all__ = ["disposal_requests", "disposal_certificates", "metadata", "create_tables"]
