"""Disposal certificate assembly: identifiers, QR codes, layout and output file."""
import logging
import os
import random
import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional

from app.core.config import CERTIFICATE_LOGO_PATH
from app.schemas.disposal import DisposalData
from app.services.disposal_pdf import DisposalCertificateLayout, LayoutReport, OptionalImage
from app.services.identifiers import generate_identifiers
from app.services.qr_generator import build_asset_qr_payload, build_document_qr_payload, encode_qr

logger = logging.getLogger(__name__)

QR_OPTIONS = {"size": 400, "margin": 1, "error_correction": "H"}

_FILENAME_UNSAFE = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class GeneratedCertificate:
    folio: str
    verification_code: str
    filename: str
    pdf: bytes
    report: LayoutReport
    path: Optional[str] = None

    @property
    def page_count(self) -> int:
        return self.report.page_count


def certificate_filename(folio: str, asset_tag: str) -> str:
    return f"{folio}-{_FILENAME_UNSAFE.sub('-', asset_tag)}.pdf"


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def load_logo(path: str = None) -> OptionalImage:
    path = CERTIFICATE_LOGO_PATH if path is None else path
    if not path:
        return OptionalImage()
    return OptionalImage.capture("logo", _read_file, path)


def save_certificate(certificate: GeneratedCertificate, output_dir: str) -> GeneratedCertificate:
    """Write the PDF into ``output_dir`` and return the certificate with its path."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, certificate.filename)
    with open(path, "wb") as f:
        f.write(certificate.pdf)
    return replace(certificate, path=path)


def generate_disposal_certificate(
    data: DisposalData,
    *,
    now: datetime = None,
    rng: random.Random = None,
    encoder: Callable[..., bytes] = encode_qr,
    logo: OptionalImage = None,
    output_dir: str = None,
) -> GeneratedCertificate:
    """Build the disposal certificate PDF for ``data``.

    ``data.asset_tag`` and ``data.reason`` must be non-empty. QR encoding and
    logo failures only leave their slot empty. When ``output_dir`` is given the
    PDF is also written there under its folio-based file name.
    """
    now = now or datetime.now()
    identifiers = generate_identifiers(data.asset_tag, data.serial_number or "", now=now, rng=rng)

    asset_qr = OptionalImage()
    if data.asset_code:
        asset_qr = OptionalImage.capture(
            "asset QR", encoder, build_asset_qr_payload(data.asset_code), **QR_OPTIONS
        )

    document_payload = build_document_qr_payload(
        identifiers.folio,
        data.asset_tag,
        data.request_date or "",
        identifiers.verification_code,
    )
    document_qr = OptionalImage.capture("document QR", encoder, document_payload, **QR_OPTIONS)

    layout = DisposalCertificateLayout(
        data,
        identifiers,
        generated_at=now,
        asset_qr=asset_qr,
        document_qr=document_qr,
        logo=logo if logo is not None else load_logo(),
    )
    pdf = layout.render()

    logger.info(
        "Issued disposal certificate %s for %s (%d pages)",
        identifiers.folio,
        data.asset_tag,
        layout.report.page_count,
    )
    certificate = GeneratedCertificate(
        folio=identifiers.folio,
        verification_code=identifiers.verification_code,
        filename=certificate_filename(identifiers.folio, data.asset_tag),
        pdf=pdf,
        report=layout.report,
    )
    if output_dir:
        certificate = save_certificate(certificate, output_dir)
    return certificate
