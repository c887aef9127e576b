"""QR payload construction and PNG encoding for disposal certificates."""
import io
import json
from urllib.parse import quote

import qrcode

from app.core.config import ASSET_QR_BASE_URL

DOCUMENT_TYPE = "disposal"

ERROR_CORRECTION_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


def build_asset_qr_payload(asset_code: str, base_url: str = None) -> str:
    """Build the lookup reference encoded in the asset QR.

    With a configured base URL the payload is ``<base>/assets/<code>``;
    otherwise it is the URN ``urn:ziii:asset:<code>`` so the code still resolves
    once a scanner knows the naming scheme.
    """
    base_url = ASSET_QR_BASE_URL if base_url is None else base_url
    if base_url:
        return f"{base_url.rstrip('/')}/assets/{quote(asset_code, safe='')}"
    return f"urn:ziii:asset:{asset_code}"


def build_document_qr_payload(folio: str, asset_tag: str, request_date: str, verification_code: str) -> str:
    return json.dumps(
        {
            "type": DOCUMENT_TYPE,
            "folio": folio,
            "assetTag": asset_tag,
            "date": request_date,
            "code": verification_code,
        },
        ensure_ascii=False,
    )


def parse_document_qr_payload(text: str) -> dict:
    """Decode a scanned document QR back into its fields.

    Raises ValueError when the text is not a disposal document payload.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"QR payload is not JSON: {e}") from e
    if not isinstance(payload, dict) or payload.get("type") != DOCUMENT_TYPE:
        raise ValueError("QR payload is not a disposal document")
    missing = [key for key in ("folio", "assetTag", "date", "code") if key not in payload]
    if missing:
        raise ValueError(f"QR payload missing fields: {', '.join(missing)}")
    return payload


def encode_qr(content: str, size: int = 400, margin: int = 1, error_correction: str = "H") -> bytes:
    """Encode ``content`` as a PNG roughly ``size`` pixels wide."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECTION_LEVELS[error_correction],
        box_size=10,
        border=margin,
    )
    qr.add_data(content)
    qr.make(fit=True)

    # Scale modules so the whole symbol, quiet zone included, fits in size
    modules = qr.modules_count + 2 * margin
    qr.box_size = max(1, size // modules)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)
    return buffer.getvalue()
