import argparse
import json

from app.core.config import CERTIFICATE_OUTPUT_DIR
from app.core.logging_setup import configure_logging
from app.schemas.disposal import DisposalData
from app.services.certificates import generate_disposal_certificate


def generate_from_file(data_path: str, output_folder: str = CERTIFICATE_OUTPUT_DIR) -> str:
    with open(data_path, "r", encoding="utf-8") as f:
        data = DisposalData.model_validate(json.load(f))

    certificate = generate_disposal_certificate(data, output_dir=output_folder)
    print(f"✓ Generated disposal certificate for '{data.asset_tag}'")
    print(f"  → Folio: {certificate.folio}")
    print(f"  → Verification code: {certificate.verification_code}")
    print(f"  → Pages: {certificate.page_count}")
    print(f"  → Saved PDF to: {certificate.path}")
    if not certificate.report.document_qr_drawn:
        print("  ⚠ Document QR could not be drawn")
    return certificate.path


def main():
    parser = argparse.ArgumentParser(description="Generate an asset disposal certificate PDF")
    parser.add_argument("data", help="JSON file with the disposal data")
    parser.add_argument("--output", default=CERTIFICATE_OUTPUT_DIR, help="Folder for the PDF")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    configure_logging(args.log_level)
    try:
        generate_from_file(args.data, args.output)
    except Exception as e:
        print(f"✗ Error: {e}")
        raise


if __name__ == '__main__':
    main()
