"""Environment-driven settings for the disposal certificate service."""
import os

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./helpdesk_assets.db")

CERTIFICATE_OUTPUT_DIR = os.environ.get("CERTIFICATE_OUTPUT_DIR", "./data/certificates")

# Empty means the asset QR carries a URN instead of a lookup URL
ASSET_QR_BASE_URL = os.environ.get("ASSET_QR_BASE_URL", "")

CERTIFICATE_LOGO_PATH = os.environ.get("CERTIFICATE_LOGO_PATH", "")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
