# runtime settings, read once from the environment
import os
from decimal import Decimal


def _env_or(key: str, default: str) -> str:
    val = os.getenv(key)
    if val is None or not val.strip():
        return default
    return val.strip()


def _env_flag(key: str, default: bool) -> bool:
    return _env_or(key, "1" if default else "0").lower() in ("1", "true", "yes", "on")


DATA_DIR = _env_or("FESTKASSA_DATA_DIR", "data")
DB_PATH = _env_or("FESTKASSA_DB", os.path.join(DATA_DIR, "festkassa.sqlite"))

EVENT_ID = _env_or("FESTKASSA_EVENT_ID", "00000000-0000-0000-0000-000000000001")
RECEIPT_PREFIX = _env_or("FESTKASSA_RECEIPT_PREFIX", "FK")
TAX_RATE = Decimal(_env_or("FESTKASSA_TAX_RATE", "0.20"))

# when off, sales may be finalized without a logged-in cashier
REQUIRE_LOGIN = _env_flag("FESTKASSA_REQUIRE_LOGIN", True)

DEVICE_ID = os.getenv("FESTKASSA_DEVICE_ID")
DEVICE_FILE = _env_or("FESTKASSA_DEVICE_FILE", os.path.join(DATA_DIR, "device-id"))

TOKEN_LENGTH = int(_env_or("FESTKASSA_TOKEN_LENGTH", "40"))
SEQUENCER_ATTEMPTS = int(_env_or("FESTKASSA_SEQUENCER_ATTEMPTS", "3"))
REPORT_TOP_N = int(_env_or("FESTKASSA_REPORT_TOP_N", "20"))
PUBLIC_BASE_URL = _env_or("FESTKASSA_PUBLIC_BASE_URL", "")

LOG_FILE = os.getenv("FESTKASSA_LOG_FILE")
