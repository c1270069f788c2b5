"""Environment-driven settings for the OpenMRS appointment adapter."""
import os

from dotenv import load_dotenv

load_dotenv()

OPENMRS_API_URL = os.getenv("OPENMRS_API_URL", "http://localhost:8080/openmrs/ws/rest/v1").rstrip("/")
OPENMRS_SESSION_ID = os.getenv("OPENMRS_SESSION_ID")
OPENMRS_USERNAME = os.getenv("OPENMRS_USERNAME")
OPENMRS_PASSWORD = os.getenv("OPENMRS_PASSWORD")

ADAPTER_API_KEY = os.getenv("ADAPTER_API_KEY", "")

HTTP_TIMEOUT = float(os.getenv("OPENMRS_HTTP_TIMEOUT", "15"))

# Fixed UTC offset (minutes) for wall-clock times; unset means the host's zone.
_tz_offset = os.getenv("OPENMRS_TZ_OFFSET_MINUTES")
TZ_OFFSET_MINUTES: int | None = int(_tz_offset) if _tz_offset not in (None, "") else None


def offline_mode() -> bool:
    return os.getenv("OFFLINE_MODE", "0") == "1"
