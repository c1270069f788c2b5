import json
import pathlib

import pytest

from openmrs_appointments import catalog, client, config

FIX = pathlib.Path(__file__).parent / "fixtures"
BASE = "http://openmrs.test"
API = "/ws/rest/v1"


def load_fixture(name):
    return json.loads((FIX / name).read_text())


@pytest.fixture(autouse=True)
def openmrs_env(monkeypatch):
    """Point the client at a fake server with a fixed session and UTC+03:00 clock."""
    monkeypatch.setattr(config, "OPENMRS_API_URL", f"{BASE}{API}")
    monkeypatch.setattr(config, "OPENMRS_SESSION_ID", "test-session")
    monkeypatch.setattr(config, "OPENMRS_USERNAME", None)
    monkeypatch.setattr(config, "OPENMRS_PASSWORD", None)
    monkeypatch.setattr(config, "TZ_OFFSET_MINUTES", 180)
    monkeypatch.setattr(config, "ADAPTER_API_KEY", "test-key")
    monkeypatch.delenv("OFFLINE_MODE", raising=False)
    catalog.clear_catalog_cache()
    client.invalidate_session()
    yield
    catalog.clear_catalog_cache()
    client.invalidate_session()
