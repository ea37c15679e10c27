"""
Pytest configuration and shared fixtures for the supplier resolution test suite.
"""
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)

TENANT_A = "11111111-1111-4111-8111-111111111111"
TENANT_B = "22222222-2222-4222-8222-222222222222"
USER_ID = "33333333-3333-4333-8333-333333333333"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="suppliers_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with an isolated database and no settings overlay."""
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
    monkeypatch.delenv("LOGO_DEV_TOKEN", raising=False)
    from config import Config

    config = Config()
    config.db_path = temp_dir / "data" / "suppliers.db"
    config.slug_backoff_min_ms = 0
    config.slug_backoff_max_ms = 0
    config.persist_review_candidates = True
    return config


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a test database instance."""
    from resolution.database import Database
    return Database(test_config.db_path)


@pytest.fixture
def tenant_id() -> str:
    return TENANT_A


@pytest.fixture
def other_tenant_id() -> str:
    return TENANT_B


@pytest.fixture
def make_request():
    """Build a camelCase ingestion request; keyword overrides go into ``data``."""
    counter = {"n": 0}

    def _make(name: str = "ACME Ltd", tenant: str = TENANT_A, source_id: str | None = None,
              source: str = "invoice", **data) -> dict:
        counter["n"] += 1
        payload = {"name": name}
        payload.update(data)
        return {
            "tenantId": tenant,
            "userId": USER_ID,
            "source": source,
            "sourceId": source_id or f"inv-{counter['n']:04d}",
            "data": payload,
        }

    return _make


@pytest.fixture
def sample_request(make_request) -> dict:
    """A well-formed request carrying every kind of attribute."""
    return make_request(
        "ACME Ltd",
        source_id="inv-0001",
        identifiers={"companyNumber": "12345678", "vatNumber": "GB123456789"},
        addresses=[{"line1": "1 High Street", "city": "London", "postalCode": "EC1A 1AA", "country": "gb"}],
        contacts=[
            {"type": "email", "value": "accounts@acme.co.uk", "isPrimary": True},
            {"type": "phone", "value": "+44 20 7946 0000"},
            {"type": "website", "value": "https://www.acme.co.uk"},
        ],
        bankAccounts=[{"iban": "GB29 NWBK 6016 1331 9268 19", "bankName": "NatWest"}],
    )


@pytest.fixture
def ingestion_service(test_db, test_config):
    """Ingestion service with no search backend and in-process logo fetches."""
    from resolution.ingestion import SupplierIngestionService
    return SupplierIngestionService(test_db, test_config, sleep=lambda s: None)


@pytest.fixture
def sample_invoice() -> dict:
    """A processed invoice with a vendor block, company profile and extracted fields."""
    return {
        "id": "inv-2024-001",
        "vendor_data": {
            "name": "Widget Supplies Ltd",
            "company_number": "87654321",
            "address": {"line1": "5 Mill Lane", "city": "Leeds", "postal_code": "LS1 4AP", "country": "GB"},
            "contacts": {"email": "billing@widgets.co.uk", "phone": "0113 496 0000"},
            "confidence": {"name": 95, "companyNumber": 88},
        },
        "company_profile": {
            "tax_identifiers": {"vat_number": "GB987654321"},
            "bank_accounts": [{"account_number": "31926819", "bank_name": "Lloyds", "swift_code": "LOYDGB2L"}],
        },
        "extracted_fields": {
            "bankAccount": {"value": "GB29 NWBK 6016 1331 9268 19", "confidence": 80},
        },
    }


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
