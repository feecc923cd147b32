"""Pytest configuration and fixtures."""

import os
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Generator

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="pdf-processor-tests-"))

# Must be set before the application modules read their settings
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'test.db'}"
os.environ["JWT_KEY"] = "test-signing-key-for-the-pdf-processor-suite"
os.environ["UPLOAD_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["HANDLE_RELEASE_DELAY_SECONDS"] = "0"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "Production"
os.environ["ADMIN_SETUP_SECRET_KEY"] = "test-setup-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import delete  # noqa: E402

from app.pdf_processor.database import SessionLocal, init_db, seed_roles  # noqa: E402
from app.pdf_processor.main import app  # noqa: E402
from app.pdf_processor.models import FinancialData  # noqa: E402
from app.pdf_processor.models_db import User, user_roles  # noqa: E402
from app.pdf_processor.security import create_access_token  # noqa: E402
from app.pdf_processor.services.pdf_processing_service import (  # noqa: E402
    PdfProcessingService,
    get_pdf_processing_service,
    get_registry,
)
from app.pdf_processor.services.registry import ProcessedFileRegistry  # noqa: E402

FAIL_MARKER = b"%%FAIL%%"


class FakeExtractor:
    """Extraction client returning a fixed record without network access."""

    def __init__(self):
        self.calls = 0

    async def get_financial_data(self, pdf_bytes: bytes) -> FinancialData:
        self.calls += 1
        if FAIL_MARKER in pdf_bytes:
            raise RuntimeError("Extraction failed for test document")
        return FinancialData(
            company_id=12345678,
            company_name="Test Company ApS",
            gross_profit=Decimal("2450000"),
            staff_costs=Decimal("-1300000"),
            total_assets=Decimal("5120000"),
        )


@pytest.fixture(scope="session", autouse=True)
def _database() -> None:
    """Create the schema and fixed roles once for the test session."""
    init_db()
    seed_roles()


@pytest.fixture(autouse=True)
def _clean_users() -> Generator[None, None, None]:
    """Remove accounts created by a test; roles are kept."""
    yield
    with SessionLocal() as db:
        db.execute(user_roles.delete())
        db.execute(delete(User))
        db.commit()


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def registry() -> ProcessedFileRegistry:
    return ProcessedFileRegistry()


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def processing_service(
    registry: ProcessedFileRegistry, fake_extractor: FakeExtractor, upload_dir: Path
) -> PdfProcessingService:
    return PdfProcessingService(
        registry=registry,
        extractor=fake_extractor,
        upload_dir=upload_dir,
        handle_release_delay=0,
    )


@pytest.fixture
def client(
    registry: ProcessedFileRegistry, processing_service: PdfProcessingService
) -> Generator[TestClient, None, None]:
    """Create a test client wired to a per-test registry and fake extractor."""
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_pdf_processing_service] = lambda: processing_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    registry.dispose()


def _auth_headers(roles: list[str]) -> dict[str, str]:
    token = create_access_token("test-user-id", "someone@example.com", roles)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Bearer token for a caller holding the Admin role."""
    return _auth_headers(["Admin"])


@pytest.fixture
def user_headers() -> dict[str, str]:
    """Bearer token for a caller holding only the User role."""
    return _auth_headers(["User"])


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """
    Create a minimal valid PDF for testing.

    This is a minimal PDF structure that should be recognized as a valid PDF.
    """
    return b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] >>
endobj
trailer
<< /Size 4 /Root 1 0 R >>
%%EOF"""


@pytest.fixture
def failing_pdf_bytes(sample_pdf_bytes: bytes) -> bytes:
    """A PDF the fake extractor refuses to process."""
    return sample_pdf_bytes + b"\n" + FAIL_MARKER
