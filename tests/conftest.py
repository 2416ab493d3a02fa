"""
Pytest fixtures: in-memory SQLite, an in-memory blob store and
openpyxl-built workbooks.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"

import zipfile
from io import BytesIO
from typing import Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook

from app.blob_store import get_blob_store
from app.ingestion_service import PenaltyIngestionService
from database import Base, SessionLocal, engine
from utils.errors import BlobNotFoundError, StorageUnavailableError

import model.penalty_model  # noqa: F401  registers the table

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SEARCH_HEADER = ["Ticket No", "VRM", "Contravention date & time", "Site", "Charge"]
BULK_HEADER = [
    "Ticket No", "VRM", "Vehicle Make", "Penalty Amount",
    "Date Issued", "Site", "Reason for Issue", "Badge ID",
]


def make_workbook(rows: Sequence[Sequence[object]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def truncate_first_sheet(data: bytes) -> bytes:
    """Copy a workbook with xl/worksheets/sheet1.xml cut in half."""
    source = zipfile.ZipFile(BytesIO(data))
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w") as target:
        for item in source.infolist():
            content = source.read(item.filename)
            if item.filename == "xl/worksheets/sheet1.xml":
                content = content[: len(content) // 2]
            target.writestr(item, content)
    return buffer.getvalue()


class InMemoryBlobStore:
    """Stands in for AzureBlobStore in tests."""

    def __init__(self, files: Optional[Dict[str, bytes]] = None, available: bool = True):
        self.files: Dict[str, bytes] = dict(files or {})
        self.available = available

    def is_available(self) -> bool:
        return self.available

    def _check(self):
        if not self.available:
            raise StorageUnavailableError("Azure Storage is not available.")

    def fetch_bytes(self, file_name: str) -> bytes:
        self._check()
        if file_name not in self.files:
            raise BlobNotFoundError(file_name)
        return self.files[file_name]

    def upload_file(self, file_name: str, data: bytes, content_type: Optional[str] = None) -> str:
        self._check()
        self.files[file_name] = data
        return f"https://example.blob.core.windows.net/cpo/{file_name}"

    def list_files(self) -> List[str]:
        self._check()
        return list(self.files)


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def service(blob_store):
    return PenaltyIngestionService(blob_store)


@pytest.fixture
def client(db, blob_store):
    from main import app

    app.dependency_overrides[get_blob_store] = lambda: blob_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
