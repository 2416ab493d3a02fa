import re
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

import app.ingestion_service as ingestion_service
from app.ingestion_service import upload_file_name
from crud.penalty_crud import get_penalty_by_ticket_no, mark_penalty_paid
from model.penalty_model import Penalty, PenaltyStatusEnum
from utils.errors import BlobNotFoundError, SpreadsheetDecodeError, StorageUnavailableError

from conftest import BULK_HEADER, SEARCH_HEADER, XLSX_MIME, make_workbook, truncate_first_sheet

BULK_ROWS = [
    BULK_HEADER,
    ("A11623936", "PG23WCR", "Audi", 60, datetime(2025, 8, 21, 3, 5, 9), "Waitrose Dorking", "No Valid Parking Payment Found", "ANPR"),
    ("B22734847", "AB12XYZ", "BMW", None, "01/09/2025 14:30", "High Street Car Park", None, "ANPR"),
    ("C33845958", "CD34EFG", "Ford", "£75.00", "05/09/2025 10:15", "Town Centre Multi-storey", None, "PATROL"),
]


def test_search_from_file(service, blob_store):
    blob_store.files["CPO Test Data.xlsx"] = make_workbook([
        SEARCH_HEADER,
        ("A11623936", "PG23WCR", "21/08/2025 03:05:09", "Waitrose Dorking", "£60.00"),
        ("B22734847", "AB12XYZ", 45123, "High Street", 90),
    ])

    results = service.search_from_file("CPO Test Data.xlsx", vrm="pg23wcr")

    assert len(results) == 1
    assert results[0].id == "A11623936"
    assert results[0].contravention_date_time == "21/08/2025 03:05:09"
    assert results[0].penalty_amount == "60.00"

    assert service.search_from_file("CPO Test Data.xlsx", vrm="PG23") == []


def test_search_propagates_fatal_errors(service, blob_store):
    with pytest.raises(BlobNotFoundError):
        service.search_from_file("missing.xlsx")

    blob_store.files["broken.xlsx"] = b"this is not a workbook"
    with pytest.raises(SpreadsheetDecodeError):
        service.search_from_file("broken.xlsx")

    blob_store.available = False
    with pytest.raises(StorageUnavailableError):
        service.search_from_file("broken.xlsx")


def test_bulk_ingest_reports_bad_rows_and_continues(db, service, blob_store):
    blob_store.files["penalties.xlsx"] = make_workbook(BULK_ROWS)

    result = service.bulk_ingest(db, "penalties.xlsx")

    assert result.processed == 2
    assert result.errors == ["Row 3: Missing required fields (Ticket No, VRM, or Penalty Amount)"]

    saved = get_penalty_by_ticket_no(db, "C33845958")
    assert saved.penalty_amount == Decimal("75.00")
    assert saved.date_issued == datetime(2025, 9, 5, 10, 15)
    assert saved.contravention_date_time == "05/09/2025 10:15:00"
    assert saved.status == PenaltyStatusEnum.active
    assert get_penalty_by_ticket_no(db, "B22734847") is None


def test_reingest_updates_instead_of_duplicating(db, service, blob_store):
    blob_store.files["first.xlsx"] = make_workbook(BULK_ROWS)
    service.bulk_ingest(db, "first.xlsx")
    original = get_penalty_by_ticket_no(db, "A11623936")
    mark_penalty_paid(db, original.id)

    blob_store.files["second.xlsx"] = make_workbook([
        BULK_HEADER,
        ("A11623936", "PG23WCR", "Audi", 80, "21/08/2025", "Waitrose Dorking", None, "ANPR"),
    ])
    result = service.bulk_ingest(db, "second.xlsx")

    assert result.processed == 1
    assert result.errors == []
    assert db.query(Penalty).filter(Penalty.ticket_no == "A11623936").count() == 1

    db.expire_all()
    updated = get_penalty_by_ticket_no(db, "A11623936")
    assert updated.id == original.id
    assert updated.penalty_amount == Decimal("80.00")
    assert updated.status == PenaltyStatusEnum.paid


def test_last_row_for_a_ticket_wins(db, service, blob_store):
    blob_store.files["dupes.xlsx"] = make_workbook([
        BULK_HEADER,
        ("A11623936", "PG23WCR", None, 60, None, "First", None, None),
        ("A11623936", "PG23WCR", None, 65, None, "Second", None, None),
    ])

    result = service.bulk_ingest(db, "dupes.xlsx")

    assert result.processed == 2
    assert db.query(Penalty).count() == 1
    assert get_penalty_by_ticket_no(db, "A11623936").site == "Second"


def test_record_store_failure_is_a_row_error(db, service, blob_store, monkeypatch):
    real_upsert = ingestion_service.upsert_penalty

    def flaky_upsert(session, penalty):
        if penalty.ticket_no == "A11623936":
            raise SQLAlchemyError("database is locked")
        return real_upsert(session, penalty)

    monkeypatch.setattr(ingestion_service, "upsert_penalty", flaky_upsert)
    blob_store.files["penalties.xlsx"] = make_workbook(BULK_ROWS)

    result = service.bulk_ingest(db, "penalties.xlsx")

    assert result.processed == 1
    assert result.errors[0] == "Row 2: database is locked"
    assert get_penalty_by_ticket_no(db, "C33845958") is not None


def test_upload_and_ingest(db, service, blob_store):
    result = service.upload_and_ingest(db, make_workbook(BULK_ROWS), XLSX_MIME)

    assert re.fullmatch(r"penalties-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z\.xlsx", result.file_name)
    assert result.file_name in blob_store.files
    assert result.file_url.endswith(result.file_name)
    assert result.processed == 2
    assert len(result.errors) == 1


def test_upload_file_name():
    assert upload_file_name(datetime(2025, 8, 21, 3, 5, 9, 123456)) == "penalties-2025-08-21T03-05-09-123Z.xlsx"


def test_process_all_files(db, service, blob_store):
    blob_store.files = {
        "a.xlsx": make_workbook(BULK_ROWS),
        "notes.txt": b"ignore me",
        "broken.XLSX": b"junk",
    }

    result = service.process_all_files(db)

    assert result.files_processed == ["a.xlsx"]
    assert [r.file for r in result.results] == ["a.xlsx", "broken.XLSX"]
    assert result.results[0].processed == 2
    assert result.results[1].processed == 0
    assert result.results[1].errors[0].startswith("Cannot read workbook")


def test_corrupt_worksheet_does_not_stop_other_files(db, service, blob_store):
    blob_store.files = {
        "bad.xlsx": truncate_first_sheet(make_workbook(BULK_ROWS * 20)),
        "good.xlsx": make_workbook(BULK_ROWS),
    }

    result = service.process_all_files(db)

    assert result.files_processed == ["good.xlsx"]
    assert result.results[0].file == "bad.xlsx"
    assert result.results[0].processed == 0
    assert len(result.results[0].errors) == 1
    assert get_penalty_by_ticket_no(db, "A11623936") is not None


def test_legacy_xls_files_are_not_picked_up(db, service, blob_store):
    blob_store.files = {"old.xls": b"\xd0\xcf\x11\xe0", "a.xlsx": make_workbook(BULK_ROWS)}

    result = service.process_all_files(db)

    assert [r.file for r in result.results] == ["a.xlsx"]
