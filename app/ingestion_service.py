# app/ingestion_service.py
import datetime
from typing import List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.blob_store import AzureBlobStore
from app.row_matcher import SEARCH_LAYOUT, BULK_LAYOUT, iter_bulk_rows, match_rows
from crud.penalty_crud import upsert_penalty
from schemas.penalty_schema import (
    FileIngestionResult,
    IngestionResult,
    PenaltySearchResult,
    ProcessFilesResult,
    UploadResult,
)
from utils.errors import PenaltyNotFoundError, PenaltyServiceError
from utils.spreadsheet import first_sheet_rows

# Office Open XML only; legacy .xls files are left in the container untouched
EXCEL_EXTENSIONS = (".xlsx",)

logger = structlog.get_logger(__name__)


def upload_file_name(now: Optional[datetime.datetime] = None) -> str:
    """penalties-2025-08-21T03-05-09-123Z.xlsx"""
    now = now or datetime.datetime.utcnow()
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
    return f"penalties-{stamp}.xlsx"


class PenaltyIngestionService:
    def __init__(self, blob_store: AzureBlobStore):
        self.blob_store = blob_store

    def _read_rows(self, file_name: str):
        # fetch and decode errors are fatal for the whole call
        data = self.blob_store.fetch_bytes(file_name)
        return first_sheet_rows(data)

    def search_from_file(
        self,
        file_name: str,
        ticket_no: Optional[str] = None,
        vrm: Optional[str] = None,
    ) -> List[PenaltySearchResult]:
        rows = self._read_rows(file_name)
        results = match_rows(rows, SEARCH_LAYOUT, ticket_no=ticket_no, vrm=vrm)
        logger.info(
            "penalty_file_searched",
            file_name=file_name,
            ticket_no=ticket_no,
            vrm=vrm,
            rows=max(len(rows) - 1, 0),
            matches=len(results),
        )
        return results

    def bulk_ingest(self, db: Session, file_name: str) -> IngestionResult:
        """
        Upsert every valid row of the bulk layout, in sheet order. Bad rows
        are reported as "Row <n>: ..." and never stop the batch.
        """
        rows = self._read_rows(file_name)
        result = IngestionResult()

        for row_num, item in iter_bulk_rows(rows, BULK_LAYOUT):
            if isinstance(item, str):
                result.errors.append(item)
                logger.warning("penalty_row_rejected", file_name=file_name, row=row_num, reason=item)
                continue
            try:
                _, created = upsert_penalty(db, item)
            except (SQLAlchemyError, PenaltyNotFoundError) as e:
                db.rollback()
                result.errors.append(f"Row {row_num}: {e}")
                logger.error("penalty_row_failed", file_name=file_name, row=row_num, error=str(e))
                continue
            result.processed += 1
            logger.debug(
                "penalty_row_saved",
                file_name=file_name,
                row=row_num,
                ticket_no=item.ticket_no,
                created=created,
            )

        logger.info(
            "penalty_file_ingested",
            file_name=file_name,
            processed=result.processed,
            errors=len(result.errors),
        )
        return result

    def upload_and_ingest(
        self,
        db: Session,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        file_name = upload_file_name()
        file_url = self.blob_store.upload_file(file_name, data, content_type)
        result = self.bulk_ingest(db, file_name)
        return UploadResult(
            message="File uploaded and processed successfully",
            file_url=file_url,
            file_name=file_name,
            processed=result.processed,
            errors=result.errors,
        )

    def process_all_files(self, db: Session) -> ProcessFilesResult:
        """Ingest every Excel file in the container; one broken file does not stop the rest."""
        excel_files = [f for f in self.blob_store.list_files() if f.lower().endswith(EXCEL_EXTENSIONS)]

        files_processed = []
        results = []
        for file_name in excel_files:
            try:
                result = self.bulk_ingest(db, file_name)
            except PenaltyServiceError as e:
                logger.error("penalty_file_failed", file_name=file_name, error=str(e))
                results.append(FileIngestionResult(file=file_name, processed=0, errors=[str(e)]))
                continue
            files_processed.append(file_name)
            results.append(
                FileIngestionResult(file=file_name, processed=result.processed, errors=result.errors)
            )

        return ProcessFilesResult(
            message="Files processed successfully",
            files_processed=files_processed,
            results=results,
        )

    def list_files(self) -> List[str]:
        return self.blob_store.list_files()
