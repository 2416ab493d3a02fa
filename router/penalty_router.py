# router/penalty_router.py

import os
from typing import List, Optional

import structlog
from dotenv import load_dotenv
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from app.blob_store import AzureBlobStore, get_blob_store
from app.ingestion_service import PenaltyIngestionService
from crud.penalty_crud import (
    get_all_penalties,
    get_penalty,
    mark_penalty_paid,
    search_penalties,
    update_penalty,
)
from database import get_db
from schemas.penalty_schema import (
    FileListOut,
    PenaltyOut,
    PenaltySearchResult,
    PenaltyUpdate,
    ProcessFilesResult,
    UploadResult,
)
from utils.errors import (
    BlobNotFoundError,
    PenaltyNotFoundError,
    SpreadsheetDecodeError,
    StorageUnavailableError,
)

load_dotenv()
PENALTY_SOURCE_FILE = os.getenv("PENALTY_SOURCE_FILE", "CPO Test Data.xlsx")

EXCEL_UPLOAD_MAX_BYTES = 50 * 1024 * 1024
EXCEL_MIME_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_ingestion_service(blob_store: AzureBlobStore = Depends(get_blob_store)) -> PenaltyIngestionService:
    return PenaltyIngestionService(blob_store)


def _unavailable(action: str) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail=f"Azure Storage service unavailable: the {action} service is currently unavailable. "
               "Please try again later or contact support.",
    )


def _require_storage(service: PenaltyIngestionService, action: str) -> None:
    if not service.blob_store.is_available():
        raise _unavailable(action)


@router.get("/search", response_model=List[PenaltySearchResult])
def search_penalty_file(
    ticket_no: Optional[str] = None,
    vrm: Optional[str] = None,
    service: PenaltyIngestionService = Depends(get_ingestion_service),
):
    if not ticket_no and not vrm:
        raise HTTPException(status_code=400, detail="Either ticket_no or vrm is required")
    _require_storage(service, "file storage")

    try:
        return service.search_from_file(PENALTY_SOURCE_FILE, ticket_no=ticket_no, vrm=vrm)
    except StorageUnavailableError as e:
        logger.warning("penalty_search_unavailable", error=str(e))
        raise _unavailable("file storage")
    except BlobNotFoundError:
        raise HTTPException(
            status_code=404,
            detail=f"{PENALTY_SOURCE_FILE} file not found in Azure Storage. "
                   "Please ensure the Excel file has been uploaded to the Azure Blob Storage container",
        )
    except SpreadsheetDecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/upload", response_model=UploadResult)
def upload_penalty_file(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    service: PenaltyIngestionService = Depends(get_ingestion_service),
):
    if file.content_type not in EXCEL_MIME_TYPES:
        raise HTTPException(status_code=400, detail="Only Excel files are allowed")

    data = file.file.read(EXCEL_UPLOAD_MAX_BYTES + 1)
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(data) > EXCEL_UPLOAD_MAX_BYTES:
        raise HTTPException(status_code=413, detail="File exceeds the 50MB upload limit")
    _require_storage(service, "file upload")

    try:
        return service.upload_and_ingest(db, data, file.content_type)
    except StorageUnavailableError as e:
        logger.warning("penalty_upload_unavailable", error=str(e))
        raise _unavailable("file upload")
    except SpreadsheetDecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except BlobNotFoundError as e:
        raise HTTPException(status_code=500, detail=f"Failed to upload and process file: {e}")


@router.post("/process-files", response_model=ProcessFilesResult)
def process_penalty_files(
    db: Session = Depends(get_db),
    service: PenaltyIngestionService = Depends(get_ingestion_service),
):
    _require_storage(service, "file processing")
    try:
        return service.process_all_files(db)
    except StorageUnavailableError as e:
        logger.warning("penalty_processing_unavailable", error=str(e))
        raise _unavailable("file processing")


@router.get("/files", response_model=FileListOut)
def list_penalty_files(service: PenaltyIngestionService = Depends(get_ingestion_service)):
    _require_storage(service, "file listing")
    try:
        return {"files": service.list_files()}
    except StorageUnavailableError:
        raise _unavailable("file listing")


@router.get("/", response_model=List[PenaltyOut])
def read_penalties(ticket_no: Optional[str] = None, vrm: Optional[str] = None, db: Session = Depends(get_db)):
    return search_penalties(db, ticket_no=ticket_no, vrm=vrm)


@router.get("/all", response_model=List[PenaltyOut])
def list_penalties(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return get_all_penalties(db, skip, limit)


@router.get("/{penalty_id}", response_model=PenaltyOut)
def read_penalty(penalty_id: str, db: Session = Depends(get_db)):
    db_penalty = get_penalty(db, penalty_id)
    if db_penalty is None:
        raise HTTPException(status_code=404, detail="Penalty not found")
    return db_penalty


@router.patch("/{penalty_id}", response_model=PenaltyOut)
def edit_penalty(penalty_id: str, updates: PenaltyUpdate, db: Session = Depends(get_db)):
    try:
        return update_penalty(db, penalty_id, updates)
    except PenaltyNotFoundError:
        raise HTTPException(status_code=404, detail="Penalty not found")


@router.put("/{penalty_id}/pay", response_model=PenaltyOut)
def pay_penalty(penalty_id: str, db: Session = Depends(get_db)):
    db_penalty = mark_penalty_paid(db, penalty_id)
    if not db_penalty:
        raise HTTPException(status_code=404, detail="Penalty not found")
    return db_penalty
