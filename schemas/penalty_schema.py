# schemas/penalty_schema.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, condecimal, constr, field_validator

from model.penalty_model import PenaltyStatusEnum


class PenaltyBase(BaseModel):
    ticket_no: constr(strip_whitespace=True, min_length=1, max_length=64)
    vrm: constr(strip_whitespace=True, min_length=1, max_length=16)
    vehicle_make: Optional[str] = None
    penalty_amount: condecimal(gt=0, max_digits=10, decimal_places=2)
    date_issued: datetime
    contravention_date_time: Optional[str] = None
    site: Optional[str] = None
    reason_for_issue: Optional[str] = None
    badge_id: Optional[str] = None
    status: PenaltyStatusEnum = PenaltyStatusEnum.active

    @field_validator("vrm")
    @classmethod
    def uppercase_vrm(cls, value: str) -> str:
        return value.upper()


class PenaltyCreate(PenaltyBase):
    pass


class PenaltyUpdate(BaseModel):
    vrm: Optional[str] = None
    vehicle_make: Optional[str] = None
    penalty_amount: Optional[condecimal(gt=0, max_digits=10, decimal_places=2)] = None
    date_issued: Optional[datetime] = None
    contravention_date_time: Optional[str] = None
    site: Optional[str] = None
    reason_for_issue: Optional[str] = None
    badge_id: Optional[str] = None
    status: Optional[PenaltyStatusEnum] = None


class PenaltyOut(PenaltyBase):
    id: str
    penalty_amount: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PenaltySearchResult(BaseModel):
    """A penalty read straight out of the spreadsheet. Never persisted."""

    id: str
    ticket_no: str
    vrm: str
    contravention_date_time: Optional[str] = None
    site: Optional[str] = None
    penalty_amount: str
    date_issued: Optional[str] = None
    status: PenaltyStatusEnum = PenaltyStatusEnum.active


class IngestionResult(BaseModel):
    processed: int = 0
    errors: List[str] = []


class FileIngestionResult(IngestionResult):
    file: str


class UploadResult(IngestionResult):
    message: str
    file_url: str
    file_name: str


class ProcessFilesResult(BaseModel):
    message: str
    files_processed: List[str]
    results: List[FileIngestionResult]


class FileListOut(BaseModel):
    files: List[str]
