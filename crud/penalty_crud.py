# crud/penalty_crud.py

import datetime
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from model.penalty_model import Penalty, PenaltyStatusEnum
from schemas.penalty_schema import PenaltyCreate, PenaltyUpdate
from utils.errors import PenaltyNotFoundError

SAMPLE_PENALTIES = [
    {
        "ticket_no": "A11623936",
        "vrm": "PG23WCR",
        "vehicle_make": "Audi",
        "penalty_amount": Decimal("60.00"),
        "date_issued": datetime.datetime(2025, 8, 21, 3, 5, 9),
        "contravention_date_time": "21/08/2025 03:05:09",
        "site": "Waitrose Dorking",
        "reason_for_issue": "No Valid Parking Payment Found",
        "badge_id": "ANPR",
    },
    {
        "ticket_no": "B22734847",
        "vrm": "AB12XYZ",
        "vehicle_make": "BMW",
        "penalty_amount": Decimal("90.00"),
        "date_issued": datetime.datetime(2025, 9, 1, 14, 30, 0),
        "contravention_date_time": "01/09/2025 14:30:00",
        "site": "High Street Car Park",
        "reason_for_issue": "Exceeded Maximum Stay",
        "badge_id": "ANPR",
    },
    {
        "ticket_no": "C33845958",
        "vrm": "CD34EFG",
        "vehicle_make": "Ford",
        "penalty_amount": Decimal("75.00"),
        "date_issued": datetime.datetime(2025, 9, 5, 10, 15, 0),
        "contravention_date_time": "05/09/2025 10:15:00",
        "site": "Town Centre Multi-storey",
        "reason_for_issue": "Parked Without Valid Ticket",
        "badge_id": "PATROL",
    },
]


def create_penalty(db: Session, penalty: PenaltyCreate) -> Penalty:
    db_penalty = Penalty(**penalty.model_dump())
    db.add(db_penalty)
    db.commit()
    db.refresh(db_penalty)
    return db_penalty


def get_penalty(db: Session, penalty_id: str) -> Optional[Penalty]:
    return db.query(Penalty).filter(Penalty.id == penalty_id).first()


def get_penalty_by_ticket_no(db: Session, ticket_no: str) -> Optional[Penalty]:
    return db.query(Penalty).filter(Penalty.ticket_no == ticket_no).first()


def get_all_penalties(db: Session, skip: int = 0, limit: int = 100) -> List[Penalty]:
    return db.query(Penalty).order_by(Penalty.created_at).offset(skip).limit(limit).all()


def search_penalties(
    db: Session,
    ticket_no: Optional[str] = None,
    vrm: Optional[str] = None,
) -> List[Penalty]:
    # substring, case-insensitive; unlike the spreadsheet search which is exact
    query = db.query(Penalty)
    if not ticket_no and not vrm:
        return []
    if ticket_no:
        query = query.filter(Penalty.ticket_no.ilike(f"%{ticket_no}%"))
    if vrm:
        query = query.filter(Penalty.vrm.ilike(f"%{vrm}%"))
    return query.all()


def update_penalty(
    db: Session,
    penalty_id: str,
    updates: Union[PenaltyUpdate, dict],
) -> Penalty:
    db_penalty = get_penalty(db, penalty_id)
    if not db_penalty:
        raise PenaltyNotFoundError(penalty_id)

    if isinstance(updates, PenaltyUpdate):
        updates = updates.model_dump(exclude_unset=True)
    for field, value in updates.items():
        setattr(db_penalty, field, value)
    db_penalty.updated_at = datetime.datetime.utcnow()

    db.commit()
    db.refresh(db_penalty)
    return db_penalty


def upsert_penalty(db: Session, penalty: PenaltyCreate) -> Tuple[Penalty, bool]:
    """
    Update the penalty with this ticket number, or create it. Returns the
    row and whether it was created. An existing status is left alone so a
    re-upload never reopens a paid penalty.
    """
    existing = get_penalty_by_ticket_no(db, penalty.ticket_no)
    if existing:
        updates = penalty.model_dump(exclude={"ticket_no", "status"})
        return update_penalty(db, existing.id, updates), False
    return create_penalty(db, penalty), True


def mark_penalty_paid(db: Session, penalty_id: str) -> Optional[Penalty]:
    db_penalty = get_penalty(db, penalty_id)
    if db_penalty:
        db_penalty.status = PenaltyStatusEnum.paid
        db_penalty.updated_at = datetime.datetime.utcnow()
        db.commit()
        db.refresh(db_penalty)
    return db_penalty


def seed_sample_penalties(db: Session) -> int:
    """Insert the sample PCNs into an empty table. Returns how many were added."""
    if db.query(Penalty).first() is not None:
        return 0
    db.add_all([Penalty(**data) for data in SAMPLE_PENALTIES])
    db.commit()
    return len(SAMPLE_PENALTIES)
