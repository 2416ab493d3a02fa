# model/penalty_model.py
import datetime
import enum
import uuid

from sqlalchemy import Column, String, DateTime, Numeric, Text, Enum
from database import Base


class PenaltyStatusEnum(str, enum.Enum):
    active = "active"
    paid = "paid"
    appealed = "appealed"
    cancelled = "cancelled"


class Penalty(Base):
    __tablename__ = "penalties"

    id                      = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    ticket_no               = Column(String(64), unique=True, index=True, nullable=False)
    vrm                     = Column(String(16), index=True, nullable=False)
    vehicle_make            = Column(String(64), nullable=True)
    penalty_amount          = Column(Numeric(10, 2), nullable=False)
    date_issued             = Column(DateTime, nullable=False, default=datetime.datetime.utcnow)
    # canonical DD/MM/YYYY HH:mm:ss, or the cell text when it could not be read
    contravention_date_time = Column(String(64), nullable=True)
    site                    = Column(String(255), nullable=True)
    reason_for_issue        = Column(Text, nullable=True)
    badge_id                = Column(String(64), nullable=True)
    status                  = Column(
        Enum(PenaltyStatusEnum, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PenaltyStatusEnum.active,
    )
    created_at              = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    updated_at              = Column(
        DateTime,
        default=datetime.datetime.utcnow,
        onupdate=datetime.datetime.utcnow,
        nullable=False,
    )
