# app/row_matcher.py
"""
Scans decoded spreadsheet rows and projects them into penalty records.

Row 0 is always the header. The search sheet and the bulk upload sheet
use different column orders, so each has its own layout and the two are
never merged.
"""
import re
from datetime import datetime
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from app.cell_normalizer import (
    Parsed,
    normalize_amount,
    normalize_date,
    parse_amount,
    parse_date,
    to_datetime,
)
from schemas.penalty_schema import PenaltyCreate, PenaltySearchResult

Row = Sequence[object]

MISSING_FIELDS = "Missing required fields (Ticket No, VRM, or Penalty Amount)"
INVALID_AMOUNT = "Invalid penalty amount"

_NON_ALPHANUMERIC = re.compile(r"[^A-Z0-9]")


class SearchRowLayout(NamedTuple):
    # A: Ticket No, B: VRM, C: Contravention date & time, D: Site, E: Charge
    ticket_no: int = 0
    vrm: int = 1
    contravention: int = 2
    site: int = 3
    charge: int = 4


class BulkRowLayout(NamedTuple):
    # A: Ticket No, B: VRM, C: Vehicle Make, D: Penalty Amount,
    # E: Date Issued, F: Site, G: Reason for Issue, H: Badge ID
    ticket_no: int = 0
    vrm: int = 1
    vehicle_make: int = 2
    penalty_amount: int = 3
    date_issued: int = 4
    site: int = 5
    reason_for_issue: int = 6
    badge_id: int = 7


SEARCH_LAYOUT = SearchRowLayout()
BULK_LAYOUT = BulkRowLayout()


def cell_value(row: Row, index: int):
    try:
        return row[index]
    except IndexError:
        return None


def cell_text(row: Row, index: int) -> str:
    value = cell_value(row, index)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def vrm_key(vrm: str) -> str:
    return _NON_ALPHANUMERIC.sub("", vrm.upper())


def match_rows(
    rows: Sequence[Row],
    layout: SearchRowLayout = SEARCH_LAYOUT,
    ticket_no: Optional[str] = None,
    vrm: Optional[str] = None,
) -> List[PenaltySearchResult]:
    """
    Exact-match search. Ticket numbers compare case-sensitively, VRMs
    compare case-insensitively on their alphanumeric key. Every matching
    row is returned in sheet order; duplicates are kept.
    """
    wanted_vrm = vrm_key(vrm) if vrm else None
    results = []

    for row in rows[1:]:
        row_ticket = cell_text(row, layout.ticket_no)
        row_vrm = cell_text(row, layout.vrm).upper()
        if not row_ticket or not row_vrm:
            continue

        if ticket_no and row_ticket != ticket_no:
            continue
        if wanted_vrm is not None and vrm_key(row_vrm) != wanted_vrm:
            continue

        contravention = normalize_date(cell_value(row, layout.contravention))
        results.append(
            PenaltySearchResult(
                id=row_ticket,
                ticket_no=row_ticket,
                vrm=row_vrm,
                contravention_date_time=contravention,
                site=cell_text(row, layout.site) or None,
                penalty_amount=normalize_amount(cell_value(row, layout.charge)),
                date_issued=contravention,
            )
        )

    return results


def iter_bulk_rows(
    rows: Sequence[Row],
    layout: BulkRowLayout = BULK_LAYOUT,
) -> Iterator[Tuple[int, Union[PenaltyCreate, str]]]:
    """
    Yield (row_number, PenaltyCreate) for each usable data row and
    (row_number, error message) for each rejected one. Row numbers are
    1-based with the header as row 1.
    """
    for offset, row in enumerate(rows[1:]):
        row_num = offset + 2

        ticket = cell_text(row, layout.ticket_no)
        vrm = cell_text(row, layout.vrm)
        amount_text = cell_text(row, layout.penalty_amount)
        if not ticket or not vrm or not amount_text:
            yield row_num, f"Row {row_num}: {MISSING_FIELDS}"
            continue

        amount = parse_amount(cell_value(row, layout.penalty_amount))
        if not isinstance(amount, Parsed) or float(amount.value) <= 0:
            yield row_num, f"Row {row_num}: {INVALID_AMOUNT}"
            continue

        issued = parse_date(cell_value(row, layout.date_issued))
        try:
            penalty = PenaltyCreate(
                ticket_no=ticket,
                vrm=vrm,
                vehicle_make=cell_text(row, layout.vehicle_make) or None,
                penalty_amount=amount.value,
                date_issued=to_datetime(issued) or datetime.utcnow(),
                contravention_date_time=normalize_date(cell_value(row, layout.date_issued)),
                site=cell_text(row, layout.site) or None,
                reason_for_issue=cell_text(row, layout.reason_for_issue) or None,
                badge_id=cell_text(row, layout.badge_id) or None,
            )
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            yield row_num, f"Row {row_num}: {messages}"
            continue

        yield row_num, penalty
