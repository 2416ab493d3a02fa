# utils/spreadsheet.py
from io import BytesIO
from typing import List, Sequence

from openpyxl import load_workbook

from utils.errors import SpreadsheetDecodeError

Row = Sequence[object]

# OLE2 compound file header of pre-2007 .xls workbooks
LEGACY_XLS_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


def read_sheets(data: bytes) -> List[List[Row]]:
    """
    Decode workbook bytes into sheets -> rows -> typed cell values
    (str, int, float, datetime or None), in workbook order.
    """
    if data.startswith(LEGACY_XLS_MAGIC):
        raise SpreadsheetDecodeError("Legacy .xls workbooks are not supported, save the file as .xlsx")

    try:
        wb = load_workbook(filename=BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise SpreadsheetDecodeError(f"Cannot read workbook: {exc}") from exc

    # read_only sheets are parsed lazily, so a corrupt sheet only fails here
    try:
        return [list(ws.iter_rows(values_only=True)) for ws in wb.worksheets]
    except Exception as exc:
        raise SpreadsheetDecodeError(f"Cannot read worksheet: {exc}") from exc
    finally:
        wb.close()


def first_sheet_rows(data: bytes) -> List[Row]:
    sheets = read_sheets(data)
    return sheets[0] if sheets else []
