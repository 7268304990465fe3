"""Load uploaded statement files into a fully buffered cell grid.

Detection, header search and row parsing all make separate passes over the
same top-of-sheet cells, so every loader materializes the first worksheet (or
the whole CSV) into a :class:`Sheet` of populated :class:`RawCell` values.

Supported encodings
-------------------
- ``.xlsx`` through :mod:`openpyxl` (cached formula values, never evaluated);
- ``.xls`` through :mod:`xlrd` (date cells converted with the book's datemode);
- ``.csv`` through the stdlib :mod:`csv` module, decoded as UTF-8 (with or
  without BOM) or Windows-1255, the two encodings Israeli exports use.
"""

from __future__ import annotations

import csv
import zipfile
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from io import BytesIO, StringIO
from pathlib import PurePath
from typing import Any, Literal

import xlrd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from xlrd.compdoc import CompDocError

from ..errors import EmptyFileError, FormatDetectionError, UnsupportedFileTypeError
from ..logging_setup import get_logger
from ..models import RawCell

logger = get_logger("statement_ingest.ingest.workbook")

type SourceKind = Literal["xlsx", "xls", "csv"]

EXCEL_EXTENSIONS = (".xlsx", ".xls")
CARD_EXTENSIONS = (".csv", ".xlsx", ".xls")

_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0"
_CSV_ENCODINGS = ("utf-8-sig", "cp1255")
_CSV_DELIMITERS = (",", ";", "\t")


def format_display(value: Any) -> str:
    """Render a cell value the way a spreadsheet shows it (day-first dates)."""

    if value is None:
        return ""
    if isinstance(value, datetime):
        if (value.hour, value.minute, value.second) == (0, 0, 0):
            return value.strftime("%d/%m/%Y")
        return value.strftime("%d/%m/%Y %H:%M")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


@dataclass(frozen=True, slots=True)
class Sheet:
    """Populated cells of one worksheet, addressed by 0-based (row, col)."""

    kind: SourceKind
    name: str
    cells: Mapping[tuple[int, int], RawCell]
    row_count: int
    _rows: dict[int, dict[int, RawCell]] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        for (r, c), cell in sorted(self.cells.items()):
            self._rows.setdefault(r, {})[c] = cell

    @classmethod
    def from_rows(
        cls, rows: Iterable[Sequence[Any]], *, kind: SourceKind, name: str = ""
    ) -> Sheet:
        cells: dict[tuple[int, int], RawCell] = {}
        row_count = 0
        for r, values in enumerate(rows):
            row_count = r + 1
            for c, value in enumerate(values):
                if isinstance(value, str):
                    value = value.strip()
                display = format_display(value)
                if value is None or display == "":
                    continue
                cells[(r, c)] = RawCell(row=r, col=c, value=value, display=display)
        return cls(kind=kind, name=name, cells=cells, row_count=row_count)

    @property
    def is_empty(self) -> bool:
        return not self.cells

    def cell(self, row: int, col: int) -> RawCell | None:
        return self.cells.get((row, col))

    def text(self, row: int, col: int) -> str:
        cell = self.cells.get((row, col))
        return cell.text if cell else ""

    def row(self, row: int) -> dict[int, RawCell]:
        return self._rows.get(row, {})

    def rows_by_index(self) -> dict[int, list[RawCell]]:
        return {r: list(cols.values()) for r, cols in self._rows.items()}

    def iter_rows(self, start: int = 0) -> Iterator[tuple[int, dict[int, RawCell]]]:
        """Yield ``(row_index, {col: cell})`` for populated rows from ``start``."""

        for r in sorted(self._rows):
            if r >= start:
                yield r, self._rows[r]


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


def file_extension(filename: str) -> str:
    return PurePath(filename or "").suffix.lower()


def ensure_extension(filename: str, allowed: Sequence[str]) -> str:
    ext = file_extension(filename)
    if ext not in allowed:
        raise UnsupportedFileTypeError(filename, allowed)
    return ext


def _load_xlsx(blob: bytes, filename: str) -> Sheet:
    try:
        wb = load_workbook(BytesIO(blob), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise FormatDetectionError(
            f"{filename!r} could not be opened as an .xlsx workbook "
            "(it may be corrupt or password protected)"
        ) from exc
    try:
        if not wb.worksheets:
            raise FormatDetectionError(f"{filename!r} contains no worksheets")
        ws = wb.worksheets[0]
        return Sheet.from_rows(ws.iter_rows(values_only=True), kind="xlsx", name=ws.title)
    finally:
        wb.close()


def _xls_value(sheet: Any, r: int, c: int, datemode: int) -> Any:
    ctype = sheet.cell_type(r, c)
    value = sheet.cell_value(r, c)
    if ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(value, datemode)
    if ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(value)
    return value


def _load_xls(blob: bytes, filename: str) -> Sheet:
    try:
        book = xlrd.open_workbook(file_contents=blob)
    except (xlrd.XLRDError, CompDocError, ValueError, OSError) as exc:
        raise FormatDetectionError(
            f"{filename!r} could not be opened as an .xls workbook"
        ) from exc
    if book.nsheets == 0:
        raise FormatDetectionError(f"{filename!r} contains no worksheets")
    sheet = book.sheet_by_index(0)
    rows = (
        [_xls_value(sheet, r, c, book.datemode) for c in range(sheet.ncols)]
        for r in range(sheet.nrows)
    )
    return Sheet.from_rows(rows, kind="xls", name=sheet.name)


def decode_csv(blob: bytes) -> str:
    for encoding in _CSV_ENCODINGS:
        try:
            return blob.decode(encoding)
        except UnicodeDecodeError:
            continue
    # cp1255 leaves a handful of bytes undefined; keep going with replacements.
    logger.warning("CSV is neither UTF-8 nor Windows-1255; decoding with replacements")
    return blob.decode("utf-8", errors="replace")


def _sniff_delimiter(text: str) -> str:
    sample = text.splitlines()[:15]
    counts = {d: sum(line.count(d) for line in sample) for d in _CSV_DELIMITERS}
    best = max(_CSV_DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] else ","


def _load_csv(blob: bytes, filename: str) -> Sheet:
    text = decode_csv(blob)
    try:
        rows = list(csv.reader(StringIO(text, newline=""), delimiter=_sniff_delimiter(text)))
    except csv.Error as exc:
        raise FormatDetectionError(f"{filename!r} is not a readable CSV file: {exc}") from exc
    return Sheet.from_rows(rows, kind="csv", name=PurePath(filename).stem)


def load_sheet(blob: bytes, filename: str, *, allowed: Sequence[str] = CARD_EXTENSIONS) -> Sheet:
    """Read the first worksheet of an uploaded file.

    Parameters
    ----------
    blob:
        The complete upload. Empty input raises :class:`EmptyFileError`.
    filename:
        Original filename; its extension selects the loader. Excel files are
        sniffed by signature so a mislabeled ``.xls``/``.xlsx`` still opens.
    allowed:
        Extensions accepted by the calling upload path.
    """

    if not blob:
        raise EmptyFileError()
    ext = ensure_extension(filename, allowed)
    if ext == ".csv":
        sheet = _load_csv(blob, filename)
    elif blob.startswith(_ZIP_MAGIC):
        sheet = _load_xlsx(blob, filename)
    elif blob.startswith(_OLE_MAGIC):
        sheet = _load_xls(blob, filename)
    elif ext == ".xlsx":
        sheet = _load_xlsx(blob, filename)
    else:
        sheet = _load_xls(blob, filename)
    logger.debug(
        "Loaded %s sheet %r: %d rows, %d populated cells",
        sheet.kind,
        sheet.name,
        sheet.row_count,
        len(sheet.cells),
    )
    return sheet


__all__ = [
    "CARD_EXTENSIONS",
    "EXCEL_EXTENSIONS",
    "Sheet",
    "decode_csv",
    "ensure_extension",
    "file_extension",
    "format_display",
    "load_sheet",
]
