"""Error taxonomy for statement ingestion.

Every failure that aborts an upload derives from :class:`IngestError` and
carries a single message phrased for the person who owns the file: it names
the structural expectation that was not met and, where possible, the cell
(spreadsheet coordinates, 1-based rows) where it was expected.

Rows that are excluded during parsing are not errors; they are reported as
:class:`statement_ingest.models.SkippedRow` entries on the parse result.
"""

from __future__ import annotations

from collections.abc import Sequence


def cell_ref(row: int, col: int) -> str:
    """Return the spreadsheet reference (``"A3"``) for 0-based ``row``/``col``."""

    letters = ""
    n = col + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return f"{letters}{row + 1}"


class IngestError(Exception):
    """Base class for upload failures surfaced to the caller."""


class EmptyFileError(IngestError):
    def __init__(self) -> None:
        super().__init__("The uploaded file is empty.")


class UnsupportedFileTypeError(IngestError):
    def __init__(self, filename: str, allowed: Sequence[str]) -> None:
        self.filename = filename
        self.allowed = tuple(allowed)
        super().__init__(
            f"Unsupported file type for {filename!r}. Allowed extensions: "
            + ", ".join(self.allowed)
        )


class FormatDetectionError(IngestError):
    """The file could not be matched to any known statement template."""


class HeaderNotFoundError(IngestError):
    """No row in the scan window satisfies the header predicate."""

    def __init__(self, missing: Sequence[str], *, first_row: int, last_row: int) -> None:
        self.missing = tuple(missing)
        self.first_row = first_row
        self.last_row = last_row
        where = f"rows {first_row + 1}-{last_row + 1}"
        if self.missing:
            msg = (
                f"Could not find the header row in {where}. Missing columns: "
                + ", ".join(self.missing)
            )
        else:
            msg = (
                f"Could not find the header row in {where}. The expected columns were "
                "found but the row has fewer than 4 filled cells"
            )
        super().__init__(msg)


class MonthYearNotFoundError(IngestError):
    def __init__(self, searched: str) -> None:
        self.searched = searched
        super().__init__(
            "Could not determine the statement month and year. Make sure the file "
            f"contains a date such as 10/11/2025 or 11/2025 in {searched}."
        )


class InvalidMonthError(IngestError, ValueError):
    """An explicit (year, month) override is out of range."""


class DateParseError(IngestError, ValueError):
    """A date value could not be interpreted."""

    def __init__(
        self, value: object, reason: str = "unrecognized date", *, cell: str | None = None
    ):
        self.value = value
        self.reason = reason
        self.cell = cell
        where = f" in cell {cell}" if cell else ""
        super().__init__(f"Invalid date {value!r}{where}: {reason}")

    def at(self, cell: str) -> DateParseError:
        """Return a copy of this error located at ``cell``."""

        return DateParseError(self.value, self.reason, cell=cell)


class NoDataRowsError(IngestError):
    """The header was found but no data rows followed it."""


class PersistenceError(IngestError):
    """The reconciliation transaction failed and was rolled back."""


class UploadDeadlineExceeded(IngestError):
    def __init__(self, stage: str, budget: float) -> None:
        self.stage = stage
        self.budget = budget
        super().__init__(f"Upload exceeded its {budget:g}s deadline before stage {stage}")


__all__ = [
    "DateParseError",
    "EmptyFileError",
    "FormatDetectionError",
    "HeaderNotFoundError",
    "IngestError",
    "InvalidMonthError",
    "MonthYearNotFoundError",
    "NoDataRowsError",
    "PersistenceError",
    "UnsupportedFileTypeError",
    "UploadDeadlineExceeded",
    "cell_ref",
]
