"""Centralized error handling and response helpers."""

from typing import Any, Dict, List, Optional

from fastapi.responses import JSONResponse


class CertVaultError(Exception):
    """
    Base class for all CertVault errors.

    Carries a human readable message, a stable error code and optional
    structured details for logging.
    """

    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(CertVaultError):
    """Invalid request input, reported before any side effect."""
    pass


class SpreadsheetError(ValidationError):
    """Uploaded spreadsheet could not be read."""
    pass


class EmptySpreadsheetError(ValidationError):
    """Spreadsheet has a header but no data rows."""

    def __init__(self, message: str = "No rows in Excel"):
        super().__init__(message, "EMPTY_SPREADSHEET")


class MissingColumnsError(ValidationError):
    """
    Raised when required spreadsheet columns are missing.

    The whole batch fails before any row is processed.
    """

    def __init__(self, required: List[str], found: List[str]):
        self.required = list(required)
        self.found = list(found)
        self.missing = [c for c in required if c not in found]
        super().__init__(
            f"Missing required columns: {', '.join(self.required)}",
            "MISSING_COLUMNS",
            {"missing": self.missing, "found": self.found},
        )


class RenderError(CertVaultError):
    """Certificate document could not be composed or encoded."""
    pass


class StorageError(CertVaultError):
    """Object store upload, download or URL signing failed."""
    pass


class ObjectNotFoundError(StorageError):
    """Requested object does not exist in the store."""
    pass


class MetadataError(CertVaultError):
    """Certificate metadata could not be written."""
    pass


class RowProcessingError(CertVaultError):
    """One spreadsheet row failed to issue."""

    def __init__(self, row_number: int, cause: Exception):
        self.row_number = row_number
        self.cause = cause
        super().__init__(
            f"Row {row_number} failed: {cause}",
            "ROW_FAILED",
            {"row_number": row_number, "cause": type(cause).__name__},
        )


class BatchFailedError(CertVaultError):
    """
    Raised when a batch stops on its first failing row.

    Rows committed before the failure stay persisted; ``committed`` records
    how many, for operators reading the logs.
    """

    def __init__(self, row_error: RowProcessingError, committed: int, total: int):
        self.row_error = row_error
        self.committed = committed
        self.total = total
        super().__init__(
            f"Batch stopped at row {row_error.row_number} of {total} "
            f"({committed} already issued): {row_error.cause}",
            "BATCH_FAILED",
            {
                "row_number": row_error.row_number,
                "committed": committed,
                "total": total,
            },
        )


def error_response(message: str, code: int = 500, **extra: Any) -> JSONResponse:
    """Create a plain ``{"error": message}`` response."""
    content: Dict[str, Any] = {"error": message}
    content.update(extra)
    return JSONResponse(status_code=code, content=content)


def validation_error_response(error: ValidationError, code: int = 400) -> JSONResponse:
    """Create standardized validation error response."""
    if isinstance(error, MissingColumnsError):
        return missing_columns_response(error.required, error.found)
    return error_response(error.message, code)


def missing_columns_response(required: List[str], found: List[str]) -> JSONResponse:
    """Create response for missing spreadsheet columns."""
    missing = [c for c in required if c not in found]

    return JSONResponse(
        status_code=400,
        content={
            "error": f"Missing required columns: {', '.join(required)}",
            "required_columns": list(required),
            "missing_columns": missing,
            "found_columns": list(found),
        }
    )
