"""
Spreadsheet bulk import of clients.

parse -> normalize -> filter -> persist, tracked by an import job document.
"""

from .errors import (
    ClientImportError,
    ImportInputError,
    ImportProcessingError,
    ImportTimeoutError,
    JobDataMissingError,
    JobNotFoundError,
    ParseError,
    UploadTooLargeError,
)
from .service import ImportService, ProcessResult, UploadResult

__all__ = [
    "ClientImportError",
    "ImportInputError",
    "ImportProcessingError",
    "ImportService",
    "ImportTimeoutError",
    "JobDataMissingError",
    "JobNotFoundError",
    "ParseError",
    "ProcessResult",
    "UploadResult",
    "UploadTooLargeError",
]
