"""
Exceptions raised by the bulk-import pipeline.

Each carries the HTTP status the API layer responds with.
"""

from __future__ import annotations


class ClientImportError(Exception):
    status_code = 500


class ImportInputError(ClientImportError, ValueError):
    """
    Raised when an uploaded file or request cannot be accepted.
    """

    status_code = 400


class ParseError(ImportInputError):
    """
    Raised when the spreadsheet cannot be decoded or has no data rows.
    """


class UploadTooLargeError(ImportInputError):
    status_code = 413


class JobNotFoundError(ClientImportError, LookupError):
    status_code = 404


class JobDataMissingError(ImportInputError):
    """
    Raised when a job still has no stored rows after the retry policy is exhausted.
    """


class ImportTimeoutError(ClientImportError):
    status_code = 504


class ImportProcessingError(ClientImportError, RuntimeError):
    """
    Raised when a job fails as a whole; the job is already marked failed.
    """
