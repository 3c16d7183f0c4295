from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Branch(BaseModel):
    id: str
    name: str
    created_at: Optional[datetime] = None


class ClientDraft(BaseModel):
    """
    Canonical client record before the store assigns an identity.

    Only month and day of birth are meaningful; `date_of_birth` carries the
    current year and exists for display compatibility.
    """

    name: str
    phone_number: str
    birth_month: int = Field(ge=1, le=12)
    birth_day: int = Field(ge=1, le=31)
    date_of_birth: date
    branch: str

    @property
    def dedupe_key(self) -> tuple[str, str]:
        return (self.phone_number.strip(), self.branch.strip())


class Client(BaseModel):
    id: str
    name: str
    phone_number: str
    birth_month: Optional[int] = None
    birth_day: Optional[int] = None
    date_of_birth: Optional[date] = None
    branch: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ImportJobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"  # rows are being validated
    IMPORTING = "importing"  # accepted rows are being written
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportJobStatus.COMPLETED, ImportJobStatus.FAILED)


class SkipReason(str, Enum):
    MISSING_REQUIRED_DATA = "missing required data"
    MISSING_BRANCH = "missing branch"
    UNKNOWN_BRANCH = "branch does not exist"
    DUPLICATE_IN_FILE = "duplicate in file"
    ALREADY_EXISTS = "already exists in database"


class SkipRecord(BaseModel):
    row: int
    reason: SkipReason
    message: str
    name: Optional[str] = None
    phone_number: Optional[str] = None
    branch: Optional[str] = None


class ImportJob(BaseModel):
    id: str
    file_name: str
    status: ImportJobStatus = ImportJobStatus.PENDING
    progress: int = 0
    total: int = 0
    processed: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    json_data: Optional[list[dict[str, Any]]] = None
    default_branch: str = ""
    data_stored: bool = False
    skipped_rows: list[SkipRecord] = Field(default_factory=list)
    error: Optional[str] = None
    message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthUser(BaseModel):
    # In the intended Supabase schema this is auth.users.id
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
