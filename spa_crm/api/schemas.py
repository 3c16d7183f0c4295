from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from spa_crm.core.validation import contact_links
from spa_crm.db.models import Client, ImportJob, ImportJobStatus, SkipRecord


class ApiModel(BaseModel):
    # Browser clients speak camelCase; Python code uses snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadResponse(ApiModel):
    success: bool = True
    job_id: str
    total_rows: int
    message: str


class ProcessResponse(ApiModel):
    success: bool
    message: str
    status: ImportJobStatus


class SkipRecordOut(ApiModel):
    row: int
    reason: str
    message: str
    name: Optional[str] = None
    phone_number: Optional[str] = None
    branch: Optional[str] = None

    @classmethod
    def from_record(cls, record: SkipRecord) -> "SkipRecordOut":
        return cls(**record.model_dump(mode="json"))


class ImportJobOut(ApiModel):
    id: str
    file_name: str
    status: ImportJobStatus
    progress: int
    total: int
    processed: int
    success: int
    failed: int
    skipped: int
    default_branch: str
    data_stored: bool
    skipped_rows: list[SkipRecordOut]
    error: Optional[str] = None
    message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: ImportJob) -> "ImportJobOut":
        fields = job.model_dump(exclude={"json_data", "skipped_rows"})
        return cls(
            **fields,
            skipped_rows=[SkipRecordOut.from_record(record) for record in job.skipped_rows],
        )


class ClientOut(ApiModel):
    id: str
    name: str
    phone_number: str
    birth_month: Optional[int] = None
    birth_day: Optional[int] = None
    date_of_birth: Optional[date] = None
    branch: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def contacts(self) -> dict[str, str]:
        return contact_links(self.phone_number)

    @classmethod
    def from_client(cls, client: Client) -> "ClientOut":
        return cls(**client.model_dump())


class ClientListResponse(ApiModel):
    clients: list[ClientOut]


class ClientCreate(ApiModel):
    name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    birth_month: int = Field(ge=1, le=12)
    birth_day: int = Field(ge=1, le=31)
    branch: str = Field(min_length=1)


class ClientUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    phone_number: Optional[str] = Field(default=None, min_length=1)
    birth_month: Optional[int] = Field(default=None, ge=1, le=12)
    birth_day: Optional[int] = Field(default=None, ge=1, le=31)
    branch: Optional[str] = Field(default=None, min_length=1)


class CreatedResponse(ApiModel):
    success: bool = True
    id: str


class DuplicateCheckResponse(ApiModel):
    exists: bool


class BranchOut(ApiModel):
    id: str
    name: str


class DocumentUploadResponse(ApiModel):
    success: bool = True
    url: str
    name: str
    type: Optional[str] = None
