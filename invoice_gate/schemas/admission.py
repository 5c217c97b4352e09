from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from invoice_gate.models.validation_record import ValidationStatus
from invoice_gate.schemas.validation import ValidationResult


class AdmissionNotification(BaseModel):
    subject: str
    message: str
    file_key: str
    upload_id: str
    status: Literal["success", "failed"]
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class AdmissionOutcome(BaseModel):
    """What happened to one object handed to the admission workflow."""

    file_key: str
    status: Literal["passed", "failed", "skipped"]
    final_key: Optional[str] = None
    upload_id: Optional[str] = None
    result: Optional[ValidationResult] = None
    error: Optional[str] = None


class ValidationRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    upload_id: str
    file_key: str
    final_key: Optional[str] = None
    original_filename: str
    invoice_type: str
    validation_status: ValidationStatus
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    fingerprint: Optional[str] = None
    detected_content_type: Optional[str] = None
    declared_content_type: Optional[str] = None
    size_bytes: int = Field(default=0, ge=0)
    created_at: datetime
    updated_at: datetime

    @field_validator("errors", "warnings", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v if v is not None else []


class ValidationRecordListResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int = Field(ge=0)
    records: list[ValidationRecordResponse]


class AdmissionResponse(BaseModel):
    message: str
    upload_id: str
    file_key: str
    final_key: Optional[str] = None
    status: Literal["passed", "failed", "skipped"]
    result: Optional[ValidationResult] = None
