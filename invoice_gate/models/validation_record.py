import uuid
from datetime import datetime
from sqlalchemy import String, Integer, Boolean, DateTime, JSON, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column
from invoice_gate.core.database import Base
import enum


class ValidationStatus(str, enum.Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class ValidationRecord(Base):
    __tablename__ = "file_validation_records"

    # Primary Key
    id: Mapped[str] = mapped_column(
        String, primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # Correlation
    upload_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    file_key: Mapped[str] = mapped_column(String, nullable=False)
    final_key: Mapped[str | None] = mapped_column(String, nullable=True)
    original_filename: Mapped[str] = mapped_column(
        String, nullable=False, default="unknown"
    )
    invoice_type: Mapped[str] = mapped_column(String, nullable=False)

    # Verdict
    validation_status: Mapped[ValidationStatus] = mapped_column(
        SAEnum(ValidationStatus),
        default=ValidationStatus.PENDING,
        nullable=False,
    )
    is_valid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    errors: Mapped[list | None] = mapped_column(JSON, nullable=True)
    warnings: Mapped[list | None] = mapped_column(JSON, nullable=True)
    fingerprint: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    detected_content_type: Mapped[str | None] = mapped_column(String, nullable=True)
    declared_content_type: Mapped[str | None] = mapped_column(String, nullable=True)
    size_bytes: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<ValidationRecord {self.upload_id} - {self.file_key} - {self.validation_status}>"
