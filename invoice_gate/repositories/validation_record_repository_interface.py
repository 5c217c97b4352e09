from abc import ABC, abstractmethod
from typing import Optional
from invoice_gate.models.validation_record import ValidationRecord, ValidationStatus


class IValidationRecordRepository(ABC):
    """Audit trail of admission verdicts, one record per validated object."""

    @abstractmethod
    async def create(self, entity: ValidationRecord) -> ValidationRecord:
        raise NotImplementedError

    @abstractmethod
    async def update(self, entity: ValidationRecord) -> ValidationRecord:
        raise NotImplementedError

    @abstractmethod
    async def get_paginated(
        self,
        skip: int = 0,
        limit: int = 50,
        status: Optional[ValidationStatus] = None,
    ) -> tuple[list[ValidationRecord], int]:
        """Return (records, total_count) with an optional status filter."""
        raise NotImplementedError

    @abstractmethod
    async def get_by_upload_id(
        self,
        upload_id: str,
    ) -> Optional[ValidationRecord]:
        raise NotImplementedError

    @abstractmethod
    async def get_by_fingerprint(
        self,
        fingerprint: str,
    ) -> list[ValidationRecord]:
        """Earlier verdicts for identical content."""
        raise NotImplementedError
