from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_gate.models.validation_record import ValidationRecord, ValidationStatus
from invoice_gate.repositories.validation_record_repository_interface import (
    IValidationRecordRepository,
)
import logging

logger = logging.getLogger(__name__)


class ValidationRecordRepository(IValidationRecordRepository):

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, entity: ValidationRecord) -> ValidationRecord:
        self.db.add(entity)
        await self.db.commit()
        await self.db.refresh(entity)
        logger.info(f"Created validation record: {entity.id} ({entity.upload_id})")
        return entity

    async def get_paginated(
        self,
        skip: int = 0,
        limit: int = 50,
        status: Optional[ValidationStatus] = None,
    ) -> tuple[list[ValidationRecord], int]:
        base = select(ValidationRecord)
        count_stmt = select(func.count()).select_from(ValidationRecord)
        if status is not None:
            base = base.where(ValidationRecord.validation_status == status)
            count_stmt = count_stmt.where(
                ValidationRecord.validation_status == status
            )
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0
        stmt = (
            base.order_by(ValidationRecord.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_by_upload_id(
        self,
        upload_id: str,
    ) -> Optional[ValidationRecord]:
        # Latest record wins if a file was re-admitted under the same upload
        result = await self.db.execute(
            select(ValidationRecord)
            .where(ValidationRecord.upload_id == upload_id)
            .order_by(ValidationRecord.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_fingerprint(
        self,
        fingerprint: str,
    ) -> list[ValidationRecord]:
        result = await self.db.execute(
            select(ValidationRecord).where(
                ValidationRecord.fingerprint == fingerprint
            )
        )
        return list(result.scalars().all())

    async def update(self, entity: ValidationRecord) -> ValidationRecord:
        await self.db.commit()
        await self.db.refresh(entity)
        logger.info(f"Updated validation record: {entity.id}")
        return entity
