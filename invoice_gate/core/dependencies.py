from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from invoice_gate.core.config import settings, validation_options_from_settings
from invoice_gate.core.database import get_db
from invoice_gate.core.file_validation import FileValidator
from invoice_gate.services.admission_service import AdmissionService
from invoice_gate.services.notification_service import INotifier, LoggingNotifier
from invoice_gate.services.storage_service import IObjectStorage, LocalObjectStorage
from invoice_gate.repositories.validation_record_repository import (
    ValidationRecordRepository,
)
from invoice_gate.repositories.validation_record_repository_interface import (
    IValidationRecordRepository,
)


def get_validation_record_repository(
    db: AsyncSession = Depends(get_db),
) -> IValidationRecordRepository:
    return ValidationRecordRepository(db)


def get_file_validator() -> FileValidator:
    return FileValidator(validation_options_from_settings(settings))


def get_object_storage() -> IObjectStorage:
    return LocalObjectStorage(settings.STORAGE_ROOT)


def get_notifier() -> INotifier:
    return LoggingNotifier()


def get_admission_service(
    repository: IValidationRecordRepository = Depends(
        get_validation_record_repository
    ),
    storage: IObjectStorage = Depends(get_object_storage),
    notifier: INotifier = Depends(get_notifier),
    validator: FileValidator = Depends(get_file_validator),
) -> AdmissionService:
    return AdmissionService(storage, repository, notifier, validator, settings)
