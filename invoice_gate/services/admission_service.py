from datetime import datetime
from pathlib import PurePosixPath
import logging
import uuid

from fastapi import HTTPException, UploadFile

from invoice_gate.core.config import Settings, settings
from invoice_gate.core.file_validation import FileValidator, UNREADABLE_CONTENT_ERROR
from invoice_gate.core.tracing import traced
from invoice_gate.models.validation_record import ValidationRecord, ValidationStatus
from invoice_gate.repositories.validation_record_repository_interface import (
    IValidationRecordRepository,
)
from invoice_gate.schemas.admission import (
    AdmissionNotification,
    AdmissionOutcome,
    AdmissionResponse,
    ValidationRecordListResponse,
    ValidationRecordResponse,
)
from invoice_gate.schemas.validation import ValidationResult
from invoice_gate.services.notification_service import INotifier
from invoice_gate.services.storage_service import IObjectStorage, ObjectNotFoundError

logger = logging.getLogger(__name__)

# Object metadata keys written by the uploader
UPLOAD_ID_KEY = "upload-id"
INVOICE_TYPE_KEY = "invoice-type"
ORIGINAL_FILENAME_KEY = "original-filename"


def _timestamp() -> str:
    return datetime.utcnow().isoformat()


class AdmissionService:
    """
    Gates uploaded invoice files before they reach processing.

    Every incoming object is validated, audited, and then either promoted
    to the validated prefix or moved to quarantine. Persistence and
    notification failures are logged but never block the move: the file
    must always leave the incoming prefix.
    """

    def __init__(
        self,
        storage: IObjectStorage,
        repository: IValidationRecordRepository,
        notifier: INotifier,
        validator: FileValidator,
        config: Settings = settings,
    ) -> None:
        self.storage = storage
        self.repository = repository
        self.notifier = notifier
        self.validator = validator
        self.config = config
        self._validate = traced("file_validation", validator.validate)

    # ── Workflow ──────────────────────────────────────────

    async def admit(self, bucket: str, key: str) -> AdmissionOutcome:
        if not self._is_incoming(key):
            logger.info(f"Skipping non-incoming object: {key}")
            return AdmissionOutcome(file_key=key, status="skipped")

        try:
            stored = await self.storage.get_object(bucket, key)
        except ObjectNotFoundError as e:
            logger.error(f"Cannot admit {key}: {e}")
            await self._notify(
                AdmissionNotification(
                    subject="Invoice File Validation Failed",
                    message=f"File {key} could not be read for validation. Error: {e}",
                    file_key=key,
                    upload_id="unknown",
                    status="failed",
                    error=UNREADABLE_CONTENT_ERROR,
                )
            )
            return AdmissionOutcome(
                file_key=key,
                status="failed",
                result=ValidationResult(errors=[UNREADABLE_CONTENT_ERROR]),
                error=str(e),
            )

        metadata = stored.metadata
        upload_id = metadata.get(UPLOAD_ID_KEY)
        invoice_type = metadata.get(INVOICE_TYPE_KEY)
        original_filename = metadata.get(ORIGINAL_FILENAME_KEY) or "unknown"

        if not upload_id or not invoice_type:
            stored.content.close()
            logger.error(f"Missing required metadata for file: {key}")
            final_key = await self._quarantine(
                bucket, key, "Missing required metadata", upload_id or "unknown"
            )
            return AdmissionOutcome(
                file_key=key,
                status="failed",
                final_key=final_key,
                upload_id=upload_id,
                error="Missing required metadata",
            )

        logger.info(f"Validating file: {key}")
        try:
            result = await self._validate(
                stored.content,
                stored.content_type,
                stored.content_length,
            )
        finally:
            stored.content.close()

        if result.fingerprint:
            await self._report_duplicates(result.fingerprint, upload_id)

        record = await self._store_record(
            ValidationRecord(
                upload_id=upload_id,
                file_key=key,
                original_filename=original_filename,
                invoice_type=invoice_type,
                validation_status=(
                    ValidationStatus.PASSED
                    if result.is_valid
                    else ValidationStatus.FAILED
                ),
                is_valid=result.is_valid,
                errors=list(result.errors),
                warnings=list(result.warnings),
                fingerprint=result.fingerprint,
                detected_content_type=result.detected_content_type,
                declared_content_type=stored.content_type,
                size_bytes=stored.content_length,
            )
        )

        if result.is_valid:
            logger.info(f"File validation passed for: {key}")
            final_key = await self._promote(
                bucket, key, upload_id, invoice_type, original_filename, result
            )
        else:
            logger.info(f"File validation failed for: {key} {result.errors}")
            final_key = await self._quarantine(
                bucket, key, "; ".join(result.errors), upload_id
            )

        if record is not None:
            record.final_key = final_key
            try:
                await self.repository.update(record)
            except Exception as e:
                logger.error(
                    f"Could not update validation record {record.id}: {e}",
                    exc_info=True,
                )

        return AdmissionOutcome(
            file_key=key,
            status="passed" if result.is_valid else "failed",
            final_key=final_key,
            upload_id=upload_id,
            result=result,
        )

    async def admit_batch(
        self,
        bucket: str,
        keys: list[str],
    ) -> list[AdmissionOutcome]:
        """
        Admit several objects. A failure on one object quarantines that
        object and moves on to the next.
        """
        outcomes: list[AdmissionOutcome] = []
        for key in keys:
            try:
                outcomes.append(await self.admit(bucket, key))
            except Exception as e:
                logger.error(f"Error processing file {key}: {e}", exc_info=True)
                error = f"Processing error: {e}"
                final_key = None
                try:
                    final_key = await self._quarantine(bucket, key, error, "unknown")
                except Exception as quarantine_error:
                    logger.error(
                        f"Could not quarantine {key}: {quarantine_error}",
                        exc_info=True,
                    )
                outcomes.append(
                    AdmissionOutcome(
                        file_key=key,
                        status="failed",
                        final_key=final_key,
                        error=error,
                    )
                )
        return outcomes

    # ── Uploads ───────────────────────────────────────────

    async def submit_upload(
        self,
        file: UploadFile,
        invoice_type: str,
    ) -> AdmissionResponse:
        """Store an upload under the incoming prefix and admit it."""
        if not file.filename:
            raise HTTPException(
                status_code=400,
                detail="No filename provided",
            )

        filename = PurePosixPath(file.filename.replace("\\", "/")).name
        if filename in ("", ".", ".."):
            raise HTTPException(
                status_code=400,
                detail=f"Invalid filename: {file.filename}",
            )
        contents: bytes = await file.read()
        upload_id = str(uuid.uuid4())
        key = f"{self.config.INCOMING_PREFIX}{upload_id}/{filename}"

        await self.storage.put_object(
            self.config.INVOICE_BUCKET,
            key,
            contents,
            file.content_type or "",
            {
                UPLOAD_ID_KEY: upload_id,
                INVOICE_TYPE_KEY: invoice_type,
                ORIGINAL_FILENAME_KEY: filename,
            },
        )
        logger.info(f"Upload {upload_id} stored at {key}")

        outcome = await self.admit(self.config.INVOICE_BUCKET, key)
        message = (
            "File validated and ready for processing"
            if outcome.status == "passed"
            else "File failed validation and was quarantined"
        )
        return AdmissionResponse(
            message=message,
            upload_id=upload_id,
            file_key=key,
            final_key=outcome.final_key,
            status=outcome.status,
            result=outcome.result,
        )

    async def validate_upload(self, file: UploadFile) -> ValidationResult:
        """Validate an upload without storing it."""
        return await self._validate(
            file,
            file.content_type or "",
            file.size or 0,
        )

    # ── Records ───────────────────────────────────────────

    async def get_record(self, upload_id: str) -> ValidationRecordResponse:
        record = await self.repository.get_by_upload_id(upload_id)
        if not record:
            raise HTTPException(
                status_code=404,
                detail=f"Validation record for upload {upload_id} not found",
            )
        return ValidationRecordResponse.model_validate(record)

    async def list_records(
        self,
        skip: int = 0,
        limit: int = 50,
        status: ValidationStatus | None = None,
    ) -> ValidationRecordListResponse:
        records, total = await self.repository.get_paginated(
            skip=skip,
            limit=min(limit, 100),
            status=status,
        )
        return ValidationRecordListResponse(
            total=total,
            records=[ValidationRecordResponse.model_validate(r) for r in records],
        )

    # ── Helpers ───────────────────────────────────────────

    def _is_incoming(self, key: str) -> bool:
        return (
            key.startswith(self.config.INCOMING_PREFIX)
            and not key.startswith(self.config.VALIDATED_PREFIX)
            and not key.startswith(self.config.QUARANTINE_PREFIX)
        )

    def _relocated_key(self, key: str, prefix: str) -> str:
        return prefix + key[len(self.config.INCOMING_PREFIX):]

    async def _report_duplicates(self, fingerprint: str, upload_id: str) -> list[str]:
        """Log earlier uploads with identical content. Returns their upload ids."""
        try:
            earlier = await self.repository.get_by_fingerprint(fingerprint)
        except Exception as e:
            logger.error(f"Duplicate lookup failed for {upload_id}: {e}", exc_info=True)
            return []
        upload_ids = [r.upload_id for r in earlier if r.upload_id != upload_id]
        if upload_ids:
            logger.warning(
                f"Upload {upload_id} has the same content as earlier uploads: "
                f"{upload_ids}"
            )
        return upload_ids

    async def _store_record(
        self,
        record: ValidationRecord,
    ) -> ValidationRecord | None:
        # The audit record must not decide the file's fate
        try:
            return await self.repository.create(record)
        except Exception as e:
            logger.error(
                f"Error storing validation record for {record.upload_id}: {e}",
                exc_info=True,
            )
            return None

    async def _promote(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        invoice_type: str,
        original_filename: str,
        result: ValidationResult,
    ) -> str:
        validated_key = self._relocated_key(key, self.config.VALIDATED_PREFIX)
        await self.storage.move_object(
            bucket,
            key,
            validated_key,
            {
                "validation-status": ValidationStatus.PASSED.value,
                "validation-timestamp": _timestamp(),
                "file-hash": result.fingerprint or "",
                UPLOAD_ID_KEY: upload_id,
                INVOICE_TYPE_KEY: invoice_type,
                ORIGINAL_FILENAME_KEY: original_filename,
            },
        )
        await self._notify(
            AdmissionNotification(
                subject="Invoice File Validation Successful",
                message=(
                    f"File {original_filename} has been successfully validated "
                    f"and is ready for processing."
                ),
                file_key=validated_key,
                upload_id=upload_id,
                status="success",
            )
        )
        logger.info(f"Validated and moved file: {key} -> {validated_key}")
        return validated_key

    async def _quarantine(
        self,
        bucket: str,
        key: str,
        error_message: str,
        upload_id: str,
    ) -> str:
        quarantine_key = self._relocated_key(key, self.config.QUARANTINE_PREFIX)
        await self.storage.move_object(
            bucket,
            key,
            quarantine_key,
            {
                "validation-status": ValidationStatus.FAILED.value,
                "validation-error": error_message,
                "validation-timestamp": _timestamp(),
                UPLOAD_ID_KEY: upload_id,
            },
        )
        await self._notify(
            AdmissionNotification(
                subject="Invoice File Validation Failed",
                message=(
                    f"File validation failed for upload {upload_id}. "
                    f"Error: {error_message}"
                ),
                file_key=quarantine_key,
                upload_id=upload_id,
                status="failed",
                error=error_message,
            )
        )
        logger.info(f"File moved to quarantine: {key} -> {quarantine_key}")
        return quarantine_key

    async def _notify(self, notification: AdmissionNotification) -> None:
        try:
            await self.notifier.notify(notification)
        except Exception as e:
            logger.error(
                f"Error sending notification for upload {notification.upload_id}: {e}",
                exc_info=True,
            )
