from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from invoice_gate.core.dependencies import get_admission_service
from invoice_gate.models.validation_record import ValidationStatus
from invoice_gate.schemas.admission import (
    AdmissionResponse,
    ValidationRecordListResponse,
    ValidationRecordResponse,
)
from invoice_gate.schemas.validation import ValidationResult
from invoice_gate.services.admission_service import AdmissionService

router = APIRouter()


@router.post(
    "/upload",
    response_model=AdmissionResponse,
    summary="Upload an invoice file and run admission checks",
    status_code=201,
)
async def upload_invoice(
    file: UploadFile = File(...),
    invoice_type: str = Form("standard"),
    service: AdmissionService = Depends(get_admission_service),
) -> AdmissionResponse:
    """
    Store the uploaded file under the incoming prefix and admit it:

    1. Check size and declared content type
    2. Sniff the real format from magic bytes
    3. Scan for known threat signatures
    4. Fingerprint the content
    5. Promote to validated storage, or quarantine on any error
    """
    return await service.submit_upload(file, invoice_type)


@router.post(
    "/validate",
    response_model=ValidationResult,
    summary="Validate a file without storing it",
)
async def validate_file(
    file: UploadFile = File(...),
    service: AdmissionService = Depends(get_admission_service),
) -> ValidationResult:
    return await service.validate_upload(file)


@router.get(
    "/",
    response_model=ValidationRecordListResponse,
    summary="List validation records with pagination",
)
async def list_records(
    service: AdmissionService = Depends(get_admission_service),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Max records to return"),
    status: Optional[ValidationStatus] = Query(
        None, description="Filter by validation status"
    ),
) -> ValidationRecordListResponse:
    return await service.list_records(skip=skip, limit=limit, status=status)


@router.get(
    "/{upload_id}",
    response_model=ValidationRecordResponse,
    summary="Get the validation record for an upload",
)
async def get_record(
    upload_id: str,
    service: AdmissionService = Depends(get_admission_service),
) -> ValidationRecordResponse:
    return await service.get_record(upload_id)
