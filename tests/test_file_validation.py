"""Unit tests for the file validator."""

import hashlib
import io

import pytest
from pydantic import ValidationError

from invoice_gate.core import content_types
from invoice_gate.core.file_validation import (
    DEFAULT_INVOICE_VALIDATION_OPTIONS,
    UNREADABLE_CONTENT_ERROR,
    FileValidator,
    compute_fingerprint,
)
from invoice_gate.core.threat_scan import EICAR_TEST_SIGNATURE
from invoice_gate.schemas.validation import (
    ThreatScanResult,
    ValidationOptions,
    ValidationResult,
)

VALID_PDF = (
    b"%PDF-1.4\n1 0 obj\n<<\n/Type /Catalog\n>>\nendobj\nxref\n0 1\n"
    b"0000000000 65535 f \ntrailer\n<<\n/Size 1\n/Root 1 0 R\n>>\n"
    b"startxref\n9\n%%EOF"
)
VALID_JPEG = bytes([0xFF, 0xD8, 0xFF, 0xE0, 0x00, 0x10, 0x4A, 0x46, 0x49, 0x46, 0xFF, 0xD9])
TRUNCATED_JPEG = VALID_JPEG[:-2]
VALID_PNG = bytes([0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A, 0x00, 0x00, 0x00, 0x0D])


@pytest.fixture
def validator() -> FileValidator:
    return FileValidator(DEFAULT_INVOICE_VALIDATION_OPTIONS)


class ExplodingScanner:
    def scan(self, buffer: bytes) -> ThreatScanResult:
        raise RuntimeError("scanner crashed")


class BrokenStream:
    def read(self) -> bytes:
        raise OSError("connection reset")


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


# ── End-to-end scenarios ──────────────────────────────────


@pytest.mark.asyncio
async def test_valid_pdf_passes(validator: FileValidator) -> None:
    result = await validator.validate(VALID_PDF, content_types.PDF, len(VALID_PDF))

    assert result.is_valid is True
    assert result.detected_content_type == content_types.PDF
    assert result.fingerprint == hashlib.sha256(VALID_PDF).hexdigest()
    assert result.errors == ()
    assert result.warnings == ()


@pytest.mark.asyncio
async def test_plain_text_declared_as_pdf_fails_header_check(
    validator: FileValidator,
) -> None:
    content = b"Not a PDF file content"
    result = await validator.validate(content, content_types.PDF, len(content))

    assert result.is_valid is False
    assert result.detected_content_type is None
    assert "Invalid PDF header" in result.errors


@pytest.mark.asyncio
async def test_threat_and_disallowed_type_both_reported(
    validator: FileValidator,
) -> None:
    content = b"hello " + EICAR_TEST_SIGNATURE
    result = await validator.validate(content, "text/plain", len(content))

    assert result.is_valid is False
    assert len(result.errors) >= 2
    assert "MIME type text/plain is not allowed" in result.errors
    assert "Threat detected: EICAR-Test-Signature" in result.errors


@pytest.mark.asyncio
async def test_oversized_file_rejected_but_other_checks_run(
    validator: FileValidator,
) -> None:
    content = b"%PDF-1.4" + bytes(60 * 1024 * 1024 - 8)
    result = await validator.validate(content, content_types.PDF, len(content))

    assert result.is_valid is False
    assert result.errors[0] == (
        f"File size {60 * 1024 * 1024} exceeds maximum allowed size {50 * 1024 * 1024}"
    )
    # structural check still ran: no %%EOF near the end
    assert "PDF trailer not found - file may be corrupted" in result.warnings
    assert result.fingerprint is not None


@pytest.mark.asyncio
async def test_empty_content_short_circuits(validator: FileValidator) -> None:
    result = await validator.validate(b"", content_types.CSV, 0)

    assert result.is_valid is False
    assert result.errors == (UNREADABLE_CONTENT_ERROR,)
    assert result.warnings == ()
    assert result.fingerprint is None
    assert result.detected_content_type is None


@pytest.mark.asyncio
async def test_jpeg_missing_end_marker_only_warns(validator: FileValidator) -> None:
    result = await validator.validate(
        TRUNCATED_JPEG, content_types.JPEG, len(TRUNCATED_JPEG)
    )

    assert result.is_valid is True
    assert result.warnings == ("JPEG end marker not found - file may be corrupted",)


# ── Checks ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_valid_images(validator: FileValidator) -> None:
    jpeg = await validator.validate(VALID_JPEG, content_types.JPEG, len(VALID_JPEG))
    png = await validator.validate(VALID_PNG, content_types.PNG, len(VALID_PNG))

    assert jpeg.is_valid is True
    assert jpeg.detected_content_type == content_types.JPEG
    assert png.is_valid is True
    assert png.detected_content_type == content_types.PNG


@pytest.mark.asyncio
async def test_csv_passes_with_undetected_format_warning(
    validator: FileValidator,
) -> None:
    content = b"Invoice ID,Date,Part Number\nINV-001,2023-01-01,ABC-123"
    result = await validator.validate(content, content_types.CSV, len(content))

    assert result.is_valid is True
    assert result.detected_content_type is None
    assert result.warnings == ("Could not detect file format",)


@pytest.mark.asyncio
async def test_tiff_has_no_structural_checker(validator: FileValidator) -> None:
    content = b"II*\x00\x08\x00\x00\x00"
    result = await validator.validate(content, content_types.TIFF, len(content))

    assert result.is_valid is True
    assert result.warnings == ("No specific validation available for image/tiff",)


@pytest.mark.asyncio
async def test_spreadsheet_sniffed_as_zip(validator: FileValidator) -> None:
    content = b"PK\x03\x04\x14\x00\x06\x00rest-of-archive"
    result = await validator.validate(content, content_types.XLSX, len(content))

    assert result.is_valid is True
    assert result.detected_content_type == content_types.ZIP
    assert result.warnings == (
        f"Declared MIME type {content_types.XLSX} differs from "
        f"detected type {content_types.ZIP}",
    )


@pytest.mark.asyncio
async def test_size_boundary() -> None:
    options = ValidationOptions(
        max_size_bytes=len(VALID_PDF),
        allowed_content_types=frozenset({content_types.PDF}),
    )
    validator = FileValidator(options)

    at_limit = await validator.validate(VALID_PDF, content_types.PDF, len(VALID_PDF))
    over = await validator.validate(
        VALID_PDF + b"\n", content_types.PDF, len(VALID_PDF) + 1
    )

    assert at_limit.is_valid is True
    assert over.is_valid is False
    assert over.errors == (
        f"File size {len(VALID_PDF) + 1} exceeds maximum allowed size {len(VALID_PDF)}",
    )


@pytest.mark.asyncio
async def test_declared_size_over_limit_is_rejected() -> None:
    options = ValidationOptions(
        max_size_bytes=1000,
        allowed_content_types=frozenset({content_types.PDF}),
    )
    result = await FileValidator(options).validate(VALID_PDF, content_types.PDF, 5000)

    assert result.is_valid is False
    assert "File size 5000 exceeds maximum allowed size 1000" in result.errors


@pytest.mark.asyncio
async def test_mismatch_with_allowed_type_is_only_a_warning(
    validator: FileValidator,
) -> None:
    result = await validator.validate(VALID_PDF, content_types.PNG, len(VALID_PDF))

    assert result.is_valid is True
    assert result.detected_content_type == content_types.PDF
    assert result.warnings == (
        "Declared MIME type image/png differs from detected type application/pdf",
    )


@pytest.mark.asyncio
async def test_mismatch_with_disallowed_type(validator: FileValidator) -> None:
    content = b"%PDF-1.4\ncontent"
    result = await validator.validate(content, "text/plain", len(content))

    assert result.is_valid is False
    assert "MIME type text/plain is not allowed" in result.errors
    assert any(
        "Declared MIME type text/plain differs from detected type application/pdf" in w
        for w in result.warnings
    )


@pytest.mark.asyncio
async def test_toggles_disable_scan_and_fingerprint() -> None:
    options = ValidationOptions(
        max_size_bytes=1024,
        allowed_content_types=frozenset({content_types.PDF}),
        perform_threat_scan=False,
        compute_fingerprint=False,
    )
    content = VALID_PDF.replace(b"xref", EICAR_TEST_SIGNATURE)
    result = await FileValidator(options).validate(content, content_types.PDF, 0)

    assert result.is_valid is True
    assert result.fingerprint is None


@pytest.mark.asyncio
async def test_stage_failure_becomes_error_entry() -> None:
    validator = FileValidator(
        DEFAULT_INVOICE_VALIDATION_OPTIONS, threat_scanner=ExplodingScanner()
    )
    content = b"Not a PDF file content"
    result = await validator.validate(content, content_types.PDF, len(content))

    assert result.is_valid is False
    assert "Validation error: scanner crashed" in result.errors
    # structural check still ran after the scanner blew up
    assert "Invalid PDF header" in result.errors


# ── Content sources ───────────────────────────────────────


@pytest.mark.asyncio
async def test_reads_file_like_and_async_iterables(validator: FileValidator) -> None:
    from_stream = await validator.validate(
        io.BytesIO(VALID_PDF), content_types.PDF, len(VALID_PDF)
    )
    from_chunks = await validator.validate(
        _chunks(VALID_PDF[:10], VALID_PDF[10:]), content_types.PDF, len(VALID_PDF)
    )

    assert from_stream.is_valid is True
    assert from_chunks.is_valid is True
    assert from_stream.fingerprint == from_chunks.fingerprint


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [None, BrokenStream()])
async def test_unreadable_content(validator: FileValidator, content) -> None:
    result = await validator.validate(content, content_types.PDF, 100)

    assert result.is_valid is False
    assert result.errors == (UNREADABLE_CONTENT_ERROR,)


@pytest.mark.asyncio
async def test_missing_declared_values(validator: FileValidator) -> None:
    result = await validator.validate(VALID_PDF, None, None)

    assert result.is_valid is False
    assert result.errors == ("MIME type  is not allowed",)


# ── Value types ───────────────────────────────────────────


def test_fingerprint_is_deterministic_sha256() -> None:
    assert compute_fingerprint(b"abc") == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )
    first = compute_fingerprint(VALID_PDF)
    assert first == compute_fingerprint(VALID_PDF)
    assert len(first) == 64
    assert first == first.lower()
    assert first != compute_fingerprint(VALID_PDF + b" ")


def test_result_validity_follows_errors() -> None:
    assert ValidationResult(errors=["boom"]).is_valid is False
    assert ValidationResult(warnings=["hmm"]).is_valid is True
    assert ValidationResult(errors=["boom"]).model_dump()["is_valid"] is False


def test_result_cannot_be_changed_after_construction() -> None:
    result = ValidationResult()

    with pytest.raises(AttributeError):
        result.errors.append("late error")
    with pytest.raises(ValidationError):
        result.errors = ("late error",)
    assert result.errors == ()
    assert result.is_valid is True

    copied = result.model_copy(update={"errors": ("late error",)})
    assert copied.is_valid is False
    assert result.is_valid is True


def test_evaluate_is_synchronous_entry_point(validator: FileValidator) -> None:
    result = validator.evaluate(VALID_PNG, content_types.PNG, len(VALID_PNG))
    assert result.is_valid is True
