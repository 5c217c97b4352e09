"""
Content sniffing and structural checks using magic bytes.
The sniffed type is independent of the type the uploader declared.
"""

from typing import Callable, Optional

from invoice_gate.core import content_types
from invoice_gate.schemas.validation import FormatCheckResult

# Content type -> magic bytes prefix. First match wins.
MAGIC_BYTE_SIGNATURES: dict[str, bytes] = {
    content_types.PDF: bytes.fromhex("25504446"),  # %PDF
    content_types.JPEG: bytes.fromhex("FFD8FF"),
    content_types.PNG: bytes.fromhex("89504E47"),
    content_types.TIFF: bytes.fromhex("49492A00"),  # little-endian
    content_types.ZIP: bytes.fromhex("504B0304"),  # also xlsx
}

SNIFF_LENGTH = 8

PDF_HEADER = b"%PDF"
PDF_EOF_MARKER = b"%%EOF"
PDF_TRAILER_WINDOW = 1024
JPEG_START_OF_IMAGE = b"\xff\xd8"
JPEG_END_OF_IMAGE = b"\xff\xd9"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
ZIP_LOCAL_FILE_HEADER = b"PK\x03\x04"


def detect_content_type(buffer: bytes) -> Optional[str]:
    """
    Return the content type whose signature prefixes buffer,
    or None when nothing matches.
    """
    header = bytes(buffer[:SNIFF_LENGTH])
    for content_type, signature in MAGIC_BYTE_SIGNATURES.items():
        if header.startswith(signature):
            return content_type
    return None


def check_pdf(buffer: bytes) -> FormatCheckResult:
    errors: list[str] = []
    warnings: list[str] = []

    if buffer[:4] != PDF_HEADER:
        errors.append("Invalid PDF header")

    # A missing trailer usually means truncation, not a different format
    if PDF_EOF_MARKER not in buffer[-PDF_TRAILER_WINDOW:]:
        warnings.append("PDF trailer not found - file may be corrupted")

    return FormatCheckResult(errors=errors, warnings=warnings)


def check_jpeg(buffer: bytes) -> FormatCheckResult:
    errors: list[str] = []
    warnings: list[str] = []

    if buffer[:2] != JPEG_START_OF_IMAGE:
        errors.append("Invalid JPEG header")

    if buffer[-2:] != JPEG_END_OF_IMAGE:
        warnings.append("JPEG end marker not found - file may be corrupted")

    return FormatCheckResult(errors=errors, warnings=warnings)


def check_png(buffer: bytes) -> FormatCheckResult:
    if buffer[:8] != PNG_SIGNATURE:
        return FormatCheckResult(errors=["Invalid PNG signature"])
    return FormatCheckResult()


def check_spreadsheet(buffer: bytes) -> FormatCheckResult:
    if buffer[:4] != ZIP_LOCAL_FILE_HEADER:
        return FormatCheckResult(
            errors=["Invalid spreadsheet format (not a valid ZIP archive)"],
        )
    return FormatCheckResult()


FORMAT_CHECKERS: dict[str, Callable[[bytes], FormatCheckResult]] = {
    content_types.PDF: check_pdf,
    content_types.JPEG: check_jpeg,
    content_types.PNG: check_png,
    content_types.ZIP: check_spreadsheet,
    content_types.XLSX: check_spreadsheet,
}


def has_format_checker(content_type: Optional[str]) -> bool:
    return content_type in FORMAT_CHECKERS


def check_format(buffer: bytes, content_type: str) -> Optional[FormatCheckResult]:
    """
    Run the structural checker registered for content_type.
    Returns None when no checker exists for that type.
    """
    checker = FORMAT_CHECKERS.get(content_type)
    if checker is None:
        return None
    return checker(buffer)
