"""
Admission-control validation for uploaded invoice files.

A single pass runs size, declared-type, sniffing, fingerprint, threat-scan
and structural checks. Problems are collected as errors/warnings on the
returned ValidationResult instead of being raised, so one call reports
every defect of a file at once.
"""

import asyncio
import hashlib
import inspect
import logging
from typing import Any, Callable, Optional, TypeVar

from invoice_gate.core import content_types
from invoice_gate.core.file_signatures import (
    check_format,
    detect_content_type,
    has_format_checker,
)
from invoice_gate.core.threat_scan import IThreatScanner, SignatureThreatScanner
from invoice_gate.schemas.validation import ValidationOptions, ValidationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNREADABLE_CONTENT_ERROR = "File content is empty or inaccessible"

DEFAULT_INVOICE_VALIDATION_OPTIONS = ValidationOptions(
    max_size_bytes=50 * 1024 * 1024,
    allowed_content_types=content_types.INVOICE_CONTENT_TYPES,
    perform_threat_scan=True,
    compute_fingerprint=True,
)


class UnreadableContentError(Exception):
    """Raised internally when the content stream cannot be drained."""


def compute_fingerprint(buffer: bytes) -> str:
    """Lowercase hex SHA-256 of the exact bytes (64 characters)."""
    return hashlib.sha256(buffer).hexdigest()


async def read_content(content: Any) -> bytes:
    """
    Drain content into memory.

    Accepts raw bytes, a file-like object with a sync or async read(),
    or a sync/async iterable of byte chunks.
    """
    if content is None:
        raise UnreadableContentError("no content")
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)

    try:
        if hasattr(content, "read"):
            data = await asyncio.to_thread(content.read)
            # an async read() only hands back a coroutine here
            if inspect.isawaitable(data):
                data = await data
            if data is None:
                raise UnreadableContentError("read() returned no data")
            return bytes(data)

        if hasattr(content, "__aiter__"):
            chunks = [bytes(chunk) async for chunk in content]
            return b"".join(chunks)

        if hasattr(content, "__iter__"):
            return await asyncio.to_thread(
                lambda: b"".join(bytes(chunk) for chunk in content)
            )
    except UnreadableContentError:
        raise
    except Exception as e:
        raise UnreadableContentError(str(e)) from e

    raise UnreadableContentError(
        f"unsupported content type {type(content).__name__}"
    )


class FileValidator:
    """
    Stateless apart from its immutable options, so one instance can serve
    any number of concurrent validate() calls.
    """

    def __init__(
        self,
        options: ValidationOptions = DEFAULT_INVOICE_VALIDATION_OPTIONS,
        threat_scanner: IThreatScanner | None = None,
    ) -> None:
        self.options = options
        self.threat_scanner = threat_scanner or SignatureThreatScanner()

    async def validate(
        self,
        content: Any,
        declared_content_type: str | None,
        declared_size: int | None = 0,
    ) -> ValidationResult:
        try:
            buffer = await read_content(content)
        except UnreadableContentError as e:
            logger.warning(f"Could not read file content: {e}")
            return ValidationResult(errors=[UNREADABLE_CONTENT_ERROR])

        # CPU-bound from here on; keep it off the event loop.
        return await asyncio.to_thread(
            self.evaluate,
            buffer,
            declared_content_type,
            declared_size,
        )

    def evaluate(
        self,
        buffer: bytes,
        declared_content_type: str | None,
        declared_size: int | None = 0,
    ) -> ValidationResult:
        """Run every check against an in-memory buffer."""
        if not buffer:
            return ValidationResult(errors=[UNREADABLE_CONTENT_ERROR])

        declared = declared_content_type or ""
        claimed_size = declared_size if declared_size and declared_size > 0 else 0
        errors: list[str] = []
        warnings: list[str] = []
        fingerprint: Optional[str] = None

        # ── Size ──────────────────────────────────────────
        size = max(len(buffer), claimed_size)
        if size > self.options.max_size_bytes:
            errors.append(
                f"File size {size} exceeds maximum allowed size "
                f"{self.options.max_size_bytes}"
            )

        # ── Declared Type ─────────────────────────────────
        if declared not in self.options.allowed_content_types:
            errors.append(f"MIME type {declared} is not allowed")

        # ── Sniffing ──────────────────────────────────────
        detected = detect_content_type(buffer)
        if detected and detected != declared:
            warnings.append(
                f"Declared MIME type {declared} differs from "
                f"detected type {detected}"
            )

        # ── Fingerprint ───────────────────────────────────
        if self.options.compute_fingerprint:
            fingerprint = self._run_stage(
                "fingerprint", errors, compute_fingerprint, buffer
            )

        # ── Threat Scan ───────────────────────────────────
        if self.options.perform_threat_scan:
            verdict = self._run_stage(
                "threat scan", errors, self.threat_scanner.scan, buffer
            )
            if verdict is not None and not verdict.is_clean:
                errors.append(
                    f"Threat detected: {verdict.threat_name or 'unknown threat'}"
                )

        # ── Structure ─────────────────────────────────────
        # Trust the sniffed bytes. When nothing was sniffed, hold the bytes
        # to the format the uploader claimed.
        checked_type = detected
        if detected is None and has_format_checker(declared):
            checked_type = declared

        if checked_type is None:
            warnings.append("Could not detect file format")
        elif not has_format_checker(checked_type):
            warnings.append(f"No specific validation available for {checked_type}")
        else:
            format_result = self._run_stage(
                "format check", errors, check_format, buffer, checked_type
            )
            if format_result is not None:
                errors.extend(format_result.errors)
                warnings.extend(format_result.warnings)

        result = ValidationResult(
            errors=errors,
            warnings=warnings,
            fingerprint=fingerprint,
            detected_content_type=detected,
        )
        if result.is_valid:
            logger.debug(
                f"File passed validation ({len(buffer)} bytes, {detected})"
            )
        else:
            logger.info(f"File failed validation with {len(errors)} errors: {errors}")
        return result

    def _run_stage(
        self,
        name: str,
        errors: list[str],
        func: Callable[..., T],
        *args: Any,
    ) -> Optional[T]:
        # A broken stage becomes an error entry; the other stages still run.
        try:
            return func(*args)
        except Exception as e:
            logger.error(f"Validation stage '{name}' failed: {e}", exc_info=True)
            errors.append(f"Validation error: {e}")
            return None
