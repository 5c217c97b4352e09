from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ValidationOptions(BaseModel):
    """Immutable validator configuration, supplied once at construction."""

    model_config = ConfigDict(frozen=True)

    max_size_bytes: int = Field(gt=0)
    allowed_content_types: frozenset[str]
    perform_threat_scan: bool = True
    compute_fingerprint: bool = True


class FormatCheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors


class ThreatScanResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_clean: bool
    threat_name: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Verdict for a single file.

    is_valid is derived from errors on every read: any error entry makes the
    file invalid, warnings never do. Errors and warnings are tuples so a
    result cannot change after it is built.
    """

    model_config = ConfigDict(frozen=True)

    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    fingerprint: Optional[str] = None
    detected_content_type: Optional[str] = None

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors
