"""
Signature-based threat scanning.

SignatureThreatScanner is a minimal in-process scanner. Anything that
implements IThreatScanner (e.g. a client for an external scanning service)
can be handed to FileValidator instead.
"""

import logging
from typing import Mapping, Protocol

from invoice_gate.schemas.validation import ThreatScanResult

logger = logging.getLogger(__name__)

EICAR_TEST_SIGNATURE = (
    rb"X5O!P%@AP[4\PZX54(P^)7CC)7}$EICAR-STANDARD-ANTIVIRUS-TEST-FILE!$H+H*"
)

# Label -> byte sequence
DEFAULT_THREAT_SIGNATURES: dict[str, bytes] = {
    "EICAR-Test-Signature": EICAR_TEST_SIGNATURE,
}


class IThreatScanner(Protocol):
    """Buffer in, clean/infected verdict out."""

    def scan(self, buffer: bytes) -> ThreatScanResult:
        ...


class SignatureThreatScanner:

    def __init__(
        self,
        signatures: Mapping[str, bytes] | None = None,
    ) -> None:
        self.signatures = dict(
            DEFAULT_THREAT_SIGNATURES if signatures is None else signatures
        )

    def scan(self, buffer: bytes) -> ThreatScanResult:
        for label, pattern in self.signatures.items():
            if pattern and pattern in buffer:
                logger.warning(f"Threat signature matched: {label}")
                return ThreatScanResult(is_clean=False, threat_name=label)
        return ThreatScanResult(is_clean=True)
