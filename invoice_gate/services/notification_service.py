import logging
from typing import Protocol

from invoice_gate.schemas.admission import AdmissionNotification

logger = logging.getLogger(__name__)


class INotifier(Protocol):
    """Delivers the outcome of an admission to operators."""

    async def notify(self, notification: AdmissionNotification) -> None:
        ...


class LoggingNotifier:
    """
    Publishes admission outcomes to the invoice_gate.notifications logger.
    Failures go out at WARNING so they can be alerted on; successes at INFO.
    """

    def __init__(self, channel: str = "invoice_gate.notifications") -> None:
        self._logger = logging.getLogger(channel)

    async def notify(self, notification: AdmissionNotification) -> None:
        level = logging.WARNING if notification.status == "failed" else logging.INFO
        self._logger.log(
            level,
            "%s | upload=%s file=%s status=%s%s | %s",
            notification.subject,
            notification.upload_id,
            notification.file_key,
            notification.status,
            f" error={notification.error}" if notification.error else "",
            notification.message,
        )
