"""Failure policy for per-locale and per-node errors."""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import ErrorCategory, ErrorRecord

log = logging.getLogger(__name__)


class FailurePolicy:
    """Records contained failures so a run can keep making progress.

    Validation failures are raised before any work starts and never reach
    this class. Locale failures abandon one clone, node failures abandon one
    node; both are logged and kept for the final report.
    """

    def __init__(self) -> None:
        self.records: List[ErrorRecord] = []

    def handle_error(
        self,
        category: ErrorCategory,
        message: str,
        *,
        details: Optional[str] = None,
        locale: Optional[str] = None,
        node_id: Optional[str] = None,
    ) -> ErrorRecord:
        """Record a failure and log it at the level its scope warrants."""

        record = ErrorRecord(
            category=category,
            message=message,
            details=details,
            locale=locale,
            node_id=node_id,
        )
        self.records.append(record)

        suffix = f" ({details})" if details else ""
        if category is ErrorCategory.LOCALE:
            log.error("%s%s", message, suffix)
        else:
            log.warning("%s%s", message, suffix)
        return record

    @property
    def messages(self) -> List[str]:
        return [record.message for record in self.records]
