"""
Structured logging helpers for scraping workflows.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING, Any

from app.domain.scraping import LogEntry, LogLevel

if TYPE_CHECKING:
    from app.scraping.storage.base import ScrapeStorage

_PYTHON_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))


class JobLogRecorder:
    """
    Writes user-visible job log entries to storage and mirrors them to the process log.
    """

    def __init__(
        self,
        *,
        storage: "ScrapeStorage",
        logger: logging.Logger,
        job_id: uuid.UUID | None = None,
    ) -> None:
        self._storage = storage
        self._logger = logger
        self.job_id = job_id

    def bind(self, job_id: uuid.UUID | None) -> "JobLogRecorder":
        return JobLogRecorder(storage=self._storage, logger=self._logger, job_id=job_id)

    def record(self, level: str, message: str, *, event: str, **fields: Any) -> LogEntry:
        entry = LogEntry(level=level, message=message, job_id=self.job_id)
        self._storage.add_log(entry)
        log_event(
            self._logger,
            _PYTHON_LEVELS.get(level, logging.INFO),
            event,
            job_id=self.job_id,
            message=message,
            **fields,
        )
        return entry

    def info(self, message: str, *, event: str, **fields: Any) -> LogEntry:
        return self.record(LogLevel.INFO, message, event=event, **fields)

    def success(self, message: str, *, event: str, **fields: Any) -> LogEntry:
        return self.record(LogLevel.SUCCESS, message, event=event, **fields)

    def warning(self, message: str, *, event: str, **fields: Any) -> LogEntry:
        return self.record(LogLevel.WARNING, message, event=event, **fields)

    def error(self, message: str, *, event: str, **fields: Any) -> LogEntry:
        return self.record(LogLevel.ERROR, message, event=event, **fields)
