"""Process-wide diagnostic log for libxml2 parse and query errors.

The log is append-only and shared by every document in the process. It has a
global capture mode: while capture is enabled, entries are stored and can be
counted and inspected; while it is disabled, entries are forwarded to the
Python logger and not stored. Code that needs to inspect the log must take it
through :meth:`DiagnosticLog.capture`, which holds the log's lock and restores
the previous mode on exit.
"""

import threading
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Optional

from xml_document_model.shared import (
    DiagnosticEntry,
    DiagnosticSeverity,
    get_logger,
)

_MAX_ENTRIES = 1000


class DiagnosticLog:
    """Append-only log of structured toolkit errors with a capture mode."""

    def __init__(self, max_entries: int = _MAX_ENTRIES) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self.max_entries = max_entries
        self.logger = get_logger(__name__, component="diagnostic_log")
        self._entries: List[DiagnosticEntry] = []
        self._appended = 0
        self._capture_enabled = False
        self._lock = threading.RLock()

    @property
    def capture_enabled(self) -> bool:
        """Whether entries are currently being stored."""
        return self._capture_enabled

    @property
    def count(self) -> int:
        """Total number of entries stored since the log was created or cleared.

        Keeps growing after old entries are rotated out, so before/after
        snapshots stay comparable.
        """
        return self._appended

    @property
    def last(self) -> Optional[DiagnosticEntry]:
        """Most recently stored entry, or None."""
        return self._entries[-1] if self._entries else None

    @property
    def entries(self) -> List[DiagnosticEntry]:
        """Copy of the retained entries, oldest first."""
        return list(self._entries)

    def set_capture(self, enabled: bool) -> bool:
        """Switch capture mode and return the previous mode."""
        with self._lock:
            previous = self._capture_enabled
            self._capture_enabled = enabled
            return previous

    @contextmanager
    def capture(self) -> Iterator["DiagnosticLog"]:
        """Hold the log with capture enabled for the duration of the block."""
        with self._lock:
            previous = self.set_capture(True)
            try:
                yield self
            finally:
                self.set_capture(previous)

    def append(self, entry: DiagnosticEntry) -> None:
        """Record ``entry``, or forward it to the logger when not capturing."""
        with self._lock:
            if not self._capture_enabled:
                self.logger.warning(
                    entry.message,
                    extra={
                        "severity": entry.severity.name,
                        "source_component": entry.component,
                    },
                )
                return
            self._entries.append(entry)
            self._appended += 1
            if len(self._entries) > self.max_entries:
                del self._entries[0]

    def record(
        self,
        severity: DiagnosticSeverity,
        message: str,
        component: str,
        details: Optional[dict] = None,
        correlation_id: Optional[str] = None,
    ) -> DiagnosticEntry:
        """Build an entry from its parts, append it and return it."""
        entry = DiagnosticEntry(
            severity=severity,
            message=message,
            component=component,
            details=details,
            correlation_id=correlation_id,
        )
        self.append(entry)
        return entry

    def extend_from_libxml(
        self,
        error_log: Iterable[Any],
        component: str,
        correlation_id: Optional[str] = None,
    ) -> int:
        """Copy the entries of an lxml error log; return how many were copied."""
        copied = 0
        for log_entry in error_log:
            self.append(DiagnosticEntry.from_libxml(log_entry, component, correlation_id))
            copied += 1
        return copied

    def clear(self) -> None:
        """Drop all entries and reset the count."""
        with self._lock:
            self._entries.clear()
            self._appended = 0

    def __len__(self) -> int:
        return len(self._entries)


_GLOBAL_LOG = DiagnosticLog()


def get_diagnostic_log() -> DiagnosticLog:
    """Return the process-wide diagnostic log."""
    return _GLOBAL_LOG
