#!/usr/bin/env python3
"""
History Analyzer

Answers "how long has the current fix held": finds the most recent point
where the event log went from an INCORRECT marker to a CORRECT marker and
measures the time since then. Only marker lines are consulted, so the
answer survives restarts and trimming as long as the markers are kept.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from .log_store import EventLogStore
from .models import Classification, HistoryReport, HistoryStatus

logger = logging.getLogger(__name__)


def format_elapsed(elapsed: timedelta) -> str:
    """HH:MM:SS, hours not wrapped at 24 (e.g. 27:03:10)"""
    total = max(0, int(elapsed.total_seconds()))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class HistoryAnalyzer:
    """Backward scan over the event log"""

    def __init__(self, store: EventLogStore):
        self.store = store

    def time_since_last_fix(self, now: Optional[datetime] = None) -> HistoryReport:
        """
        Find the newest CORRECT marker whose preceding marker is INCORRECT.

        Scanning newest-first, the timestamp of each CORRECT marker is kept
        as a candidate; the first INCORRECT marker seen after a candidate
        closes the run and the candidate is the moment the fix took hold.
        The scan stops there, so its cost depends on how recent the last
        incorrect event was, not on the size of the log.

        Returns:
            HistoryReport with ELAPSED, INSUFFICIENT_DATA or NO_LOG status
        """
        now = now or self.store.clock()

        if not self.store.exists():
            return HistoryReport(HistoryStatus.NO_LOG)

        candidate: Optional[datetime] = None
        for entry in self.store.iter_entries_reversed(now):
            classification = entry.classification
            if classification is Classification.CORRECT:
                candidate = entry.timestamp
            elif classification is Classification.INCORRECT and candidate is not None:
                return HistoryReport(
                    HistoryStatus.ELAPSED,
                    fixed_at=candidate,
                    elapsed=now - candidate
                )

        return HistoryReport(HistoryStatus.INSUFFICIENT_DATA)

    @staticmethod
    def describe(report: HistoryReport) -> str:
        """Event log message for a report"""
        if report.status is HistoryStatus.ELAPSED:
            return f"Time elapsed without needing to re-apply (HH:MM:SS): {format_elapsed(report.elapsed)}"
        if report.status is HistoryStatus.NO_LOG:
            return "(Waiting for log file to be created to calculate time elapsed without needing to re-apply settings)"
        return "(Insufficient data in log to calculate time elapsed without needing to re-apply settings)"
