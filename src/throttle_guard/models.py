#!/usr/bin/env python3
"""
Throttle Guard Type Definitions

Enums and dataclasses shared by the probe, analyzer and control loop.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, auto
from typing import Optional

# ============================================================================
# EVENT LOG TAGS
# ============================================================================

TAG_CORRECT = "===="
TAG_INCORRECT = "!!!!"
TAG_UNREADABLE = "????"
TAG_REAPPLY = ">>>>"

# Tags the history analyzer treats as classification checkpoints
MARKER_TAGS = (TAG_CORRECT, TAG_INCORRECT, TAG_UNREADABLE)

# ============================================================================
# ENUMS
# ============================================================================


class Classification(Enum):
    """Result of comparing an observation with the accepted values"""
    CORRECT = auto()
    INCORRECT = auto()


class Phase(Enum):
    """Polling phase of the control loop"""
    STEADY = auto()     # last observation correct, poll at base interval
    SETTLING = auto()   # just corrected, poll fast to verify the fix held


class PowerSource(Enum):
    """Where the laptop is drawing power from"""
    AC = "AC"
    BATTERY = "battery"
    UNKNOWN = "unknown"


class HistoryStatus(Enum):
    """Outcome of a history scan"""
    ELAPSED = auto()
    INSUFFICIENT_DATA = auto()
    NO_LOG = auto()

# ============================================================================
# DATA STRUCTURES
# ============================================================================


@dataclass(frozen=True)
class LogEntry:
    """One parsed event log line"""
    timestamp: datetime
    message: str
    tag: Optional[str] = None

    @property
    def classification(self) -> Optional[Classification]:
        """Classification carried by a marker line, None for informational lines"""
        if self.tag == TAG_CORRECT:
            return Classification.CORRECT
        if self.tag in (TAG_INCORRECT, TAG_UNREADABLE):
            return Classification.INCORRECT
        return None


@dataclass(frozen=True)
class HistoryReport:
    """How long the most recent fix has held"""
    status: HistoryStatus
    fixed_at: Optional[datetime] = None
    elapsed: Optional[timedelta] = None


@dataclass(frozen=True)
class CorrectionResult:
    """Outcome of one corrective write"""
    success: bool
    ac_target: int
    battery_target: int
    error: Optional[str] = None


@dataclass
class CycleResult:
    """Everything one control cycle observed and did"""
    observation: Optional[int]
    classification: Classification
    phase: Phase
    sleep_seconds: float
    probe_error: Optional[str] = None
    correction: Optional[CorrectionResult] = None
    history: Optional[HistoryReport] = None
    power_source: PowerSource = PowerSource.UNKNOWN
    trimmed: bool = False


__all__ = [
    'TAG_CORRECT',
    'TAG_INCORRECT',
    'TAG_UNREADABLE',
    'TAG_REAPPLY',
    'MARKER_TAGS',
    'Classification',
    'Phase',
    'PowerSource',
    'HistoryStatus',
    'LogEntry',
    'HistoryReport',
    'CorrectionResult',
    'CycleResult',
]
