"""
Throttle Guard - CPU temperature target keeper

Background daemon for laptops whose firmware keeps lowering the CPU
thermal-throttling threshold. It polls the temperature target through the
`undervolt` tool, re-applies the desired value when it drifts, and keeps a
size-bounded event log that records how long each fix has held.

Architecture:
- probe / corrector: read and write paths of the undervolt tool
- drift: classification of an observed value
- log_store: append-only event log with trimming and reverse reads
- history: time since the most recent fix, rebuilt from the log
- guard_service: the adaptive-interval control loop
- config_manager: JSON + environment configuration

Version: 1.0.0
"""

__version__ = "1.0.0"

# Module exports
from .config_manager import GuardConfig, GuardConfigManager
from .drift import classify
from .guard_service import ThrottleGuardService, next_phase
from .models import Classification, Phase

__all__ = [
    "GuardConfig",
    "GuardConfigManager",
    "ThrottleGuardService",
    "classify",
    "next_phase",
    "Classification",
    "Phase",
]
