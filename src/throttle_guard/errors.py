"""
Exception types for Throttle Guard

StartupFatal (and ConfigError) end the process before the loop starts.
Everything else is local to a single cycle.
"""


class ThrottleGuardError(Exception):
    """Base class for all Throttle Guard errors"""


class StartupFatal(ThrottleGuardError):
    """Precondition failure that must terminate the daemon (no retry)"""

    exit_code = 1


class ConfigError(StartupFatal):
    """Configuration file unreadable or values invalid"""

    exit_code = 2


class ProbeError(ThrottleGuardError):
    """Reading the current temperature target failed"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class LogWriteError(ThrottleGuardError):
    """Appending to or trimming the event log failed"""
