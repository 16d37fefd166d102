from datetime import datetime, timedelta
from pathlib import Path

from throttle_guard.config_manager import GuardConfig
from throttle_guard.errors import ProbeError
from throttle_guard.models import CorrectionResult


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 10, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeProbe:
    """Returns queued values; ProbeError instances in the queue are raised"""

    def __init__(self, values, calls: list | None = None) -> None:
        self.values = list(values)
        self.calls = calls if calls is not None else []
        self.on_read = None

    def read(self) -> int:
        self.calls.append("probe")
        if self.on_read is not None:
            self.on_read()
        value = self.values.pop(0) if len(self.values) > 1 else self.values[0]
        if isinstance(value, ProbeError):
            raise value
        return value


class FakeCorrector:
    def __init__(self, battery_delta: int = -5, calls: list | None = None) -> None:
        self.battery_delta = battery_delta
        self.calls = calls if calls is not None else []
        self.applied: list[int] = []
        self.succeed = True

    def apply(self, desired_max_temp: int) -> CorrectionResult:
        self.calls.append("correct")
        self.applied.append(desired_max_temp)
        battery = desired_max_temp + self.battery_delta
        if self.succeed:
            return CorrectionResult(True, desired_max_temp, battery)
        return CorrectionResult(False, desired_max_temp, battery, "exit code 1: boom")


def make_config(log_path: Path, **overrides) -> GuardConfig:
    values = {
        "desired_max_temp": 98,
        "battery_delta": -5,
        "base_poll_interval_seconds": 60.0,
        "fast_poll_interval_seconds": 15.0,
        "log_path": log_path,
        "max_log_lines": 1000,
        "undervolt_bin": Path("/usr/local/bin/undervolt"),
    }
    values.update(overrides)
    return GuardConfig(**values)
