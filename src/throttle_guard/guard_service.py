#!/usr/bin/env python3
"""
Throttle Guard Service

Keeps the CPU temperature target at the configured value on machines whose
firmware keeps resetting it. Every cycle the service probes the current
value, re-applies the desired settings when they drifted, records what it
saw in the event log and sleeps.

Key features:
- Two polling phases: STEADY (base interval) and SETTLING (fast interval
  right after a correction, to confirm it held)
- Probe failures are treated as drift and tagged separately in the log
- Event log failures never stop the control function
- stop() only interrupts the sleep; a cycle in progress always completes
"""

import logging
import os
import shutil
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .config_manager import GuardConfig
from .corrector import SettingsCorrector
from .drift import classify, classify_for_power_source
from .errors import LogWriteError, ProbeError, StartupFatal
from .history import HistoryAnalyzer
from .log_store import EventLogStore
from .models import (
    Classification,
    CycleResult,
    HistoryReport,
    Phase,
    PowerSource,
    TAG_CORRECT,
    TAG_INCORRECT,
    TAG_REAPPLY,
    TAG_UNREADABLE,
)
from .power import read_power_source
from .probe import SettingsProbe

logger = logging.getLogger(__name__)

# Event log message layout: tagged lines are indented 4, the rest 10
TAGGED = "    {tag}  {text}"
PLAIN = "          {text}"


def next_phase(phase: Phase, classification: Classification) -> Phase:
    """Any INCORRECT moves to SETTLING; any CORRECT returns to STEADY"""
    if classification is Classification.INCORRECT:
        return Phase.SETTLING
    return Phase.STEADY


def check_startup_preconditions(
    config: GuardConfig,
    geteuid: Optional[Callable[[], int]] = None
) -> None:
    """
    Verify the daemon can drive the undervolt tool at all.

    Raises:
        StartupFatal: Not running as root, or the undervolt tool is missing
    """
    if (geteuid or os.geteuid)() != 0:
        raise StartupFatal("This script must be run as root")

    tool = config.undervolt_bin
    resolved = shutil.which(str(tool)) if not tool.is_absolute() else None
    if resolved is None and not (tool.is_file() and os.access(tool, os.X_OK)):
        raise StartupFatal(f"undervolt tool not found or not executable: {tool}")


class ThrottleGuardService:
    """
    Monitoring/correction loop for the CPU temperature target.

    Single-threaded: run() blocks the calling thread until stop() is called
    (typically from a signal handler).
    """

    def __init__(
        self,
        config: GuardConfig,
        probe: Optional[SettingsProbe] = None,
        corrector: Optional[SettingsCorrector] = None,
        store: Optional[EventLogStore] = None,
        clock: Callable[[], datetime] = datetime.now,
        power_reader: Callable[[], PowerSource] = read_power_source
    ):
        """
        Args:
            config: Loaded daemon configuration
            probe: Read path of the undervolt tool (built from config if omitted)
            corrector: Write path of the undervolt tool (built from config if omitted)
            store: Event log (built from config if omitted)
            clock: Wall-clock source
            power_reader: Returns the current power source
        """
        self.config = config
        self.clock = clock
        self.power_reader = power_reader

        self.store = store or EventLogStore(config.log_path, config.max_log_lines, clock)
        self.probe = probe or SettingsProbe(config.undervolt_bin, config.command_timeout_seconds)
        self.corrector = corrector or SettingsCorrector(
            config.undervolt_bin,
            config.battery_delta,
            config.aux_offsets,
            config.command_timeout_seconds
        )
        self.analyzer = HistoryAnalyzer(self.store)

        # Control
        self.phase = Phase.STEADY
        self.stop_event = threading.Event()

        # Status
        self.cycle_count = 0
        self.correction_count = 0
        self.last_result: Optional[CycleResult] = None
        self.log_write_failing = False

        logger.info(f"ThrottleGuardService initialized (target={config.desired_max_temp}C, "
                    f"battery={config.battery_target}C, log={config.log_path})")

    def interval_for(self, phase: Phase) -> float:
        if phase is Phase.SETTLING:
            return self.config.fast_poll_interval_seconds
        return self.config.base_poll_interval_seconds

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    def _record(self, message: str) -> None:
        """Append to the event log and echo to the diagnostic log"""
        logger.info(message.strip())
        try:
            self.store.append(message)
        except LogWriteError as e:
            self._report_log_failure(e)
            return

        if self.log_write_failing:
            logger.warning(f"Event log {self.store.log_path} writable again")
            self.log_write_failing = False

    def _report_log_failure(self, error: Exception) -> None:
        # One diagnostic per failure streak
        if not self.log_write_failing:
            logger.error(f"Event log write failed, control loop continues without it: {error}")
            self.log_write_failing = True

    def record_startup_failure(self, reason: str) -> None:
        """Best-effort note in the event log before a fatal exit"""
        try:
            self.store.append(reason)
        except LogWriteError as e:
            logger.error(f"Could not record startup failure: {e}")

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def _classify(self, observation: Optional[int], power_source: PowerSource) -> Classification:
        if self.config.power_source_aware:
            return classify_for_power_source(
                observation,
                self.config.desired_max_temp,
                self.config.battery_delta,
                power_source
            )
        return classify(observation, self.config.desired_max_temp, self.config.battery_delta)

    def _expected_description(self, power_source: PowerSource) -> str:
        desired = self.config.desired_max_temp
        battery = self.config.battery_target
        if self.config.power_source_aware and power_source is PowerSource.AC:
            return f"Should be {desired}C (on AC)"
        if self.config.power_source_aware and power_source is PowerSource.BATTERY:
            return f"Should be {battery}C (on batt)"
        return f"Should be {desired}C (or {battery}C on batt)"

    def _analyze_history(self) -> Optional[HistoryReport]:
        try:
            report = self.analyzer.time_since_last_fix(self.clock())
        except OSError as e:
            logger.warning(f"Could not read event log history: {e}")
            return None
        self._record(PLAIN.format(text=self.analyzer.describe(report)))
        return report

    def _trim_log(self) -> bool:
        try:
            return self.store.trim()
        except LogWriteError as e:
            self._report_log_failure(e)
            return False

    def run_cycle(self) -> CycleResult:
        """
        One probe → classify → correct → record → analyze → trim pass.

        Returns:
            CycleResult describing the cycle, including the next sleep interval
        """
        power_source = self.power_reader()
        self._record(PLAIN.format(text=f"Waking up... (power: {power_source.value})"))

        observation: Optional[int] = None
        probe_error: Optional[str] = None
        try:
            observation = self.probe.read()
        except ProbeError as e:
            probe_error = e.reason

        classification = self._classify(observation, power_source)
        correction = None

        if classification is Classification.INCORRECT:
            if probe_error is not None:
                self._record(TAGGED.format(tag=TAG_UNREADABLE, text=f"Settings UNREADABLE ({probe_error})"))
            else:
                self._record(TAGGED.format(tag=TAG_INCORRECT,
                                           text=f"Settings INCORRECT (max temp = {observation}C)"))
            self._record(PLAIN.format(text=self._expected_description(power_source)))
            self._record(TAGGED.format(tag=TAG_REAPPLY, text="Re-applying"))

            correction = self.corrector.apply(self.config.desired_max_temp)
            self.correction_count += 1
            if not correction.success:
                self._record(PLAIN.format(text=f"Re-apply FAILED ({correction.error}), retrying next cycle"))
        else:
            self._record(TAGGED.format(tag=TAG_CORRECT, text=f"Settings CORRECT (max temp = {observation}C)"))
            self._record(PLAIN.format(text="No action required"))

        history = self._analyze_history()
        trimmed = self._trim_log()

        self.phase = next_phase(self.phase, classification)
        sleep_seconds = self.interval_for(self.phase)
        self._record(PLAIN.format(text=f"Going to sleep for {sleep_seconds / 60:g} minute(s)..."))

        self.cycle_count += 1
        self.last_result = CycleResult(
            observation=observation,
            classification=classification,
            phase=self.phase,
            sleep_seconds=sleep_seconds,
            probe_error=probe_error,
            correction=correction,
            history=history,
            power_source=power_source,
            trimmed=trimmed,
        )
        return self.last_result

    # ------------------------------------------------------------------
    # Loop control
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Run cycles until stop() is called"""
        logger.info("Throttle guard loop starting")

        while not self.stop_event.is_set():
            try:
                sleep_seconds = self.run_cycle().sleep_seconds
            except Exception as e:
                logger.error(f"Error in control cycle: {e}", exc_info=True)
                sleep_seconds = self.config.fast_poll_interval_seconds

            # The sleep is the only point where a stop request takes effect
            if self.stop_event.wait(sleep_seconds):
                break

        logger.info(f"Throttle guard loop stopped after {self.cycle_count} cycle(s)")

    def stop(self) -> None:
        """Request shutdown; safe to call from a signal handler"""
        self.stop_event.set()

    def get_status(self) -> Dict[str, Any]:
        """Current service status"""
        last = self.last_result
        return {
            'running': not self.stop_event.is_set(),
            'phase': self.phase.name,
            'poll_interval_seconds': self.interval_for(self.phase),
            'cycle_count': self.cycle_count,
            'correction_count': self.correction_count,
            'log_write_failing': self.log_write_failing,
            'last_observation': last.observation if last else None,
            'last_classification': last.classification.name if last else None,
        }
