#!/usr/bin/env python3
"""
Settings Corrector
Re-applies the desired temperature target (AC and battery) and the fixed
voltage offsets through the undervolt tool
"""

import logging
import subprocess
from pathlib import Path
from typing import List

from .config_manager import AuxOffsets
from .models import CorrectionResult
from .probe import summarize_stderr

logger = logging.getLogger(__name__)


class SettingsCorrector:
    """
    Wraps the write path of the undervolt tool.

    Failures are returned, never raised: the next cycle re-probes and
    retries, and the write is idempotent.
    """

    def __init__(
        self,
        undervolt_bin: Path,
        battery_delta: int,
        aux_offsets: AuxOffsets,
        timeout: float = 10.0
    ):
        """
        Args:
            undervolt_bin: Path to the undervolt executable
            battery_delta: Offset from the AC target used on battery
            aux_offsets: core/cache/gpu/uncore offsets in mV
            timeout: Seconds before the write is abandoned as failed
        """
        self.undervolt_bin = Path(undervolt_bin)
        self.battery_delta = battery_delta
        self.aux_offsets = aux_offsets
        self.timeout = timeout

    def build_command(self, desired_max_temp: int) -> List[str]:
        battery_target = desired_max_temp + self.battery_delta
        return [
            str(self.undervolt_bin),
            '--temp', str(desired_max_temp),
            '--temp-bat', str(battery_target),
            '--core', str(self.aux_offsets.core),
            '--cache', str(self.aux_offsets.cache),
            '--gpu', str(self.aux_offsets.gpu),
            '--uncore', str(self.aux_offsets.uncore),
        ]

    def apply(self, desired_max_temp: int) -> CorrectionResult:
        """
        Apply the desired settings.

        Args:
            desired_max_temp: AC temperature target

        Returns:
            CorrectionResult with success flag and error text on failure
        """
        battery_target = desired_max_temp + self.battery_delta
        cmd = self.build_command(desired_max_temp)

        def failed(error: str) -> CorrectionResult:
            logger.error(f"Corrective write failed: {error}")
            return CorrectionResult(False, desired_max_temp, battery_target, error)

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                # Own session: a SIGTERM/SIGINT aimed at the daemon must not abort a write
                start_new_session=True
            )
        except subprocess.TimeoutExpired:
            return failed(f"timed out after {self.timeout:g}s")
        except FileNotFoundError:
            return failed(f"{self.undervolt_bin} not found")
        except OSError as e:
            return failed(f"could not run {self.undervolt_bin}: {e}")

        if result.returncode != 0:
            return failed(f"exit code {result.returncode}: {summarize_stderr(result.stderr)}")

        logger.info(f"Applied temperature target {desired_max_temp}C (battery {battery_target}C)")
        return CorrectionResult(True, desired_max_temp, battery_target)
