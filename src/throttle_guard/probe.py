#!/usr/bin/env python3
"""
Settings Probe
Reads the currently effective CPU temperature target through `undervolt -r`
"""

import logging
import re
import subprocess
from pathlib import Path
from typing import Optional

from .errors import ProbeError

logger = logging.getLogger(__name__)

# e.g. "temperature target: -2 (98C)"
TEMP_TARGET_FIELD = "temperature target"
TEMP_TARGET_VALUE = re.compile(r"\((\d+)\s*C?\)")
STDERR_LIMIT = 200


def summarize_stderr(stderr: Optional[str], limit: int = STDERR_LIMIT) -> str:
    """Tool stderr as a single line (tracebacks span many), truncated to limit"""
    return " ".join((stderr or "").split())[:limit]


def parse_temperature_target(output: str) -> Optional[int]:
    """
    Extract the temperature target (degrees C) from `undervolt -r` output.

    Returns:
        The value, or None if no recognizable field is present
    """
    for line in output.splitlines():
        if TEMP_TARGET_FIELD not in line.lower():
            continue
        match = TEMP_TARGET_VALUE.search(line)
        if match:
            return int(match.group(1))
    return None


class SettingsProbe:
    """Wraps the read path of the undervolt tool"""

    def __init__(self, undervolt_bin: Path, timeout: float = 10.0):
        self.undervolt_bin = Path(undervolt_bin)
        self.timeout = timeout

    def read(self) -> int:
        """
        Read the current temperature target.

        Returns:
            Temperature target in degrees C

        Raises:
            ProbeError: Tool missing, permission denied, timed out,
                failed, or printed no temperature target
        """
        cmd = [str(self.undervolt_bin), '-r']

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                start_new_session=True
            )
        except subprocess.TimeoutExpired:
            raise ProbeError(f"timed out after {self.timeout:g}s")
        except FileNotFoundError:
            raise ProbeError(f"{self.undervolt_bin} not found")
        except PermissionError:
            raise ProbeError(f"permission denied running {self.undervolt_bin}")
        except OSError as e:
            raise ProbeError(f"could not run {self.undervolt_bin}: {e}")

        if result.returncode != 0:
            raise ProbeError(f"exit code {result.returncode}: {summarize_stderr(result.stderr)}")

        value = parse_temperature_target(result.stdout or "")
        if value is None:
            raise ProbeError("no temperature target in output")

        logger.debug(f"Probed temperature target: {value}C")
        return value
