#!/usr/bin/env python3
"""
Event Log Store

Append-only, line-oriented record of everything the daemon observes and does.
Each line is "Mon DD HH:MM:SS <message>". The file is the daemon's only
durable state: on restart, history is rebuilt by scanning it backward.

Key features:
- One write() per line in append mode (readers never see a torn line)
- Trim to the newest N lines through a temp file + os.replace
- Reverse iteration in fixed-size blocks (never loads the whole file)
"""

import logging
import os
import shutil
from collections import deque
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from .errors import LogWriteError
from .models import LogEntry, MARKER_TAGS, TAG_REAPPLY

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%b %d %H:%M:%S"
READ_BLOCK_SIZE = 8192

# Timestamps have no year; anything further ahead than this belongs to last year
FUTURE_TOLERANCE = timedelta(days=1)

KNOWN_TAGS = MARKER_TAGS + (TAG_REAPPLY,)


def format_line(timestamp: datetime, message: str) -> str:
    """Render one log line (without newline)"""
    return f"{timestamp.strftime(TIMESTAMP_FORMAT)} {message}"


def parse_timestamp(text: str, now: datetime) -> Optional[datetime]:
    """
    Parse a year-less "Mon DD HH:MM:SS" timestamp relative to now.

    The current year is assumed; a result more than a day in the future
    is taken to be from the previous year (e.g. a December entry read in January).

    Returns:
        datetime, or None if the text is not a valid timestamp
    """
    for year in (now.year, now.year - 1):
        try:
            parsed = datetime.strptime(f"{year} {text}", f"%Y {TIMESTAMP_FORMAT}")
        except ValueError:
            # Feb 29 only exists in leap years; try the previous year
            continue
        if parsed - now > FUTURE_TOLERANCE:
            continue
        return parsed
    return None


def parse_line(line: str, now: datetime) -> Optional[LogEntry]:
    """Parse one log line into a LogEntry, or None if it has no valid timestamp"""
    parts = line.strip().split(None, 3)
    if len(parts) < 3:
        return None

    timestamp = parse_timestamp(" ".join(parts[:3]), now)
    if timestamp is None:
        return None

    message = parts[3] if len(parts) > 3 else ""
    first_word = message.split(None, 1)[0] if message else ""
    tag = first_word if first_word in KNOWN_TAGS else None
    return LogEntry(timestamp=timestamp, message=message, tag=tag)


class EventLogStore:
    """
    Persistent event log with bounded retention.

    Only the control loop writes to it, so no locking is needed.
    """

    def __init__(
        self,
        log_path: Path,
        max_lines: int,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Args:
            log_path: Path of the event log file
            max_lines: Retention bound, oldest lines are dropped beyond it
            clock: Source of wall-clock time for new entries
        """
        if max_lines < 1:
            raise ValueError("max_lines must be at least 1")

        self.log_path = Path(log_path)
        self.max_lines = max_lines
        self.clock = clock

    def exists(self) -> bool:
        return self.log_path.exists()

    def append(self, message: str, timestamp: Optional[datetime] = None) -> str:
        """
        Append one timestamped line.

        Returns:
            The line as written (without newline)

        Raises:
            LogWriteError: If the file cannot be written
        """
        # One event per line: embedded line breaks would leave untimestamped lines
        line = format_line(timestamp or self.clock(), " ".join(message.splitlines()))
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, 'a', encoding='utf-8') as f:
                f.write(line + "\n")
        except OSError as e:
            raise LogWriteError(f"Cannot append to {self.log_path}: {e}") from e
        return line

    def read_lines(self) -> List[str]:
        """All lines, oldest first (empty list if the file does not exist)"""
        if not self.exists():
            return []
        with open(self.log_path, 'r', encoding='utf-8', errors='replace') as f:
            return [line.rstrip("\n") for line in f]

    def iter_lines_reversed(self, block_size: int = READ_BLOCK_SIZE) -> Iterator[str]:
        """Yield non-empty lines newest first, reading the file backward in blocks"""
        if not self.exists():
            return

        with open(self.log_path, 'rb') as f:
            f.seek(0, os.SEEK_END)
            position = f.tell()
            remainder = b""

            while position > 0:
                read_size = min(block_size, position)
                position -= read_size
                f.seek(position)
                chunk = f.read(read_size) + remainder

                lines = chunk.split(b"\n")
                # First piece may be the tail of a line that starts in an earlier block
                remainder = lines.pop(0)
                for raw in reversed(lines):
                    if raw.strip():
                        yield raw.decode('utf-8', errors='replace')

            if remainder.strip():
                yield remainder.decode('utf-8', errors='replace')

    def iter_entries_reversed(self, now: Optional[datetime] = None) -> Iterator[LogEntry]:
        """Yield parsed entries newest first, skipping lines without a valid timestamp"""
        now = now or self.clock()
        for line in self.iter_lines_reversed():
            entry = parse_line(line, now)
            if entry is not None:
                yield entry

    def trim(self) -> bool:
        """
        Drop the oldest lines so at most max_lines remain.

        Returns:
            True if the file was trimmed

        Raises:
            LogWriteError: If the file cannot be rewritten
        """
        if not self.exists():
            return False

        tmp_path = self.log_path.with_name(self.log_path.name + ".tmp")
        try:
            total = 0
            # Bytes in, bytes out: lines are kept exactly as written
            with open(self.log_path, 'rb') as f:
                newest = deque(maxlen=self.max_lines)
                for line in f:
                    newest.append(line)
                    total += 1

            if total <= self.max_lines:
                return False

            try:
                with open(tmp_path, 'wb') as f:
                    f.writelines(newest)
                shutil.copymode(self.log_path, tmp_path)
                os.replace(tmp_path, self.log_path)
            except OSError:
                tmp_path.unlink(missing_ok=True)
                raise
        except OSError as e:
            raise LogWriteError(f"Cannot trim {self.log_path}: {e}") from e

        logger.debug(f"Trimmed event log from {total} to {len(newest)} lines")
        return True
