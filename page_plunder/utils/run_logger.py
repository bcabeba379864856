"""
Run logger for plunder jobs and refinement iterations.

Supports configurable log levels (NONE, INFO, DEBUG, TRACE) and dual output:
- Console: Human-readable formatted output
- File: JSON Lines format for parsing and analysis
"""

import json
import os
import traceback
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv


class LogLevel(Enum):
    """Logging levels for run output."""

    NONE = 0
    INFO = 1
    DEBUG = 2
    TRACE = 3


class RunLogger:
    """Centralized logger for job and refinement events with configurable levels."""

    _instance: Optional["RunLogger"] = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the logger with configuration from environment."""
        if self._initialized:
            return

        load_dotenv()
        self.configure()
        self._initialized = True

    def configure(
        self,
        level: Optional[str] = None,
        log_to_file: Optional[bool] = None,
        log_dir: Optional[Path] = None,
    ):
        """
        (Re)apply configuration; unset arguments fall back to the environment.

        Args:
            level: Level name (NONE, INFO, DEBUG, TRACE).
            log_to_file: Whether to append JSON Lines records.
            log_dir: Root directory for per-job log files.
        """
        level_str = (level or os.getenv("PLUNDER_LOG_LEVEL", "INFO")).upper()
        try:
            self.level = LogLevel[level_str]
        except KeyError:
            self.level = LogLevel.INFO

        if log_to_file is None:
            log_to_file = os.getenv("PLUNDER_LOG_TO_FILE", "true").lower() == "true"
        self.log_to_file = log_to_file
        self.log_dir = Path(log_dir or os.getenv("PLUNDER_LOG_DIR", "outputs"))

    def _should_log(self, min_level: LogLevel) -> bool:
        """Check if we should log at the given level."""
        return self.level.value >= min_level.value

    def _format_timestamp(self) -> str:
        """Get ISO8601 formatted timestamp."""
        return datetime.now().isoformat()

    def _write_to_file(self, job_id: Optional[str], log_entry: Dict[str, Any]):
        """Write log entry to JSON Lines file."""
        if not self.log_to_file or not job_id:
            return

        log_file = self.log_dir / job_id / "logs" / "refinement.jsonl"
        log_file.parent.mkdir(parents=True, exist_ok=True)

        with open(log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(log_entry, ensure_ascii=False, default=str) + "\n")

    def log_transition(
        self,
        job_id: Optional[str],
        state: str,
        iteration: Optional[int] = None,
    ):
        """Log a refinement state-machine transition."""
        if not self._should_log(LogLevel.DEBUG):
            return

        timestamp = self._format_timestamp()
        console_msg = f"[{timestamp}] ↪ [{job_id or '-'}] state={state}"
        if iteration is not None:
            console_msg += f" | iteration={iteration}"
        print(console_msg)

        self._write_to_file(job_id, {
            "timestamp": timestamp,
            "level": "DEBUG",
            "event": "transition",
            "job_id": job_id,
            "state": state,
            "iteration": iteration,
        })

    def log_iteration(
        self,
        job_id: Optional[str],
        iteration: int,
        desktop_mismatch: float,
        mobile_mismatch: float,
        passed: bool,
        adjustments: Optional[List[str]] = None,
    ):
        """Log the scores of one refinement iteration."""
        if not self._should_log(LogLevel.INFO):
            return

        timestamp = self._format_timestamp()
        verdict = "✅ pass" if passed else "❌ miss"
        print(
            f"[{timestamp}] 📊 [{job_id or '-'}] iteration {iteration}: "
            f"desktop {desktop_mismatch:.2f}% | mobile {mobile_mismatch:.2f}% | {verdict}"
        )
        if adjustments and self._should_log(LogLevel.DEBUG):
            print(f"  Adjustments: {', '.join(adjustments)}")

        self._write_to_file(job_id, {
            "timestamp": timestamp,
            "level": "INFO",
            "event": "iteration",
            "job_id": job_id,
            "iteration": iteration,
            "desktop_mismatch": desktop_mismatch,
            "mobile_mismatch": mobile_mismatch,
            "passed": passed,
            "adjustments": adjustments or [],
        })

    def log_trace(self, job_id: Optional[str], event: str, payload: Dict[str, Any]):
        """Log full detail (plans, adjustment effects) at TRACE level."""
        if not self._should_log(LogLevel.TRACE):
            return

        timestamp = self._format_timestamp()
        print(f"[{timestamp}] 🔎 [{job_id or '-'}] {event}")
        for key, value in payload.items():
            preview = str(value)
            if len(preview) > 500:
                preview = preview[:500] + "... [truncated]"
            print(f"    {key}: {preview}")

        self._write_to_file(job_id, {
            "timestamp": timestamp,
            "level": "TRACE",
            "event": event,
            "job_id": job_id,
            "payload": payload,
        })

    def log_info(self, job_id: Optional[str], message: str):
        """Log a plain progress message."""
        if not self._should_log(LogLevel.INFO):
            return

        timestamp = self._format_timestamp()
        print(f"[{timestamp}] 🔵 [{job_id or '-'}] {message}")
        self._write_to_file(job_id, {
            "timestamp": timestamp,
            "level": "INFO",
            "event": "info",
            "job_id": job_id,
            "message": message,
        })

    def log_error(
        self,
        job_id: Optional[str],
        component: str,
        error: BaseException,
    ):
        """Log a failure that was handled (scoring) or ended a job."""
        if not self._should_log(LogLevel.INFO):
            return

        timestamp = self._format_timestamp()
        print(f"[{timestamp}] 🔴 [{job_id or '-'}] [{component}] {type(error).__name__}: {error}")

        log_entry = {
            "timestamp": timestamp,
            "level": "ERROR",
            "event": "error",
            "job_id": job_id,
            "component": component,
            "error_type": type(error).__name__,
            "error": str(error),
        }
        if self._should_log(LogLevel.DEBUG):
            log_entry["traceback"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        self._write_to_file(job_id, log_entry)


def get_logger() -> RunLogger:
    """Get the shared RunLogger instance."""
    return RunLogger()
