"""
Logger utility for the Semaphore Contention Simulator.

Provides thread-safe console/file logging with verbosity levels.
"""

import sys
import threading
from typing import Optional
from datetime import datetime


class SimulatorLogger:
    """
    Logger for simulation progress and per-request diagnostics.

    Format: "[HH:MM:SS] Container X: resource_Y - TIMEOUT (...)"
    Worker threads share one logger, so every write is serialized.
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None, enabled: bool = True):
        """
        Initialize logger.

        Args:
            verbose: Enable debug output (per-request events)
            log_file: Optional file path for logging
            enabled: When False only warnings and errors are emitted
        """
        self.verbose = verbose
        self.enabled = enabled
        self.log_file = log_file
        self.file_handle = None
        self._lock = threading.Lock()

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Contention Simulation Log - {timestamp}\n")
            self.file_handle.write("="*60 + "\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error)
        """
        if level == "debug" and not self.verbose:
            return
        if level in ("info", "debug") and not self.enabled:
            return

        formatted = self._format_message(message, level)
        stream = sys.stderr if level == "error" else sys.stdout

        with self._lock:
            print(formatted, file=stream)

            if self.file_handle:
                self.file_handle.write(formatted + "\n")
                self.file_handle.flush()

    def _format_message(self, message: str, level: str) -> str:
        """Format message with level prefix."""
        if level == "error":
            return f"[ERROR] {message}"
        elif level == "warning":
            return f"[WARNING] {message}"
        elif level == "debug":
            return f"[DEBUG] [{datetime.now().strftime('%H:%M:%S')}] {message}"
        else:
            return message

    def log_section(self, title: str, char: str = "=") -> None:
        """Log a banner line around a title."""
        self.log(f"\n{char*60}")
        self.log(title)
        self.log(f"{char*60}")

    def log_timeout(self, worker_id: int, resource_id: str, waited_ms: float) -> None:
        """
        Log an acquisition timeout.

        Args:
            worker_id: Worker that timed out
            resource_id: Resource it was waiting for
            waited_ms: Wall time spent in acquire
        """
        self.log(
            f"Container {worker_id}: {resource_id} - TIMEOUT (waited {waited_ms:.0f} ms)",
            "debug"
        )

    def log_conflict(self, worker_id: int, resource_id: str, users: int, capacity: int) -> None:
        """
        Log a capacity violation.

        Args:
            worker_id: Worker that observed the violation
            resource_id: Resource being accessed
            users: Concurrent users observed by the worker
            capacity: Gate capacity K
        """
        self.log(
            f"Container {worker_id}: {resource_id} - CONFLICT ({users} users > capacity {capacity})",
            "debug"
        )

    def close(self) -> None:
        """Close log file if open."""
        with self._lock:
            if self.file_handle:
                self.file_handle.close()
                self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        self.close()
