"""Crash log for scan failures.

Pipeline stages run on background threads, so an unexpected exception there
never reaches the terminal. ExceptionLogger appends one JSON record per
failure to ``~/.lfs-scanner/logs/error_<timestamp>_<pid>.log``.
"""

import json
import os
import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LOG_DIR = Path.home() / ".lfs-scanner" / "logs"
RECORD_SEPARATOR = "\n---\n"


class ExceptionLogger:
    """Process-wide writer of scan failure records."""

    _instance: Optional["ExceptionLogger"] = None

    def __init__(self, log_file_path: Path):
        self.log_file_path = log_file_path

    @classmethod
    def initialize(cls, log_dir: Optional[Path] = None) -> "ExceptionLogger":
        """Create the crash log for this process, or return the existing one.

        Tests reset ``ExceptionLogger._instance`` to get a fresh log.

        Args:
            log_dir: Where to create the log file (default: ~/.lfs-scanner/logs)
        """
        if cls._instance is not None:
            return cls._instance

        log_dir = log_dir or DEFAULT_LOG_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file_path = log_dir / f"error_{stamp}_{os.getpid()}.log"
        log_file_path.touch()

        cls._instance = cls(log_file_path)
        return cls._instance

    @classmethod
    def get_instance(cls) -> Optional["ExceptionLogger"]:
        return cls._instance

    def log_exception(
        self,
        exception: BaseException,
        stage: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append a failure record.

        Args:
            exception: The failure
            stage: Pipeline stage (thread) it happened in; defaults to the
                current thread's name
            context: Extra fields such as the git command line
        """
        record = {
            "timestamp": datetime.now().isoformat(),
            "pid": os.getpid(),
            "stage": stage or threading.current_thread().name,
            "error_type": type(exception).__name__,
            "message": str(exception),
            "traceback": "".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            ),
            "context": context or {},
        }

        with open(self.log_file_path, "a") as f:
            f.write(json.dumps(record, indent=2))
            f.write(RECORD_SEPARATOR)

    def install_thread_exception_hook(self) -> None:
        """Record uncaught exceptions raised in stage threads."""

        def record_stage_crash(args: threading.ExceptHookArgs) -> None:
            thread = args.thread
            self.log_exception(
                args.exc_value or args.exc_type(),
                stage=thread.name if thread else None,
                context={"daemon": thread.daemon if thread else None},
            )

        threading.excepthook = record_stage_crash
