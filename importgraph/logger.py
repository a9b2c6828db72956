import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class RunLogger:
    """
    Logs one profiling run using Python's standard logging.

    Besides its own run messages, the handlers are attached to the
    ``importgraph`` logger, so module loggers of the package
    (``importgraph.module_graph`` and friends) flow to the same console and
    file. Structured payloads are written as JSON where possible.

    Example:
        >>> with RunLogger("startup", level=logging.INFO) as run_logger:
        ...     run_logger.start_run("my_app.main")
        ...     run_logger.log_params({"mode": "tree"})
        ...     run_logger.log_metrics({"modules": 412, "packages": 17})
    """

    def __init__(
        self,
        name: str = "importgraph",
        level: int = logging.WARNING,
        log_dir: Optional[Union[str, Path]] = None,
    ):
        """
        Args:
            name: Name for the run, used in the log file name
            level: Logging level (default: WARNING)
            log_dir: Directory for log files (default: None, console only)
        """
        self.name = name
        self.package_logger = logging.getLogger("importgraph")
        self.package_logger.setLevel(level)
        self.logger = logging.getLogger(f"importgraph.run.{name}")

        # Avoid duplicate handlers if the package logger is already configured
        if not self.package_logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(level)
            console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self.package_logger.addHandler(console_handler)

            if log_dir:
                log_dir = Path(log_dir)
                log_dir.mkdir(parents=True, exist_ok=True)

                file_handler = logging.FileHandler(
                    log_dir / f"{name}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
                )
                file_handler.setLevel(level)
                file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
                self.package_logger.addHandler(file_handler)

        self.run_active = False
        self.run_name: Optional[str] = None

    def log_params(self, params: Dict[str, Any]) -> None:
        """Log the options a run was started with."""
        try:
            self.logger.info(f"PARAMS: {json.dumps(params, indent=2, default=str)}")
        except (TypeError, ValueError) as e:
            self.logger.info(f"PARAMS: {params} (JSON serialization failed: {e})")

    def log_metrics(self, metrics: Dict[str, Union[float, int]]) -> None:
        """Log graph sizes and timings."""
        try:
            self.logger.info(f"METRICS: {json.dumps({'metrics': metrics}, indent=2)}")
        except (TypeError, ValueError) as e:
            self.logger.info(f"METRICS: {metrics} (JSON serialization failed: {e})")

    def log_errors(self, error: Union[str, Exception], context: Optional[Dict[str, Any]] = None) -> None:
        """Log errors with optional context."""
        context_str = ""
        if context:
            try:
                context_str = f" | Context: {json.dumps(context, indent=2, default=str)}"
            except (TypeError, ValueError):
                context_str = f" | Context: {context}"

        if isinstance(error, Exception):
            self.logger.error(f"ERROR: {error}{context_str}", exc_info=error)
        else:
            self.logger.error(f"ERROR: {error}{context_str}")

    def start_run(self, name: str, **metadata) -> None:
        self.run_active = True
        self.run_name = name
        self.logger.info(f"STARTING RUN: {name}")
        if metadata:
            self.log_params(metadata)

    def end_run(self) -> None:
        if self.run_active:
            self.logger.info(f"RUN COMPLETED: {self.run_name}")
            self.run_active = False
            self.run_name = None

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.log_errors(
                f"Run failed with {exc_type.__name__}: {exc_val}",
                {"exception_type": exc_type.__name__},
            )
        self.end_run()
