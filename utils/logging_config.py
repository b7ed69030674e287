# utils/logging_config.py

import logging
import logging.handlers
import sys
from collections import deque
from pathlib import Path
import json
from datetime import datetime

CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'


def setup_logging(log_level: str = "INFO", log_dir: str = "logs",
                  name: str = "asset_dedup", structured: bool = False) -> logging.Logger:
    """
    Configure the root logger with console and rotating file handlers

    Soft failures in the pipeline log at WARNING, so the console shows
    them at the default level.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Re-running setup must not stack handlers
    for handler in list(root.handlers):
        if getattr(handler, '_asset_dedup', False):
            root.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    # File handler (rotating)
    file_handler = logging.handlers.RotatingFileHandler(
        log_path / f"{name}.log",
        maxBytes=10*1024*1024,  # 10 MB
        backupCount=5
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    handlers = [console_handler, file_handler]

    if structured:
        json_handler = logging.handlers.RotatingFileHandler(
            log_path / f"{name}_structured.json",
            maxBytes=10*1024*1024,
            backupCount=5
        )
        json_handler.setLevel(logging.INFO)
        json_handler.setFormatter(JSONFormatter())
        handlers.append(json_handler)

    for handler in handlers:
        handler._asset_dedup = True
        root.addHandler(handler)

    return logging.getLogger(name)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON"""

    def format(self, record):
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class PerformanceLogger:
    """
    Keep recent per-stage durations
    """

    def __init__(self, max_metrics: int = 1000):
        self.metrics = deque(maxlen=max_metrics)

    def log_metric(self, operation: str, duration: float, **metadata):
        """Log a performance metric"""
        metric = {
            'timestamp': datetime.now().isoformat(),
            'operation': operation,
            'duration_seconds': duration,
            **metadata
        }
        self.metrics.append(metric)

    def get_statistics(self, operation: str = None) -> dict:
        """Get statistics for operations"""
        import numpy as np

        if operation:
            durations = [m['duration_seconds'] for m in self.metrics
                         if m['operation'] == operation]
        else:
            durations = [m['duration_seconds'] for m in self.metrics]

        if not durations:
            return {}

        return {
            'count': len(durations),
            'mean': float(np.mean(durations)),
            'median': float(np.median(durations)),
            'min': float(np.min(durations)),
            'max': float(np.max(durations)),
            'std': float(np.std(durations)),
            'total': float(np.sum(durations))
        }
