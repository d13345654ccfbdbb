"""
Structured operation logging for the hybrid retrieval engine.
Vector index, vectorization, search and persistence events share one format.
"""

import logging
from typing import Any, Dict

class StructuredLogger:
    """Structured logger for vector, search, reindex and flush operations."""

    def __init__(self, name: str = "hybridsearch"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector store operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        level = logging.WARNING if status in ("failed", "not_found") else logging.INFO
        self.log_operation(f"vector.{operation}", status, log_details, level=level)

    def log_search(self, kind: str, query: str, result_count: int, duration_ms: float = None, details: Dict[str, Any] = None):
        """Log a completed search (hybrid, vector, lexical, rag)."""
        log_details = {
            "query": truncate(query, 50),
            "result_count": result_count
        }
        if duration_ms is not None:
            log_details["duration_ms"] = round(duration_ms, 2)
        if details:
            log_details.update(details)

        self.log_operation(f"search.{kind}", "success", log_details)

    def log_search_failure(self, kind: str, query: str, error: Exception):
        """Log a sub-search that failed and was degraded to an empty batch."""
        log_details = {
            "query": truncate(query, 50),
            "error_type": type(error).__name__,
            "error": str(error)[:200]
        }
        self.log_operation(f"search.{kind}", "failed", log_details, level=logging.ERROR)

    def log_reindex(self, total: int, succeeded: int, failed: int, duration_ms: float, details: Dict[str, Any] = None):
        """Log a full reindex summary."""
        log_details = {
            "total": total,
            "succeeded": succeeded,
            "failed": failed,
            "duration_ms": round(duration_ms, 2)
        }
        if details:
            log_details.update(details)

        status = "success" if failed == 0 else "partial"
        self.log_operation("vector.reindex_all", status, log_details)

    def log_persistence(self, operation: str, path: str, status: str = "success", details: Dict[str, Any] = None):
        """Log index persist/load."""
        log_details = {"path": str(path)}
        if details:
            log_details.update(details)

        level = logging.ERROR if status == "failed" else logging.INFO
        self.log_operation(f"index.{operation}", status, log_details, level=level)

    def log_heartbeat_task(self, task_name: str, start_time: float, end_time: float, status: str = "success", details: Dict[str, Any] = None):
        """Log heartbeat task execution."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        log_details = {"duration_ms": duration_ms}
        if details:
            log_details.update(details)
        elif status == "success":
            log_details["message"] = f"Heartbeat task '{task_name}' completed in {duration_ms}ms"
        elif status == "failed":
            log_details["message"] = f"Heartbeat task '{task_name}' failed after {duration_ms}ms"

        level = logging.ERROR if status == "failed" else logging.INFO
        self.log_operation(f"heartbeat.{task_name}", status, log_details, level=level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


def truncate(value: str, limit: int = 100) -> str:
    """Truncate long strings for log details."""
    if value is None:
        return ""
    return value[:limit] + "..." if len(value) > limit else value


# Global logger instance
logger = StructuredLogger()
