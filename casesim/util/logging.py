"""
Structured logging for embedding, indexing and retrieval operations.
Clinical text never goes through this logger; only ids, counts, models and scores.
"""

import logging
from typing import Any, Dict


class StructuredLogger:
    """Structured logger for case-similarity operations."""

    def __init__(self, name: str = "casesim"):
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

    def log_embedding_operation(self, operation: str, note_id: int, details: Dict[str, Any] = None, status: str = "success"):
        """Log an embedding cache operation for a single note."""
        log_details = {"note_id": note_id}
        if details:
            log_details.update(details)

        level = logging.WARNING if status == "failed" else logging.INFO
        self.log_operation(f"embedding.{operation}", status, log_details, level)

    def log_batch_run(self, processed: int, skipped: int, errors: int, details: Dict[str, Any] = None):
        """Log the tally of a batch embedding run."""
        log_details = {
            "processed": processed,
            "skipped": skipped,
            "errors": errors
        }
        if details:
            log_details.update(details)

        status = "partial" if errors else "success"
        self.log_operation("embedding.batch", status, log_details)

    def log_pipeline_step(self, step: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a step of the similar-case pipeline."""
        level = logging.WARNING if status in ("failed", "degraded") else logging.INFO
        self.log_operation(f"similar_cases.{step}", status, details, level)

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


# Global logger instance
logger = StructuredLogger()
