"""Batch-level error collection."""

from typing import Any, Dict, List, Optional

from .logging_config import get_logger


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.

    Per-file failures are reported with ``add_error`` and logged as a summary
    when the block exits; they never abort the batch.
    """

    def __init__(self, operation_name: str = "Batch Operation", logger: Optional[Any] = None):
        self.operation_name = operation_name
        self.errors: List[Dict[str, str]] = []
        self.logger = logger or get_logger("photo-pipeline.batch")

    def __enter__(self) -> "BatchOperationContextManager":
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        if exc_type is GeneratorExit:
            self.logger.warning(f"{self.operation_name} was abandoned by its consumer.")
        elif exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb),
            )
        elif self.errors:
            self.logger.warning(f"{self.operation_name} completed with {len(self.errors)} error(s).")
            for i, error_detail in enumerate(self.errors):
                self.logger.error(
                    f"  Error {i + 1}/{len(self.errors)} for item '{error_detail['item']}': "
                    f"[{error_detail['kind']}] {error_detail['error']}"
                )
        else:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Never swallow exceptions raised inside the block.
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item", kind: str = "") -> None:
        """Record a failure for one item within the ``with`` block."""
        self.errors.append({"item": item_identifier, "error": str(error_message), "kind": kind})
        self.logger.debug(f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}")
