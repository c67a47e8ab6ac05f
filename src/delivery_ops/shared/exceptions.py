"""
Custom exceptions for the delivery operations engine.

This module contains the error taxonomy shared by the transition engine,
the record store, the simulation scheduler and the HTTP layer.
"""

from typing import Any


class DeliveryOpsException(Exception):
    """Base exception for all delivery operations errors."""

    pass


class InvalidTransition(DeliveryOpsException):
    """Exception raised when a delivery status change violates the lifecycle."""

    def __init__(
        self,
        message: str,
        delivery_id: str | None = None,
        current_status: str | None = None,
        target_status: str | None = None,
    ):
        self.delivery_id = delivery_id
        self.current_status = current_status
        self.target_status = target_status

        error_parts = [message]

        if delivery_id:
            error_parts.append(f"Delivery: {delivery_id}")

        if current_status and target_status:
            error_parts.append(f"Transition: {current_status} -> {target_status}")

        super().__init__(" | ".join(error_parts))


class NotFound(DeliveryOpsException):
    """Exception raised when a referenced record does not exist."""

    def __init__(self, table: str, record_id: Any):
        self.table = table
        self.record_id = record_id

        super().__init__(f"No row in '{table}' with id '{record_id}'")


class StoreError(DeliveryOpsException):
    """Exception raised when the underlying record store read or write fails."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        table: str | None = None,
        original_error: Exception | None = None,
    ):
        self.operation = operation
        self.table = table
        self.original_error = original_error

        if operation and table:
            message = f"Store {operation} on '{table}' failed: {message}"

        if original_error:
            message = f"{message} (Original error: {original_error})"

        super().__init__(message)


class ResetError(DeliveryOpsException):
    """Exception raised when a bulk reset stops part way through its stages."""

    def __init__(
        self,
        stage: str,
        completed_stages: list[str] | None = None,
        original_error: Exception | None = None,
    ):
        self.stage = stage
        self.completed_stages = completed_stages or []
        self.original_error = original_error

        message = f"Reset failed while clearing '{stage}'"

        if self.completed_stages:
            message = f"{message}; already cleared: {', '.join(self.completed_stages)}"

        if original_error:
            message = f"{message} (Original error: {original_error})"

        super().__init__(message)


class SubscriptionError(DeliveryOpsException):
    """Exception raised when a change feed subscription is misused."""

    pass
