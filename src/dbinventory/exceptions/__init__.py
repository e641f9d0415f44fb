"""Custom exceptions for Dilux Database Inventory."""


class InventoryError(Exception):
    """Base exception for all Dilux Inventory errors."""

    pass


class ConflictingFiltersError(InventoryError):
    """More than one mutually exclusive filter was requested."""

    def __init__(self, criteria: list[str]):
        self.criteria = list(criteria)
        super().__init__(
            f"Filters cannot be combined: {', '.join(self.criteria)}"
        )


class InstanceError(InventoryError):
    """Base class for errors tied to a single server instance."""

    kind = "InstanceError"

    def __init__(self, instance: str, message: str):
        self.instance = instance
        self.message = message
        super().__init__(f"[{instance}] {message}")


class DatabaseConnectionError(InstanceError):
    """Error connecting to a server instance."""

    kind = "ConnectionFailed"


class HistoryLookupError(InstanceError):
    """Error reading backup history from a server instance."""

    kind = "HistoryLookupFailed"


class ReportStoreError(InventoryError):
    """Error persisting an inventory report."""

    pass


__all__ = [
    "InventoryError",
    "ConflictingFiltersError",
    "InstanceError",
    "DatabaseConnectionError",
    "HistoryLookupError",
    "ReportStoreError",
]
