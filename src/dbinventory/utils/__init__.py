"""Utility functions for Dilux Database Inventory."""

from .validators import (
    validate_instance_address,
    validate_database_name,
    validate_database_names,
)

__all__ = [
    "validate_instance_address",
    "validate_database_name",
    "validate_database_names",
]
