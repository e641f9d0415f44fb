"""
Validation utilities for Dilux Database Inventory.

Provides validation functions for instance addresses and database names.
"""

import re
from typing import Iterable, Optional

# host, host\instance, host,port, tcp:host,port
_INSTANCE_PATTERN = re.compile(
    r"^(tcp:)?[A-Za-z0-9_.\-]+(\\[A-Za-z0-9_$\-]+)?(,\d{1,5})?$"
)


def validate_instance_address(address: str) -> tuple[bool, Optional[str]]:
    """
    Validate a SQL Server instance address.

    Accepts ``host``, ``host\\instance``, ``host,port`` and an optional
    ``tcp:`` prefix.

    Args:
        address: Instance address to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not address or not address.strip():
        return False, "Instance address cannot be empty"

    address = address.strip()

    if len(address) > 255:
        return False, "Instance address cannot exceed 255 characters"

    if not _INSTANCE_PATTERN.match(address):
        return False, f"Invalid instance address: {address}"

    if "," in address:
        port = int(address.rsplit(",", 1)[1])
        if port < 1 or port > 65535:
            return False, "Port must be between 1 and 65535"

    return True, None


def validate_database_name(name: str) -> tuple[bool, Optional[str]]:
    """
    Validate a database name used in a filter list.

    Args:
        name: Database name to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not name or not name.strip():
        return False, "Database name cannot be empty"

    # sysname limit
    if len(name) > 128:
        return False, "Database name cannot exceed 128 characters"

    return True, None


def validate_database_names(names: Iterable[str]) -> tuple[bool, Optional[str]]:
    """
    Validate every name in a database name list.

    Args:
        names: Database names to validate

    Returns:
        Tuple of (is_valid, error_message) for the first invalid name
    """
    for name in names:
        is_valid, error = validate_database_name(name)
        if not is_valid:
            return False, error
    return True, None
