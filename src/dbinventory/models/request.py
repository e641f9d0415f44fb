"""
Inventory request model.

The structured request accepted by the inventory service, one per batch of
target instances.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..utils.validators import validate_instance_address
from .backup import StalenessPolicy
from .filters import FilterRequest
from .server import SqlCredential


class InventoryRequest(BaseModel):
    """Request to inventory databases on one or more instances."""

    instances: list[str] = Field(..., min_length=1)
    credential: SqlCredential = Field(default_factory=SqlCredential)
    filters: FilterRequest = Field(default_factory=FilterRequest)
    staleness: StalenessPolicy = Field(default_factory=StalenessPolicy)
    include_last_used: bool = Field(
        default=False, description="Also report last read and write times"
    )
    case_sensitive_names: Optional[bool] = Field(
        default=None,
        description="Name list matching; defaults to the configured setting"
    )
    persist: bool = Field(default=False, description="Store reports in Table Storage")

    @field_validator("instances")
    @classmethod
    def validate_instances(cls, v: list[str]) -> list[str]:
        """Validate each instance address."""
        cleaned = []
        for address in v:
            is_valid, error = validate_instance_address(address)
            if not is_valid:
                raise ValueError(error)
            cleaned.append(address.strip())
        return cleaned
