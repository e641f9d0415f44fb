"""
Filter request model.

A filter request carries at most one primary criterion plus an optional
exclusion list that composes with whichever criterion is active.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..exceptions import ConflictingFiltersError
from ..utils.validators import validate_database_names
from .database import AccessMode, DatabaseStatus, RecoveryModel


class FilterCriterion(str, Enum):
    """Primary selection criteria. Exactly one (or NONE) is active."""

    NONE = "none"
    SYSTEM_ONLY = "system_only"
    USER_ONLY = "user_only"
    DATABASES = "databases"
    STATUS = "status"
    OWNERS = "owners"
    ACCESS = "access"
    ENCRYPTED = "encrypted"
    RECOVERY_MODEL = "recovery_model"


class FilterRequest(BaseModel):
    """Selection criteria for databases on an instance."""

    system_only: bool = Field(default=False, description="Only system databases")
    user_only: bool = Field(default=False, description="Only user databases")
    databases: Optional[list[str]] = Field(
        default=None, description="Only databases with these names"
    )
    status: Optional[DatabaseStatus] = Field(default=None)
    owners: Optional[list[str]] = Field(
        default=None, description="Only databases owned by these logins"
    )
    access: Optional[AccessMode] = Field(default=None)
    encrypted: bool = Field(default=False, description="Only encrypted databases")
    recovery_model: Optional[RecoveryModel] = Field(default=None)

    exclude: Optional[list[str]] = Field(
        default=None, description="Names removed after the primary filter"
    )
    only_accessible: bool = Field(
        default=False, description="Drop inaccessible databases before filtering"
    )

    @field_validator("databases", "exclude")
    @classmethod
    def validate_names(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        """Validate database name lists."""
        if v is None:
            return v
        is_valid, error = validate_database_names(v)
        if not is_valid:
            raise ValueError(error)
        return v

    def populated_criteria(self) -> list[FilterCriterion]:
        """All primary criteria that carry a value, in declaration order."""
        populated = {
            FilterCriterion.SYSTEM_ONLY: self.system_only,
            FilterCriterion.USER_ONLY: self.user_only,
            FilterCriterion.DATABASES: bool(self.databases),
            FilterCriterion.STATUS: self.status is not None,
            FilterCriterion.OWNERS: bool(self.owners),
            FilterCriterion.ACCESS: self.access is not None,
            FilterCriterion.ENCRYPTED: self.encrypted,
            FilterCriterion.RECOVERY_MODEL: self.recovery_model is not None,
        }
        return [criterion for criterion, active in populated.items() if active]

    def active_criterion(self) -> FilterCriterion:
        """
        Resolve the single active criterion.

        Returns:
            The populated criterion, or FilterCriterion.NONE

        Raises:
            ConflictingFiltersError: If more than one criterion is populated
        """
        if self.system_only and self.user_only:
            raise ConflictingFiltersError(
                [FilterCriterion.SYSTEM_ONLY.value, FilterCriterion.USER_ONLY.value]
            )

        populated = self.populated_criteria()
        if len(populated) > 1:
            raise ConflictingFiltersError([c.value for c in populated])

        return populated[0] if populated else FilterCriterion.NONE
