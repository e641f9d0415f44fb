"""
Inventory report models.

An InstanceReport is what the reporter collaborator receives: the final
annotated database records of one instance and the fields to display.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .database import DatabaseRecord

DISPLAY_FIELDS = [
    "computer_name",
    "instance_name",
    "sql_instance",
    "name",
    "status",
    "is_accessible",
    "recovery_model",
    "size_mb",
    "compatibility",
    "collation",
    "owner",
    "encrypted",
    "last_full_backup",
    "last_diff_backup",
    "last_log_backup",
]

BACKUP_STATUS_FIELD = "backup_status"
LAST_USED_FIELDS = ["last_read", "last_write"]


class InstanceReport(BaseModel):
    """Final result set for one instance."""

    run_id: str = Field(default_factory=lambda: str(uuid4()))
    instance: str = Field(..., description="Instance address as requested")
    sql_instance: Optional[str] = None
    databases: list[DatabaseRecord] = Field(default_factory=list)
    staleness_checked: bool = Field(default=False)
    include_last_used: bool = Field(default=False)
    generated_at: datetime = Field(default_factory=datetime.utcnow)

    def display_fields(self) -> list[str]:
        """Fields shown for each database."""
        fields = list(DISPLAY_FIELDS)
        if self.include_last_used:
            fields.extend(LAST_USED_FIELDS)
        if self.staleness_checked:
            fields.append(BACKUP_STATUS_FIELD)
        return fields

    def to_rows(self) -> list[dict[str, Any]]:
        """Render each database as a dict holding exactly the display fields."""
        fields = self.display_fields()
        rows = []
        for db in self.databases:
            dumped = db.model_dump(mode="json")
            rows.append({field: dumped.get(field) for field in fields})
        return rows


class InstanceFailure(BaseModel):
    """A per-instance error captured during a batch run."""

    instance: str
    error_kind: str = Field(..., description="ConnectionFailed, HistoryLookupFailed, ...")
    message: str


class InventoryResult(BaseModel):
    """Outcome of a batch run: one report per successful instance, plus failures."""

    reports: list[InstanceReport] = Field(default_factory=list)
    errors: list[InstanceFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def to_response(self) -> dict[str, Any]:
        """Serialize for the HTTP API."""
        return {
            "instances": [
                {
                    "instance": report.instance,
                    "sql_instance": report.sql_instance,
                    "run_id": report.run_id,
                    "fields": report.display_fields(),
                    "databases": report.to_rows(),
                    "count": len(report.databases),
                }
                for report in self.reports
            ],
            "errors": [error.model_dump() for error in self.errors],
        }
