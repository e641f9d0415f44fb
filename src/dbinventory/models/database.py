"""
Database inventory models.

Defines the snapshot of a database read from a SQL Server instance.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class DatabaseStatus(str, Enum):
    """Lifecycle status of a database."""

    NORMAL = "Normal"
    OFFLINE = "Offline"
    RECOVERING = "Recovering"
    RESTORING = "Restoring"
    STANDBY = "Standby"
    SUSPECT = "Suspect"
    EMERGENCY_MODE = "EmergencyMode"


class RecoveryModel(str, Enum):
    """Recovery model of a database."""

    FULL = "Full"
    SIMPLE = "Simple"
    BULK_LOGGED = "BulkLogged"


class AccessMode(str, Enum):
    """Read/write access mode of a database."""

    READ_ONLY = "ReadOnly"
    READ_WRITE = "ReadWrite"


# Server's temporary workspace database
SCRATCH_DATABASE = "tempdb"

# Recovery model that has no log backups
NO_LOG_BACKUP_RECOVERY_MODEL = RecoveryModel.SIMPLE


class BackupSetInfo(BaseModel):
    """A backup set recorded for a database."""

    backup_type: str = Field(..., description="Backup type code: D, I, L, ...")
    finished_at: Optional[datetime] = Field(default=None)
    is_copy_only: bool = Field(default=False)

    class Config:
        frozen = True


class DatabaseRecord(BaseModel):
    """
    Snapshot of one database on one server instance.

    Records are read once per invocation and never modified in place.
    Annotations (host identifiers, backup status note) are applied with
    ``annotate``, which returns a new record.
    """

    name: str = Field(..., description="Database name, unique per instance")
    status: DatabaseStatus = Field(default=DatabaseStatus.NORMAL)
    recovery_model: RecoveryModel = Field(default=RecoveryModel.FULL)
    read_only: bool = Field(default=False)
    encrypted: bool = Field(default=False)
    owner: Optional[str] = Field(default=None, description="Owner login name")
    is_system_object: bool = Field(default=False)
    is_accessible: bool = Field(default=True)
    size_mb: float = Field(default=0.0)
    compatibility: Optional[int] = Field(default=None)
    collation: Optional[str] = Field(default=None)

    last_full_backup: Optional[datetime] = Field(default=None)
    last_diff_backup: Optional[datetime] = Field(default=None)
    last_log_backup: Optional[datetime] = Field(default=None)
    backup_sets: tuple[BackupSetInfo, ...] = Field(default_factory=tuple)

    # Only populated when last-used data is requested
    last_read: Optional[datetime] = Field(default=None)
    last_write: Optional[datetime] = Field(default=None)

    # Annotations
    computer_name: Optional[str] = Field(default=None)
    instance_name: Optional[str] = Field(default=None)
    sql_instance: Optional[str] = Field(default=None)
    backup_status: Optional[str] = Field(
        default=None,
        description="Explanatory note set when all recorded backups are copy-only"
    )

    class Config:
        frozen = True

    @property
    def access_mode(self) -> AccessMode:
        return AccessMode.READ_ONLY if self.read_only else AccessMode.READ_WRITE

    @property
    def has_only_copy_only_backups(self) -> bool:
        """True when at least one backup set exists and every one is copy-only."""
        return bool(self.backup_sets) and all(
            backup_set.is_copy_only for backup_set in self.backup_sets
        )

    def annotate(self, **fields) -> "DatabaseRecord":
        """Return a copy of this record with the given annotation fields set."""
        return self.model_copy(update=fields)
