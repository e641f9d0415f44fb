"""
Backup history and staleness policy models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class BackupType(str, Enum):
    """Backup types that can be checked for staleness."""

    FULL = "full"
    LOG = "log"

    @property
    def code(self) -> str:
        """Backup type code used by msdb.dbo.backupset."""
        return {BackupType.FULL: "D", BackupType.LOG: "L"}[self]


class BackupHistoryRecord(BaseModel):
    """
    Most recent backup of one type for one database.

    Produced by the backup history provider, never modified.
    """

    database_name: str
    backup_type: BackupType
    finished_at: Optional[datetime] = None
    is_copy_only: bool = False

    class Config:
        frozen = True


class StalenessPolicy(BaseModel):
    """
    Which databases to report as missing backups.

    For each backup type the policy is absent, "no backup at all"
    (``no_*_backup``) or "no backup since T" (``no_*_backup_since``).
    """

    no_full_backup: bool = Field(default=False)
    no_full_backup_since: Optional[datetime] = Field(default=None)
    no_log_backup: bool = Field(default=False)
    no_log_backup_since: Optional[datetime] = Field(default=None)

    @property
    def full_active(self) -> bool:
        return self.no_full_backup or self.no_full_backup_since is not None

    @property
    def log_active(self) -> bool:
        return self.no_log_backup or self.no_log_backup_since is not None

    @property
    def is_active(self) -> bool:
        return self.full_active or self.log_active

    @property
    def threshold(self) -> Optional[datetime]:
        """Threshold for the record-level age check. Full wins over log."""
        if self.no_full_backup_since is not None:
            return self.no_full_backup_since
        return self.no_log_backup_since
