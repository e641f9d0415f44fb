"""Data models for Dilux Database Inventory."""

from .database import (
    DatabaseRecord,
    DatabaseStatus,
    RecoveryModel,
    AccessMode,
    BackupSetInfo,
    SCRATCH_DATABASE,
    NO_LOG_BACKUP_RECOVERY_MODEL,
)
from .backup import BackupHistoryRecord, BackupType, StalenessPolicy
from .filters import FilterCriterion, FilterRequest
from .server import ServerHandle, SqlCredential
from .request import InventoryRequest
from .report import InstanceReport, InstanceFailure, InventoryResult, DISPLAY_FIELDS

__all__ = [
    # Database
    "DatabaseRecord",
    "DatabaseStatus",
    "RecoveryModel",
    "AccessMode",
    "BackupSetInfo",
    "SCRATCH_DATABASE",
    "NO_LOG_BACKUP_RECOVERY_MODEL",
    # Backup
    "BackupHistoryRecord",
    "BackupType",
    "StalenessPolicy",
    # Filters
    "FilterCriterion",
    "FilterRequest",
    # Server
    "ServerHandle",
    "SqlCredential",
    # Request / report
    "InventoryRequest",
    "InstanceReport",
    "InstanceFailure",
    "InventoryResult",
    "DISPLAY_FIELDS",
]
