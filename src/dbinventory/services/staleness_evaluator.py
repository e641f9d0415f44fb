"""
Backup staleness evaluation.

Narrows a working set of databases to those missing a recent full and/or
log backup, using the instance's backup history, and notes databases whose
only backups are copy-only.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from ..exceptions import HistoryLookupError
from ..models import (
    BackupType,
    DatabaseRecord,
    NO_LOG_BACKUP_RECOVERY_MODEL,
    SCRATCH_DATABASE,
    StalenessPolicy,
)
from .filter_selector import NameComparer, case_sensitive

logger = logging.getLogger(__name__)

COPY_ONLY_NOTE = "Only CopyOnly backups"


class HistoryLookup(Protocol):
    """Capability to list databases that have a qualifying backup."""

    instance: str

    def last_backups(
        self,
        backup_type: BackupType,
        ignore_copy_only: bool = True,
        since: Optional[datetime] = None,
    ) -> set[str]:
        ...


def _naive(value: datetime) -> datetime:
    """msdb stores server-local naive times; drop any offset before comparing."""
    return value.replace(tzinfo=None) if value.tzinfo else value


def is_older_than(timestamp: Optional[datetime], threshold: datetime) -> bool:
    """True when a backup timestamp is missing or strictly before the threshold."""
    if timestamp is None:
        return True
    return _naive(timestamp) < _naive(threshold)


class StalenessEvaluator:
    """Applies a StalenessPolicy to a working set of databases."""

    def __init__(self, name_comparer: Optional[NameComparer] = None):
        self._compare = name_comparer or case_sensitive

    def _matches_any(self, name: str, names: Iterable[str]) -> bool:
        return any(self._compare(name, other) for other in names)

    def _is_scratch(self, db: DatabaseRecord) -> bool:
        return db.name.lower() == SCRATCH_DATABASE

    def _backed_up(
        self,
        history: HistoryLookup,
        backup_type: BackupType,
        since: Optional[datetime],
    ) -> set[str]:
        instance = getattr(history, "instance", "unknown")
        try:
            names = history.last_backups(
                backup_type, ignore_copy_only=True, since=since
            )
        except HistoryLookupError:
            raise
        except Exception as e:
            raise HistoryLookupError(instance, str(e)) from e

        logger.debug(
            f"{len(names)} databases on {instance} have a {backup_type.value} "
            f"backup{f' since {since.isoformat()}' if since else ''}"
        )
        return names

    def apply_staleness(
        self,
        working_set: Sequence[DatabaseRecord],
        policy: StalenessPolicy,
        history: HistoryLookup,
    ) -> list[DatabaseRecord]:
        """
        Keep only databases missing the backups the policy asks about.

        Args:
            working_set: Databases selected by the filter stage
            policy: Full and log staleness policy
            history: Backup history lookup for the same instance

        Returns:
            New list of stale databases, annotated with a backup status note
            when a full-backup policy is active

        Raises:
            HistoryLookupError: If backup history cannot be read
        """
        databases = list(working_set)
        if not policy.is_active:
            return databases

        if policy.full_active:
            backed_up = self._backed_up(
                history, BackupType.FULL, policy.no_full_backup_since
            )
            databases = [
                db for db in databases
                if not self._matches_any(db.name, backed_up) and not self._is_scratch(db)
            ]

        if policy.log_active:
            backed_up = self._backed_up(
                history, BackupType.LOG, policy.no_log_backup_since
            )
            databases = [
                db for db in databases
                if not self._matches_any(db.name, backed_up)
                and not self._is_scratch(db)
                and db.recovery_model != NO_LOG_BACKUP_RECOVERY_MODEL
            ]

        # Single record-level age check against the last full backup date,
        # whichever threshold is set; the full threshold wins when both are.
        threshold = policy.threshold
        if threshold is not None:
            databases = [
                db for db in databases
                if is_older_than(db.last_full_backup, threshold)
            ]

        if policy.full_active:
            databases = [
                db.annotate(backup_status=COPY_ONLY_NOTE)
                if db.has_only_copy_only_backups
                else db
                for db in databases
            ]

        return databases
