"""
Inventory source interface.

Defines the collaborators the inventory pipeline consumes: connecting to an
instance, enumerating its databases and reading its backup history.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..exceptions import HistoryLookupError
from ..models import (
    BackupHistoryRecord,
    BackupType,
    DatabaseRecord,
    ServerHandle,
    SqlCredential,
)

logger = logging.getLogger(__name__)


class InventorySource(ABC):
    """
    Abstract base class for database inventory sources.

    Implementations raise DatabaseConnectionError from ``connect`` and
    ``list_databases``, and HistoryLookupError from ``last_backups``.
    """

    @abstractmethod
    def connect(self, instance_address: str, credential: SqlCredential) -> ServerHandle:
        """Open and verify a connection to an instance."""
        pass

    @abstractmethod
    def list_databases(
        self, handle: ServerHandle, include_last_used: bool = False
    ) -> list[DatabaseRecord]:
        """Read a snapshot of every database on the instance."""
        pass

    @abstractmethod
    def last_backups(
        self,
        handle: ServerHandle,
        backup_type: BackupType,
        ignore_copy_only: bool = True,
        since: Optional[datetime] = None,
    ) -> list[BackupHistoryRecord]:
        """Most recent backup of a type per database."""
        pass


class BackupHistoryLookup:
    """
    Backup history of one instance, as consumed by the staleness evaluator.

    Binds a source to an open handle and reduces history rows to the set
    of database names that have a qualifying backup.
    """

    def __init__(self, source: InventorySource, handle: ServerHandle):
        self._source = source
        self._handle = handle

    @property
    def instance(self) -> str:
        return self._handle.sql_instance

    def last_backups(
        self,
        backup_type: BackupType,
        ignore_copy_only: bool = True,
        since: Optional[datetime] = None,
    ) -> set[str]:
        """
        Names of databases with at least one qualifying backup.

        Raises:
            HistoryLookupError: If the history cannot be read
        """
        try:
            records = self._source.last_backups(
                self._handle,
                backup_type,
                ignore_copy_only=ignore_copy_only,
                since=since,
            )
        except HistoryLookupError:
            raise
        except Exception as e:
            logger.error(f"Backup history lookup failed on {self.instance}: {e}")
            raise HistoryLookupError(self.instance, str(e)) from e

        return {record.database_name for record in records}
