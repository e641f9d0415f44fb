"""
Inventory report storage.

Persists instance reports to Azure Table Storage, one entity per database.
"""

import logging
import re
from typing import Any, Optional

from azure.core.exceptions import AzureError, ResourceExistsError

from ..config import AzureClients, get_settings
from ..exceptions import ReportStoreError
from ..models import InstanceReport

logger = logging.getLogger(__name__)

# Characters not allowed in PartitionKey / RowKey
_INVALID_KEY_CHARS = re.compile(r"[/\\#?\x00-\x1f\x7f-\x9f]")


def sanitize_key(value: str) -> str:
    """Make a value safe for use as a table key."""
    return _INVALID_KEY_CHARS.sub("_", value)


class ReportStore:
    """
    Reporter that stores inventory reports in Azure Table Storage.

    Entities use:
    - PartitionKey: SQL instance name
    - RowKey: run id + database name
    """

    def __init__(self, azure_clients: Optional[AzureClients] = None):
        """
        Initialize report store.

        Args:
            azure_clients: Azure clients instance. If None, uses the global one.
        """
        from ..config.azure_clients import get_azure_clients

        self._clients = azure_clients or get_azure_clients()
        self._settings = get_settings()
        self._table_name = self._settings.report_table_name
        self._table_ready = False

    def _get_table_client(self):
        """Get table client, ensuring table exists."""
        table_client = self._clients.get_table_client(self._table_name)
        if not self._table_ready:
            try:
                table_client.create_table()
                logger.info(f"Created table: {self._table_name}")
            except ResourceExistsError:
                pass
            self._table_ready = True
        return table_client

    def to_entities(self, report: InstanceReport) -> list[dict[str, Any]]:
        """Convert a report to table entities."""
        partition_key = sanitize_key(report.sql_instance or report.instance)
        entities = []
        for row in report.to_rows():
            entity = {
                "PartitionKey": partition_key,
                "RowKey": sanitize_key(f"{report.run_id}_{row['name']}"),
                "run_id": report.run_id,
                "instance": report.instance,
                "generated_at": report.generated_at.isoformat(),
            }
            for field, value in row.items():
                entity[field] = "" if value is None else value
            entities.append(entity)
        return entities

    def publish(self, report: InstanceReport) -> int:
        """
        Store a report.

        Args:
            report: Report to store

        Returns:
            Number of entities written

        Raises:
            ReportStoreError: If Table Storage rejects the write
        """
        entities = self.to_entities(report)
        try:
            table_client = self._get_table_client()
            for entity in entities:
                table_client.upsert_entity(entity)
        except AzureError as e:
            logger.error(f"Failed to store report {report.run_id} for {report.instance}: {e}")
            raise ReportStoreError(f"Failed to store report for {report.instance}: {e}") from e

        logger.info(
            f"Stored report {report.run_id} for {report.instance} "
            f"({len(entities)} databases)"
        )
        return len(entities)
