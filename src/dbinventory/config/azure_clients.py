"""
Azure client factory for creating and managing Azure SDK clients.

Provides lazy initialization of Azure clients to avoid unnecessary connections.
"""

from functools import cached_property
from typing import Optional

from azure.data.tables import TableClient, TableServiceClient
from azure.identity import DefaultAzureCredential

from .settings import Settings, get_settings


class AzureClients:
    """
    Factory class for Azure SDK clients.

    Provides lazy-loaded, cached clients for Table Storage, where
    inventory reports are kept.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize Azure clients factory.

        Args:
            settings: Application settings. If None, loads from environment.
        """
        self._settings = settings or get_settings()

    @property
    def settings(self) -> Settings:
        """Get settings instance."""
        return self._settings

    @cached_property
    def credential(self) -> DefaultAzureCredential:
        """
        Get Azure credential for authentication.

        Uses DefaultAzureCredential which tries multiple auth methods:
        - Environment variables
        - Managed Identity
        - Azure CLI
        - etc.
        """
        return DefaultAzureCredential()

    @cached_property
    def table_service_client(self) -> TableServiceClient:
        """
        Get Table Storage service client.

        With a storage account URL configured, authenticates with the
        Azure credential. Otherwise (local development with Azurite)
        uses the connection string.
        """
        if self._settings.storage_account_url:
            return TableServiceClient(
                endpoint=self._settings.storage_account_url,
                credential=self.credential,
            )
        return TableServiceClient.from_connection_string(
            self._settings.storage_connection_string
        )

    def get_table_client(self, table_name: Optional[str] = None) -> TableClient:
        """
        Get a table client for table operations.

        Args:
            table_name: Name of the table. Defaults to the report table.

        Returns:
            TableClient instance.
        """
        name = table_name or self._settings.report_table_name
        return self.table_service_client.get_table_client(name)


# Global instance for convenience
_azure_clients: Optional[AzureClients] = None


def get_azure_clients() -> AzureClients:
    """Get or create global Azure clients instance."""
    global _azure_clients
    if _azure_clients is None:
        _azure_clients = AzureClients()
    return _azure_clients
