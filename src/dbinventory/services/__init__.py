"""Services for Dilux Database Inventory."""

from .filter_selector import FilterSelector, case_insensitive, case_sensitive, get_name_comparer
from .staleness_evaluator import StalenessEvaluator, COPY_ONLY_NOTE
from .inventory_source import InventorySource, BackupHistoryLookup
from .sqlserver_client import SqlServerClient
from .report_store import ReportStore
from .inventory_service import InventoryService

__all__ = [
    "FilterSelector",
    "case_sensitive",
    "case_insensitive",
    "get_name_comparer",
    "StalenessEvaluator",
    "COPY_ONLY_NOTE",
    "InventorySource",
    "BackupHistoryLookup",
    "SqlServerClient",
    "ReportStore",
    "InventoryService",
]
