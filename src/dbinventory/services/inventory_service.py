"""
Database inventory service.

Runs the per-instance pipeline (connect, enumerate, select, stale-narrow,
report) across a batch of instances. A failing instance is recorded and
skipped; the remaining instances are still processed.
"""

import logging
from typing import Optional, Protocol

from ..config import Settings, get_settings
from ..exceptions import InstanceError, ReportStoreError
from ..models import (
    InstanceFailure,
    InstanceReport,
    InventoryRequest,
    InventoryResult,
)
from .filter_selector import FilterSelector, get_name_comparer
from .inventory_source import BackupHistoryLookup, InventorySource
from .staleness_evaluator import StalenessEvaluator

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    """Receives the final report of each instance."""

    def publish(self, report: InstanceReport) -> int:
        ...


class InventoryService:
    """Inventories databases across one or more SQL Server instances."""

    def __init__(
        self,
        source: Optional[InventorySource] = None,
        reporter: Optional[Reporter] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize inventory service.

        Args:
            source: Inventory source. If None, uses sqlcmd against SQL Server.
            reporter: Optional reporter that receives each instance report.
            settings: Application settings. If None, loads from environment.
        """
        self._settings = settings or get_settings()
        if source is None:
            from .sqlserver_client import SqlServerClient

            source = SqlServerClient(self._settings)
        self._source = source
        self._reporter = reporter

    def run(self, request: InventoryRequest) -> InventoryResult:
        """
        Inventory every instance in the request.

        Args:
            request: Inventory request

        Returns:
            InventoryResult with one report per reachable instance and one
            failure per instance that could not be processed

        Raises:
            ConflictingFiltersError: If the filters conflict. Raised before
                any instance is contacted.
        """
        criterion = request.filters.active_criterion()

        case_sensitive_names = request.case_sensitive_names
        if case_sensitive_names is None:
            case_sensitive_names = self._settings.name_match_case_sensitive
        comparer = get_name_comparer(case_sensitive_names)
        selector = FilterSelector(comparer)
        evaluator = StalenessEvaluator(comparer)

        logger.info(
            f"Inventory of {len(request.instances)} instances "
            f"(filter: {criterion.value}, staleness: {request.staleness.is_active})"
        )

        result = InventoryResult()
        for instance in request.instances:
            try:
                report = self.inventory_instance(instance, request, selector, evaluator)
            except InstanceError as e:
                logger.error(f"Skipping instance {instance}: {e}")
                result.errors.append(InstanceFailure(
                    instance=instance,
                    error_kind=e.kind,
                    message=e.message,
                ))
                continue
            except Exception as e:
                logger.error(f"Error processing instance {instance}: {e}", exc_info=True)
                result.errors.append(InstanceFailure(
                    instance=instance,
                    error_kind=type(e).__name__,
                    message=str(e),
                ))
                continue

            result.reports.append(report)

            if self._reporter is not None:
                try:
                    self._reporter.publish(report)
                except ReportStoreError as e:
                    result.errors.append(InstanceFailure(
                        instance=instance,
                        error_kind="ReportStoreFailed",
                        message=str(e),
                    ))
                except Exception as e:
                    logger.error(f"Error publishing report for {instance}: {e}", exc_info=True)
                    result.errors.append(InstanceFailure(
                        instance=instance,
                        error_kind=type(e).__name__,
                        message=str(e),
                    ))

        logger.info(
            f"Inventory completed. {len(result.reports)} instances reported, "
            f"{len(result.errors)} errors"
        )
        return result

    def inventory_instance(
        self,
        instance: str,
        request: InventoryRequest,
        selector: FilterSelector,
        evaluator: StalenessEvaluator,
    ) -> InstanceReport:
        """
        Run the pipeline for a single instance.

        Raises:
            DatabaseConnectionError: If the instance cannot be reached
            HistoryLookupError: If backup history cannot be read
        """
        handle = self._source.connect(instance, request.credential)

        databases = [
            db.annotate(
                computer_name=handle.computer_name,
                instance_name=handle.instance_name,
                sql_instance=handle.sql_instance,
            )
            for db in self._source.list_databases(
                handle, include_last_used=request.include_last_used
            )
        ]

        selected = selector.select(databases, request.filters)
        stale = evaluator.apply_staleness(
            selected,
            request.staleness,
            BackupHistoryLookup(self._source, handle),
        )

        return InstanceReport(
            instance=instance,
            sql_instance=handle.sql_instance,
            databases=stale,
            staleness_checked=request.staleness.is_active,
            include_last_used=request.include_last_used,
        )
