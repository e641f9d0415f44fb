"""
Dilux Database Inventory - Scheduler Function App

Timer triggers:
- StaleBackupSweep: Runs daily, reports databases without a recent full backup
  on every configured instance and stores the reports
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import azure.functions as func

from dbinventory.config import Settings, get_settings
from dbinventory.models import (
    FilterRequest,
    InventoryRequest,
    InventoryResult,
    SqlCredential,
    StalenessPolicy,
)
from dbinventory.services import InventoryService, ReportStore

# Initialize Function App
app = func.FunctionApp()

settings = get_settings()
logging.getLogger().setLevel(settings.log_level.upper())

logger = logging.getLogger(__name__)


def build_sweep_request(
    config: Settings, now: Optional[datetime] = None
) -> Optional[InventoryRequest]:
    """
    Build the sweep request from settings.

    Returns:
        InventoryRequest, or None when no instances are configured
    """
    instances = config.get_sweep_instances()
    if not instances:
        return None

    now = now or datetime.utcnow()
    return InventoryRequest(
        instances=instances,
        credential=SqlCredential(
            username=config.sweep_username,
            password=config.sweep_password,
        ),
        filters=FilterRequest(only_accessible=True),
        staleness=StalenessPolicy(
            no_full_backup_since=now - timedelta(hours=config.sweep_full_backup_hours),
        ),
        persist=True,
    )


def run_sweep(request: InventoryRequest, service: InventoryService) -> InventoryResult:
    """Run the sweep and log stale databases and per-instance failures."""
    result = service.run(request)

    for report in result.reports:
        for db in report.databases:
            logger.warning(
                f"Stale full backup: {report.sql_instance}/{db.name} "
                f"(last full backup: {db.last_full_backup or 'never'}"
                f"{f', {db.backup_status}' if db.backup_status else ''})"
            )

    for error in result.errors:
        logger.error(f"Sweep failed for {error.instance} ({error.error_kind}): {error.message}")

    return result


@app.timer_trigger(
    schedule="0 0 6 * * *",  # Daily at 6 AM UTC
    arg_name="timer",
    run_on_startup=False,
)
def stale_backup_sweep(timer: func.TimerRequest) -> None:
    """
    Sweep configured instances for databases without a recent full backup.

    Runs daily and stores one report per instance in Table Storage.
    """
    logger.info("Stale backup sweep triggered")

    if timer.past_due:
        logger.warning("Timer is past due, running anyway")

    request = build_sweep_request(settings)
    if request is None:
        logger.info("No instances configured for the sweep (SWEEP_INSTANCES)")
        return

    try:
        result = run_sweep(request, InventoryService(reporter=ReportStore()))
        logger.info(
            f"Sweep completed. {len(result.reports)} instances checked, "
            f"{sum(len(r.databases) for r in result.reports)} stale databases, "
            f"{len(result.errors)} errors"
        )
    except Exception as e:
        logger.error(f"Sweep failed: {e}", exc_info=True)
        raise
