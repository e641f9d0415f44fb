from __future__ import annotations

from datetime import datetime
from unittest.mock import Mock

import pytest
from azure.core.exceptions import HttpResponseError, ResourceExistsError

from dbinventory.exceptions import ReportStoreError
from dbinventory.models import DatabaseRecord, InstanceReport
from dbinventory.services import COPY_ONLY_NOTE, ReportStore
from dbinventory.services.report_store import sanitize_key


def _report() -> InstanceReport:
    return InstanceReport(
        run_id="run-1",
        instance="sql01\\reporting",
        sql_instance="SQL01\\REPORTING",
        staleness_checked=True,
        generated_at=datetime(2024, 3, 1, 6, 0),
        databases=[
            DatabaseRecord(name="Sales", owner="sa", last_full_backup=datetime(2024, 1, 1)),
            DatabaseRecord(name="Legacy", backup_status=COPY_ONLY_NOTE),
        ],
    )


def _store(table_client: Mock) -> ReportStore:
    clients = Mock()
    clients.get_table_client.return_value = table_client
    return ReportStore(azure_clients=clients)


def test_to_entities_uses_instance_partition_and_run_row_keys() -> None:
    entities = _store(Mock()).to_entities(_report())

    assert [e["PartitionKey"] for e in entities] == ["SQL01_REPORTING", "SQL01_REPORTING"]
    assert [e["RowKey"] for e in entities] == ["run-1_Sales", "run-1_Legacy"]
    assert entities[0]["last_full_backup"] == "2024-01-01T00:00:00"
    assert entities[0]["collation"] == ""
    assert entities[0]["backup_status"] == ""
    assert entities[1]["backup_status"] == COPY_ONLY_NOTE
    assert entities[0]["generated_at"] == "2024-03-01T06:00:00"


def test_publish_creates_table_once_and_upserts_rows() -> None:
    table_client = Mock()
    table_client.create_table.side_effect = [None, ResourceExistsError("exists")]
    store = _store(table_client)

    assert store.publish(_report()) == 2
    assert store.publish(_report()) == 2

    table_client.create_table.assert_called_once()
    assert table_client.upsert_entity.call_count == 4


def test_publish_existing_table_is_not_an_error() -> None:
    table_client = Mock()
    table_client.create_table.side_effect = ResourceExistsError("exists")

    assert _store(table_client).publish(_report()) == 2


def test_publish_failure_raises_report_store_error() -> None:
    table_client = Mock()
    table_client.upsert_entity.side_effect = HttpResponseError("service unavailable")

    with pytest.raises(ReportStoreError, match="sql01"):
        _store(table_client).publish(_report())


def test_sanitize_key_replaces_forbidden_characters() -> None:
    assert sanitize_key("a/b\\c#d?e") == "a_b_c_d_e"
