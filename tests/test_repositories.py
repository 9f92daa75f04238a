"""
Tests for the record stores, table repositories and store locks.
"""

from unittest import mock

import pytest
from gspread.exceptions import WorksheetNotFound
from gspread.http_client import HTTPClient
from gspread.worksheet import Worksheet
from redis.exceptions import ConnectionError as RedisConnectionError

from ticketless_entry.exceptions import DataAccessException, StoreLockException
from ticketless_entry.models import COL_CHECK_IN_TIME, COLUMNS, AttendeeRecord, CheckInStatus
from ticketless_entry.repositories import (
    InMemoryRecordStore,
    InMemoryTableRepository,
    JSONRepository,
    LocalStoreLock,
    RedisStoreLock,
    RepositoryFactory,
    SheetRecordStore,
    SheetTableRepository,
)
from ticketless_entry.services import CheckInService, ReconciliationService
from ticketless_entry.taxonomy import TicketTaxonomy

from conftest import FakeClock, make_row


class TestAttendeeRecordRows:

    def test_from_row_reads_positional_cells(self):
        row = ["A1", "Alice", "a@example.com", "tok", "2025/11/20 18:30:00", "TRUE",
               "VIP Pass", "18:30-19:00", "2025/11/20 18:40:00\n2025/11/20 18:50:00", "Bob", "memo"]

        record = AttendeeRecord.from_row(row, 5)

        assert record.row_number == 5
        assert record.email_sent is True
        assert record.is_checked_in
        assert record.re_entry_history == ["2025/11/20 18:40:00", "2025/11/20 18:50:00"]
        assert record.inviter == "Bob"
        assert record.note == "memo"

    def test_short_rows_are_padded(self):
        record = AttendeeRecord.from_row(["A1", "Alice"])

        assert record.token == ""
        assert record.email_sent is False
        assert record.re_entry_history == []

    def test_to_row_follows_column_order(self):
        record = AttendeeRecord(id="A1", name="Alice", re_entry_history=["t1", "t2"])
        row = record.to_row()

        assert len(row) == len(COLUMNS)
        assert row[COLUMNS.index("ReEntryHistory")] == "t1\nt2"


class TestSheetRecordStore:

    def _worksheet(self, values):
        worksheet = mock.Mock()
        worksheet.title = "Attendees"
        worksheet.get_all_values.return_value = values
        return worksheet

    def test_load_skips_header_and_numbers_rows(self):
        worksheet = self._worksheet([list(COLUMNS), make_row("A1", "Alice"), make_row("B2", "Bob")])

        records = SheetRecordStore(worksheet).load_records()

        assert [(r.id, r.row_number) for r in records] == [("A1", 2), ("B2", 3)]

    def test_update_cell_writes_raw_value(self):
        worksheet = self._worksheet([list(COLUMNS)])

        SheetRecordStore(worksheet).update_cell(3, COL_CHECK_IN_TIME, "2025/11/20 18:30:00")

        worksheet.update.assert_called_once_with(
            values=[["2025/11/20 18:30:00"]], range_name="E3", value_input_option="RAW"
        )
        worksheet.update_cell.assert_not_called()

    def test_append_is_one_batch(self):
        worksheet = self._worksheet([list(COLUMNS)])
        records = [AttendeeRecord(id="A1", name="Alice"), AttendeeRecord(id="B2", name="Bob")]

        SheetRecordStore(worksheet).append_records(records)

        worksheet.append_rows.assert_called_once()
        assert len(worksheet.append_rows.call_args[0][0]) == 2

    def test_empty_append_does_not_write(self):
        worksheet = self._worksheet([list(COLUMNS)])
        SheetRecordStore(worksheet).append_records([])
        worksheet.append_rows.assert_not_called()

    def test_write_failure_is_data_access_error(self):
        worksheet = self._worksheet([list(COLUMNS)])
        worksheet.update.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(DataAccessException) as excinfo:
            SheetRecordStore(worksheet).update_cell(2, COL_CHECK_IN_TIME, "x")

        assert "quota exceeded" in str(excinfo.value)

    def test_ensure_header_on_empty_sheet(self):
        worksheet = self._worksheet([])
        worksheet.row_values.return_value = []

        SheetRecordStore(worksheet).ensure_header()

        worksheet.append_row.assert_called_once_with(list(COLUMNS))


class TestInMemoryRecordStore:

    def test_append_assigns_row_numbers(self):
        store = InMemoryRecordStore([make_row("A1", "Alice")])
        record = AttendeeRecord(id="B2", name="Bob")

        store.append_records([record])

        assert record.row_number == 3
        assert store.load_records()[1].id == "B2"

    def test_update_unknown_row_fails(self):
        with pytest.raises(DataAccessException):
            InMemoryRecordStore().update_cell(2, COL_CHECK_IN_TIME, "x")


class TestSheetTableRepository:

    def test_missing_worksheet(self):
        spreadsheet = mock.Mock()
        spreadsheet.worksheet.side_effect = WorksheetNotFound("Orders")

        assert SheetTableRepository(spreadsheet, "Orders").exists() is False

    def test_reads_records(self):
        spreadsheet = mock.Mock()
        spreadsheet.worksheet.return_value.get_all_records.return_value = [{"ID": "A1"}]

        repository = SheetTableRepository(spreadsheet, "Orders")

        assert repository.exists() is True
        assert repository.load_data() == [{"ID": "A1"}]
        spreadsheet.worksheet.assert_called_with("Orders")

    def _orders_worksheet(self, values):
        worksheet = Worksheet(
            spreadsheet=mock.Mock(),
            properties={"title": "Orders", "sheetId": 0, "index": 0},
            spreadsheet_id="sheet-key",
            client=mock.Mock(spec=HTTPClient),
        )
        worksheet.get = mock.Mock(return_value=values)
        return worksheet

    def test_leading_zero_ids_stay_text(self):
        spreadsheet = mock.Mock()
        spreadsheet.worksheet.return_value = self._orders_worksheet([
            ["ID", "Name", "TicketType", "Quantity"],
            ["00123", "Aki", "VIP Pass", "1"],
        ])

        records = SheetTableRepository(spreadsheet, "Orders").load_data()

        assert records == [{"ID": "00123", "Name": "Aki", "TicketType": "VIP Pass", "Quantity": "1"}]

    def test_leading_zero_member_already_has_row(self):
        spreadsheet = mock.Mock()
        spreadsheet.worksheet.return_value = self._orders_worksheet([
            ["ID", "Name", "TicketType", "Quantity"],
            ["00123", "Aki", "VIP Pass", "1"],
        ])
        store = InMemoryRecordStore([make_row("00123", "Aki", "VIP Pass")])
        members = InMemoryTableRepository("Members", [{"ID": "00123", "Name": "Aki", "Email": ""}])
        service = ReconciliationService(store, SheetTableRepository(spreadsheet, "Orders"),
                                        members, TicketTaxonomy())

        result = service.run()

        assert result.new_rows == []
        assert len(store.load_records()) == 1


class TestJSONRepository:

    def test_missing_file_is_empty(self, tmp_path):
        assert JSONRepository(str(tmp_path / "none.json")).load_data() == {}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{", encoding="utf-8")

        with pytest.raises(DataAccessException):
            JSONRepository(str(path)).load_data()


class TestStoreLocks:

    def test_local_lock_is_reentrant(self):
        lock = LocalStoreLock(timeout=0.1)
        with lock.hold():
            with lock.hold():
                pass

    def test_redis_lock_acquires_and_releases(self):
        client = mock.Mock()
        client.lock.return_value.acquire.return_value = True

        with RedisStoreLock(client, timeout=5).hold():
            pass

        client.lock.assert_called_once_with("ticketless_entry:store", timeout=10, blocking_timeout=5)
        client.lock.return_value.release.assert_called_once()

    def test_redis_release_failure_is_not_raised(self):
        client = mock.Mock()
        client.lock.return_value.acquire.return_value = True
        client.lock.return_value.release.side_effect = RedisConnectionError("connection reset")

        with RedisStoreLock(client, timeout=5).hold():
            pass

        client.lock.return_value.release.assert_called_once()

    def test_check_in_survives_redis_release_failure(self):
        client = mock.Mock()
        client.lock.return_value.acquire.return_value = True
        client.lock.return_value.release.side_effect = RedisConnectionError("connection reset")
        store = InMemoryRecordStore([make_row("A1", "Alice", token="tok")])
        service = CheckInService(store, lock=RedisStoreLock(client, timeout=5), clock=FakeClock())

        outcome = service.check_in_by_token("tok")

        assert outcome.status is CheckInStatus.SUCCESS
        assert store.load_records()[0].check_in_time == "2025/11/20 18:30:00"

    def test_redis_lock_timeout(self):
        client = mock.Mock()
        client.lock.return_value.acquire.return_value = False

        with pytest.raises(StoreLockException):
            with RedisStoreLock(client, timeout=1).hold():
                pass

    def test_factory_picks_local_without_redis_url(self):
        assert isinstance(RepositoryFactory.create_store_lock(""), LocalStoreLock)

    def test_factory_picks_redis_with_url(self):
        lock = RepositoryFactory.create_store_lock("redis://localhost:6379/0")
        assert isinstance(lock, RedisStoreLock)

    def test_unsupported_store_type(self):
        with pytest.raises(ValueError):
            RepositoryFactory.create_repository("csv")
