"""
Data Repository Classes for Ticketless Entry

This module implements the Repository pattern for data access. The
record store hides the positional column layout of the attendee sheet
behind AttendeeRecord objects, the table repositories read the order
and member worksheets used by reconciliation, and the store locks
serialize every read-compute-write cycle on the sheet.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import gspread
import redis
from google.oauth2.service_account import Credentials
from gspread.exceptions import WorksheetNotFound
from gspread.utils import rowcol_to_a1
from redis.exceptions import RedisError

from .exceptions import DataAccessException, StoreLockException
from .models import COLUMNS, AttendeeRecord

logger = logging.getLogger(__name__)

SCOPE = ["https://www.googleapis.com/auth/spreadsheets", "https://www.googleapis.com/auth/drive"]

# Data rows start below the header row
FIRST_DATA_ROW = 2


class RecordStore(ABC):
    """
    Abstract base class for attendee record stores

    Implementations translate between AttendeeRecord objects and the
    positional row layout in COLUMNS.
    """

    @abstractmethod
    def load_records(self) -> List[AttendeeRecord]:
        """
        Load every attendee row in store order

        Returns:
            List of records, each carrying its row_number

        Raises:
            DataAccessException: If reading fails
        """
        pass

    @abstractmethod
    def append_records(self, records: List[AttendeeRecord]) -> None:
        """
        Append records below the existing rows in one batch write

        Raises:
            DataAccessException: If writing fails
        """
        pass

    @abstractmethod
    def update_cell(self, row_number: int, column: int, value) -> None:
        """
        Overwrite a single cell

        Args:
            row_number: 1-based sheet row (header is row 1)
            column: 1-based column number (see models.COL_*)
            value: New cell value

        Raises:
            DataAccessException: If writing fails
        """
        pass


class SheetRecordStore(RecordStore):
    """
    Google Sheets record store backed by a gspread worksheet
    """

    def __init__(self, worksheet):
        """
        Initialize sheet record store

        Args:
            worksheet: gspread Worksheet holding the attendee rows
        """
        self.worksheet = worksheet

    def ensure_header(self) -> None:
        """Write the header row when the worksheet is empty"""
        try:
            if not self.worksheet.row_values(1):
                self.worksheet.append_row(list(COLUMNS))
                logger.info("Wrote attendee header row to '%s'", self.worksheet.title)
        except Exception as e:
            raise DataAccessException("write_header", str(e))

    def load_records(self) -> List[AttendeeRecord]:
        try:
            values = self.worksheet.get_all_values()
        except Exception as e:
            raise DataAccessException("read", f"Failed to read '{self.worksheet.title}': {str(e)}")

        return [
            AttendeeRecord.from_row(row, row_number)
            for row_number, row in enumerate(values[FIRST_DATA_ROW - 1:], start=FIRST_DATA_ROW)
        ]

    def append_records(self, records: List[AttendeeRecord]) -> None:
        if not records:
            return
        try:
            self.worksheet.append_rows([record.to_row() for record in records], value_input_option="RAW")
        except Exception as e:
            raise DataAccessException("append", f"Failed to append {len(records)} rows: {str(e)}")

    def update_cell(self, row_number: int, column: int, value) -> None:
        try:
            self.worksheet.update(
                values=[[value]],
                range_name=rowcol_to_a1(row_number, column),
                value_input_option="RAW",
            )
        except Exception as e:
            raise DataAccessException(
                "update_cell",
                f"Failed to write row {row_number}, column {COLUMNS[column - 1]}: {str(e)}"
            )


class InMemoryRecordStore(RecordStore):
    """
    In-memory record store for testing

    Keeps positional rows exactly like the sheet does, header included.
    """

    def __init__(self, rows: Optional[List[List]] = None):
        """
        Initialize in-memory record store

        Args:
            rows: Optional positional data rows (without the header)
        """
        self._rows: List[List] = [list(COLUMNS)] + [list(row) for row in (rows or [])]

    def load_records(self) -> List[AttendeeRecord]:
        return [
            AttendeeRecord.from_row(row, row_number)
            for row_number, row in enumerate(self._rows[FIRST_DATA_ROW - 1:], start=FIRST_DATA_ROW)
        ]

    def append_records(self, records: List[AttendeeRecord]) -> None:
        for record in records:
            self._rows.append(record.to_row())
            record.row_number = len(self._rows)

    def update_cell(self, row_number: int, column: int, value) -> None:
        if row_number < FIRST_DATA_ROW or row_number > len(self._rows):
            raise DataAccessException("update_cell", f"Row {row_number} does not exist")
        row = self._rows[row_number - 1]
        while len(row) < len(COLUMNS):
            row.append("")
        row[column - 1] = value

    @property
    def rows(self) -> List[List]:
        """Copy of the data rows, without the header"""
        return [list(row) for row in self._rows[FIRST_DATA_ROW - 1:]]


class TableRepository(ABC):
    """
    Abstract base class for read-only header-keyed tables

    Used for the order feed and the member directory.
    """

    name = "table"

    @abstractmethod
    def load_data(self) -> List[Dict]:
        """
        Load every row as a dictionary keyed by the header row

        Raises:
            DataAccessException: If reading fails
        """
        pass

    @abstractmethod
    def exists(self) -> bool:
        """
        Check if the table exists

        Returns:
            True if the table exists, False otherwise
        """
        pass


class SheetTableRepository(TableRepository):
    """Worksheet of a spreadsheet read through gspread"""

    def __init__(self, spreadsheet, title: str):
        """
        Initialize sheet table repository

        Args:
            spreadsheet: gspread Spreadsheet
            title: Worksheet title
        """
        self.spreadsheet = spreadsheet
        self.name = title

    def exists(self) -> bool:
        try:
            self.spreadsheet.worksheet(self.name)
            return True
        except WorksheetNotFound:
            return False
        except Exception as e:
            raise DataAccessException("read", f"Failed to look up worksheet '{self.name}': {str(e)}")

    def load_data(self) -> List[Dict]:
        try:
            return self.spreadsheet.worksheet(self.name).get_all_records(numericise_ignore=["all"])
        except Exception as e:
            raise DataAccessException("read", f"Failed to read worksheet '{self.name}': {str(e)}")


class InMemoryTableRepository(TableRepository):
    """In-memory table for testing; None means the table is absent"""

    def __init__(self, name: str, records: Optional[List[Dict]] = None):
        self.name = name
        self._records = records

    def exists(self) -> bool:
        return self._records is not None

    def load_data(self) -> List[Dict]:
        if self._records is None:
            raise DataAccessException("read", f"Table '{self.name}' does not exist")
        return [dict(record) for record in self._records]


class JSONRepository:
    """
    JSON file-based repository

    Used for optional configuration documents such as the ticket
    taxonomy override.
    """

    def __init__(self, file_path: str):
        """
        Initialize JSON repository

        Args:
            file_path: Path to the JSON file
        """
        self.file_path = file_path

    def load_data(self) -> Dict:
        """
        Load data from JSON file

        Returns:
            Dictionary containing the loaded data, empty if the file
            does not exist

        Raises:
            DataAccessException: If file reading or JSON parsing fails
        """
        try:
            if not self.exists():
                return {}

            with open(self.file_path, 'r', encoding='utf-8') as f:
                return json.load(f)

        except json.JSONDecodeError as e:
            raise DataAccessException(
                "read",
                f"Invalid JSON in {self.file_path}: {str(e)}"
            )
        except PermissionError as e:
            raise DataAccessException(
                "read",
                f"Permission denied accessing {self.file_path}: {str(e)}"
            )

    def exists(self) -> bool:
        return os.path.exists(self.file_path)


class StoreLock(ABC):
    """Mutual exclusion around one read-compute-write cycle on the store"""

    @abstractmethod
    @contextmanager
    def hold(self) -> Iterator[None]:
        """
        Hold the lock for the duration of the with-block

        Raises:
            StoreLockException: If the lock cannot be acquired in time
        """
        pass


class LocalStoreLock(StoreLock):
    """Process-local lock for a single worker process"""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._lock = threading.RLock()

    @contextmanager
    def hold(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.timeout):
            raise StoreLockException("local", self.timeout)
        try:
            yield
        finally:
            self._lock.release()


class RedisStoreLock(StoreLock):
    """Redis lock shared by every worker process using the same sheet"""

    def __init__(self, client: redis.Redis, name: str = "ticketless_entry:store", timeout: float = 10.0):
        """
        Initialize redis store lock

        Args:
            client: Redis client
            name: Redis key of the lock
            timeout: Seconds to wait for the lock; the lock also expires
                after twice this long if its holder dies
        """
        self.client = client
        self.name = name
        self.timeout = timeout

    @contextmanager
    def hold(self) -> Iterator[None]:
        lock = self.client.lock(self.name, timeout=self.timeout * 2, blocking_timeout=self.timeout)
        try:
            acquired = lock.acquire()
        except RedisError as e:
            raise DataAccessException("lock", f"Redis unavailable: {str(e)}")
        if not acquired:
            raise StoreLockException(self.name, self.timeout)
        try:
            yield
        finally:
            try:
                lock.release()
            except RedisError as e:
                logger.warning("Could not release store lock '%s': %s", self.name, str(e))


class RepositoryFactory:
    """
    Factory class for creating repository instances

    This class provides a centralized way to create the record store,
    the auxiliary tables and the store lock from configuration.
    """

    @staticmethod
    def open_spreadsheet(service_account_json: str, spreadsheet_key: str):
        """
        Open the event spreadsheet with a service account

        Args:
            service_account_json: Service account credentials as JSON text
            spreadsheet_key: Key of the spreadsheet (from its URL)

        Returns:
            gspread Spreadsheet

        Raises:
            DataAccessException: If the credentials are invalid or the
                spreadsheet cannot be opened
        """
        try:
            service_account_info = json.loads(service_account_json)
            creds = Credentials.from_service_account_info(service_account_info, scopes=SCOPE)
            client = gspread.authorize(creds)
            return client.open_by_key(spreadsheet_key)
        except Exception as e:
            raise DataAccessException("open_spreadsheet", str(e))

    @staticmethod
    def create_sheet_store(spreadsheet, title: str) -> SheetRecordStore:
        """
        Create a record store over the attendee worksheet

        Args:
            spreadsheet: gspread Spreadsheet
            title: Title of the attendee worksheet

        Returns:
            SheetRecordStore instance with its header row in place
        """
        try:
            worksheet = spreadsheet.worksheet(title)
        except WorksheetNotFound:
            worksheet = spreadsheet.add_worksheet(title=title, rows=1000, cols=len(COLUMNS))
            logger.info("Created attendee worksheet '%s'", title)
        store = SheetRecordStore(worksheet)
        store.ensure_header()
        return store

    @staticmethod
    def create_memory_store(rows: Optional[List[List]] = None) -> InMemoryRecordStore:
        return InMemoryRecordStore(rows)

    @staticmethod
    def create_store_lock(redis_url: Optional[str] = None, timeout: float = 10.0) -> StoreLock:
        """
        Create the store lock

        Args:
            redis_url: Redis URL; a process-local lock is used without one
            timeout: Seconds to wait for the lock

        Returns:
            StoreLock instance
        """
        if redis_url:
            return RedisStoreLock(redis.Redis.from_url(redis_url), timeout=timeout)
        return LocalStoreLock(timeout)

    @staticmethod
    def create_repository(repo_type: str, **kwargs):
        """
        Create a record store based on type

        Args:
            repo_type: Type of store ('sheets' or 'memory')
            **kwargs: Additional arguments for store creation

        Returns:
            RecordStore instance

        Raises:
            ValueError: If store type is not supported
        """
        if repo_type.lower() == 'sheets':
            if 'spreadsheet' not in kwargs or 'title' not in kwargs:
                raise ValueError("spreadsheet and title are required for a sheets store")
            return RepositoryFactory.create_sheet_store(kwargs['spreadsheet'], kwargs['title'])

        elif repo_type.lower() == 'memory':
            return RepositoryFactory.create_memory_store(kwargs.get('rows'))

        else:
            raise ValueError(f"Unsupported repository type: {repo_type}")
