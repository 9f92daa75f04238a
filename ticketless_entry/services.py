"""
Business Logic Services for Ticketless Entry

This module contains the check-in engine, the order/member
reconciliation batch, the dashboard aggregation and the ticket
issuance batch. Every read-compute-write cycle on the record store
runs under the store lock so at most one first check-in of a ticket
can win.
"""

import logging
import time
from collections import Counter
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from .exceptions import (
    DataAccessException,
    MemberNotFoundException,
    MissingParameterException,
    ReconciliationException,
    StoreLockException,
    TicketNotFoundException,
)
from .mailer import TicketMailer
from .models import (
    COL_CHECK_IN_TIME,
    COL_EMAIL_SENT,
    COL_RE_ENTRY_HISTORY,
    COL_TOKEN,
    UNKNOWN_TICKET_TYPE,
    AttendeeRecord,
    CheckInError,
    CheckInSuccess,
    CheckInWarning,
    DashboardSummary,
    MemberDirectoryEntry,
    OrderLine,
    ReconciliationResult,
    SendSummary,
    TicketTypeStats,
)
from .repositories import LocalStoreLock, RecordStore, StoreLock, TableRepository
from .taxonomy import TicketTaxonomy
from .tokens import TokenGenerator

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"

MSG_CHECKED_IN = "チェックイン完了 / Check-in complete"
MSG_ALREADY_CHECKED_IN = "既にチェックイン済みです / Already checked in"
MSG_TOKEN_NOT_PROVIDED = "トークンが指定されていません / Token not provided"
MSG_INVALID_TICKET = "無効なチケットです / Invalid ticket"
MSG_MEMBER_ID_NOT_PROVIDED = "会員IDが指定されていません / Member ID not provided"
MSG_MEMBER_ID_NOT_FOUND = "会員IDが見つかりません / Member ID not found"

CheckInOutcome = Union[CheckInSuccess, CheckInWarning, CheckInError]


def event_clock(timezone: str) -> Callable[[], datetime]:
    """Clock returning the current time in the event timezone"""
    tz = ZoneInfo(timezone)
    return lambda: datetime.now(tz)


class CheckInService:
    """
    Handles scan-based and manual check-in

    A ticket moves from "not checked in" to "checked in" exactly once;
    every later encounter only appends to its re-entry history.
    """

    def __init__(self, store: RecordStore, lock: Optional[StoreLock] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize check-in service

        Args:
            store: Attendee record store
            lock: Store lock; a process-local lock if omitted
            clock: Returns the current time; Asia/Tokyo wall clock if omitted
        """
        self.store = store
        self.lock = lock or LocalStoreLock()
        self.clock = clock or event_clock("Asia/Tokyo")

    def check_in_by_token(self, token: str) -> CheckInOutcome:
        """
        Check in the ticket identified by a scanned token

        Args:
            token: Token decoded from the QR code

        Returns:
            CheckInSuccess, CheckInWarning on re-entry, or CheckInError
        """
        return self._run(self._check_in_by_token, token)

    def check_in_by_id(self, member_id: str) -> CheckInOutcome:
        """
        Check in one of the tickets held by a member

        The first not-yet-checked-in row of the member (in store order)
        is checked in. When every row is already checked in, the
        re-entry is logged on the last matching row.

        Args:
            member_id: Member id typed in by staff

        Returns:
            CheckInSuccess, CheckInWarning on re-entry, or CheckInError
        """
        return self._run(self._check_in_by_id, member_id)

    def _run(self, operation, value) -> CheckInOutcome:
        value = "" if value is None else str(value).strip()
        try:
            return operation(value)
        except (MissingParameterException, TicketNotFoundException, MemberNotFoundException) as e:
            logger.info("Check-in rejected: %s", e.message)
            return CheckInError(e.message)
        except (DataAccessException, StoreLockException) as e:
            logger.error("Check-in failed: %s", str(e))
            return CheckInError(str(e))

    def _check_in_by_token(self, token: str):
        if not token:
            raise MissingParameterException("token", MSG_TOKEN_NOT_PROVIDED)

        with self.lock.hold():
            record = next((r for r in self.store.load_records() if r.token == token), None)
            if record is None:
                raise TicketNotFoundException(token, MSG_INVALID_TICKET)

            if record.is_checked_in:
                return self._record_re_entry(record)
            return self._check_in(record)

    def _check_in_by_id(self, member_id: str):
        if not member_id:
            raise MissingParameterException("memberId", MSG_MEMBER_ID_NOT_PROVIDED)

        with self.lock.hold():
            matches = [r for r in self.store.load_records() if r.id == member_id]
            if not matches:
                raise MemberNotFoundException(member_id, MSG_MEMBER_ID_NOT_FOUND)

            for record in matches:
                if not record.is_checked_in:
                    return self._check_in(record)
            return self._record_re_entry(matches[-1])

    def _now(self) -> str:
        return self.clock().strftime(TIMESTAMP_FORMAT)

    def _check_in(self, record: AttendeeRecord) -> CheckInSuccess:
        check_in_time = self._now()
        self.store.update_cell(record.row_number, COL_CHECK_IN_TIME, check_in_time)
        record.check_in_time = check_in_time
        logger.info("Checked in %s (%s, row %s)", record.id, record.ticket_type, record.row_number)

        return CheckInSuccess(
            message=MSG_CHECKED_IN,
            id=record.id,
            name=record.name,
            ticket_type=record.ticket_type,
            start_time=record.start_time,
            check_in_time=check_in_time,
        )

    def _record_re_entry(self, record: AttendeeRecord) -> CheckInWarning:
        record.re_entry_history.append(self._now())
        self.store.update_cell(record.row_number, COL_RE_ENTRY_HISTORY, record.history_cell())
        logger.info("Re-entry of %s (row %s), entry %d", record.id, record.row_number, len(record.re_entry_history))

        return CheckInWarning(
            message=MSG_ALREADY_CHECKED_IN,
            id=record.id,
            name=record.name,
            ticket_type=record.ticket_type,
            start_time=record.start_time,
            check_in_time=record.check_in_time,
        )


def reconcile(order_lines: List[OrderLine], directory: List[MemberDirectoryEntry],
              existing_records: List[AttendeeRecord], taxonomy: TicketTaxonomy) -> ReconciliationResult:
    """
    Derive the attendee rows missing from the store

    Required quantities are summed per (member id, canonical ticket type)
    and compared with the rows already present for the same key; only
    the shortfall is synthesized. Existing rows are never modified, so
    running this again on the updated store yields no new rows.

    Args:
        order_lines: Lines of the order feed
        directory: Member directory used to look up email addresses
        existing_records: Current content of the record store
        taxonomy: Ticket taxonomy for label normalization

    Returns:
        ReconciliationResult with the rows to append
    """
    members: Dict[str, MemberDirectoryEntry] = {}
    for entry in directory:
        if entry.id:
            members[entry.id] = entry

    required: Dict[Tuple[str, str], int] = {}
    descriptions: Dict[Tuple[str, str], OrderLine] = {}
    for line in order_lines:
        if not line.id:
            continue
        key = (line.id, taxonomy.normalize(line.ticket_type))
        required[key] = required.get(key, 0) + line.quantity
        descriptions.setdefault(key, line)

    existing = Counter(
        (record.id, taxonomy.normalize(record.ticket_type))
        for record in existing_records if record.id
    )

    result = ReconciliationResult()
    for key, quantity in required.items():
        shortfall = quantity - existing[key]
        if shortfall <= 0:
            continue

        member_id, ticket_type = key
        member = members.get(member_id)
        email = member.email if member else ""
        name = descriptions[key].name or (member.name if member else "")

        for _ in range(shortfall):
            result.new_rows.append(_new_attendee(member_id, name, email, ticket_type, taxonomy))
            if email:
                result.matched_email_count += 1
            else:
                result.missing_email_count += 1

    return result


def _new_attendee(member_id: str, name: str, email: str, ticket_type: str,
                  taxonomy: TicketTaxonomy) -> AttendeeRecord:
    record = AttendeeRecord(
        id=member_id,
        name=name,
        email=email,
        ticket_type=ticket_type,
        start_time=taxonomy.reception_window(ticket_type),
    )
    if taxonomy.is_guest(ticket_type):
        record.name = f"{name}{taxonomy.config.guest_suffix}"
        record.inviter = name
        record.note = taxonomy.config.guest_note
    return record


class ReconciliationService:
    """
    Runs reconciliation against the order and member worksheets
    """

    def __init__(self, store: RecordStore, orders: TableRepository, members: TableRepository,
                 taxonomy: TicketTaxonomy, lock: Optional[StoreLock] = None):
        self.store = store
        self.orders = orders
        self.members = members
        self.taxonomy = taxonomy
        self.lock = lock or LocalStoreLock()

    def run(self) -> ReconciliationResult:
        """
        Append the missing attendee rows in one batch

        Returns:
            ReconciliationResult of this run

        Raises:
            ReconciliationException: If the order or member table is
                absent; nothing is written in that case
            DataAccessException: If reading or the batch write fails
        """
        for table in (self.orders, self.members):
            if not table.exists():
                raise ReconciliationException(f"worksheet '{table.name}' not found")

        order_lines = [OrderLine.from_dict(row) for row in self.orders.load_data()]
        directory = [MemberDirectoryEntry.from_dict(row) for row in self.members.load_data()]

        with self.lock.hold():
            result = reconcile(order_lines, directory, self.store.load_records(), self.taxonomy)
            self.store.append_records(result.new_rows)

        logger.info(
            "Reconciliation created %d rows (%d with email, %d without) from %d order lines",
            len(result.new_rows), result.matched_email_count, result.missing_email_count, len(order_lines)
        )
        return result


def aggregate(records: List[AttendeeRecord]) -> DashboardSummary:
    """
    Count attendance over the current store content

    Rows without a member id are ignored.

    Args:
        records: Current content of the record store

    Returns:
        DashboardSummary with totals and a per-ticket-type breakdown
    """
    summary = DashboardSummary()
    for record in records:
        if not record.id:
            continue

        stats = summary.breakdown.setdefault(record.ticket_type or UNKNOWN_TICKET_TYPE, TicketTypeStats())
        summary.total += 1
        stats.total += 1
        if record.is_checked_in:
            summary.checked_in += 1
            stats.checked_in += 1

    summary.not_checked_in = summary.total - summary.checked_in
    return summary


class DashboardService:
    """Feeds the live attendance dashboard"""

    def __init__(self, store: RecordStore):
        self.store = store

    def get_summary(self) -> DashboardSummary:
        return aggregate(self.store.load_records())


class TicketService:
    """
    Issues ticket tokens and sends tickets by mail
    """

    def __init__(self, store: RecordStore, mailer: TicketMailer,
                 token_generator: Optional[TokenGenerator] = None,
                 lock: Optional[StoreLock] = None, send_interval: float = 1.0):
        """
        Initialize ticket service

        Args:
            store: Attendee record store
            mailer: Ticket delivery sink
            token_generator: Token generator; a default one if omitted
            lock: Store lock; a process-local lock if omitted
            send_interval: Seconds the default pacing hook waits after
                each sent ticket
        """
        self.store = store
        self.mailer = mailer
        self.token_generator = token_generator or TokenGenerator()
        self.lock = lock or LocalStoreLock()
        self.send_interval = send_interval

    def issue_tokens(self) -> int:
        """
        Give a token to every attendee row that has none

        Returns:
            Number of tokens issued
        """
        issued = 0
        with self.lock.hold():
            for record in self.store.load_records():
                if not record.id or record.token:
                    continue
                token = self.token_generator.generate(record.id, record.row_number)
                self.store.update_cell(record.row_number, COL_TOKEN, token)
                issued += 1

        if issued:
            logger.info("Issued %d ticket tokens", issued)
        return issued

    def send_tickets(self, pace: Optional[Callable[[], None]] = None) -> SendSummary:
        """
        Send every ticket that has not been sent yet

        Rows without an email address are skipped. A failed delivery
        leaves the row unsent for the next run. The store lock is only
        held while writing, so check-in keeps working during a batch.

        Args:
            pace: Called after each delivery attempt; sleeps for
                send_interval if omitted

        Returns:
            SendSummary of this batch

        Raises:
            DataAccessException: If a store read or write fails
        """
        pace = pace or self._sleep
        self.issue_tokens()

        summary = SendSummary()
        for record in self.store.load_records():
            if not record.id or record.email_sent:
                continue
            if not record.email:
                summary.skipped += 1
                continue

            if self.mailer.send_ticket(record):
                with self.lock.hold():
                    self.store.update_cell(record.row_number, COL_EMAIL_SENT, True)
                record.email_sent = True
                summary.sent += 1
            else:
                summary.failed += 1
            pace()

        logger.info("Ticket batch finished: %d sent, %d failed, %d skipped",
                    summary.sent, summary.failed, summary.skipped)
        return summary

    def _sleep(self) -> None:
        time.sleep(self.send_interval)
