"""
Data Models for Ticketless Entry

This module contains the data model classes for attendee rows, the
external order and member inputs, and the outcomes returned to the
scanning page. These classes use dataclasses for clean, type-safe
data representation.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional

# Stored column order of the attendee worksheet
COLUMNS = (
    "ID",
    "Name",
    "Email",
    "Token",
    "CheckInTime",
    "EmailSent",
    "TicketType",
    "StartTime",
    "ReEntryHistory",
    "Inviter",
    "Note",
)

# 1-based column numbers, as used by spreadsheet cell updates
COL_ID = 1
COL_NAME = 2
COL_EMAIL = 3
COL_TOKEN = 4
COL_CHECK_IN_TIME = 5
COL_EMAIL_SENT = 6
COL_TICKET_TYPE = 7
COL_START_TIME = 8
COL_RE_ENTRY_HISTORY = 9
COL_INVITER = 10
COL_NOTE = 11

UNKNOWN_TICKET_TYPE = "Unknown"

_TRUTHY = {"TRUE", "1", "YES", "Y"}


def _cell(row: List, index: int) -> str:
    if index < len(row) and row[index] is not None:
        return str(row[index]).strip()
    return ""


def parse_bool(value) -> bool:
    """Interpret a spreadsheet cell as a boolean"""
    if isinstance(value, bool):
        return value
    return str(value).strip().upper() in _TRUTHY


class CheckInStatus(Enum):
    """Enumeration for check-in outcome status"""
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class AttendeeRecord:
    """
    Data model for one issued ticket

    Represents a single attendee row. A member may hold several rows
    (one per ticket), so ``id`` is not unique; ``token`` is.
    ``row_number`` is the 1-based sheet row, or None for rows that
    have not been written yet.
    """
    id: str
    name: str
    email: str = ""
    token: str = ""
    check_in_time: str = ""
    email_sent: bool = False
    ticket_type: str = ""
    start_time: str = ""
    re_entry_history: List[str] = field(default_factory=list)
    inviter: str = ""
    note: str = ""
    row_number: Optional[int] = None

    @classmethod
    def from_row(cls, row: List, row_number: Optional[int] = None) -> 'AttendeeRecord':
        """
        Create AttendeeRecord from a positional sheet row

        Args:
            row: Cell values in the stored column order
            row_number: 1-based sheet row the values came from

        Returns:
            AttendeeRecord instance
        """
        history = _cell(row, COL_RE_ENTRY_HISTORY - 1)
        return cls(
            id=_cell(row, COL_ID - 1),
            name=_cell(row, COL_NAME - 1),
            email=_cell(row, COL_EMAIL - 1),
            token=_cell(row, COL_TOKEN - 1),
            check_in_time=_cell(row, COL_CHECK_IN_TIME - 1),
            email_sent=parse_bool(_cell(row, COL_EMAIL_SENT - 1)),
            ticket_type=_cell(row, COL_TICKET_TYPE - 1),
            start_time=_cell(row, COL_START_TIME - 1),
            re_entry_history=[line for line in history.split("\n") if line.strip()],
            inviter=_cell(row, COL_INVITER - 1),
            note=_cell(row, COL_NOTE - 1),
            row_number=row_number,
        )

    def to_row(self) -> List:
        """
        Convert record to a positional sheet row

        Returns:
            List of cell values in the stored column order
        """
        return [
            self.id,
            self.name,
            self.email,
            self.token,
            self.check_in_time,
            self.email_sent,
            self.ticket_type,
            self.start_time,
            self.history_cell(),
            self.inviter,
            self.note,
        ]

    def history_cell(self) -> str:
        """Re-entry history as stored in a single cell"""
        return "\n".join(self.re_entry_history)

    @property
    def is_checked_in(self) -> bool:
        return bool(self.check_in_time)


@dataclass
class OrderLine:
    """One line of the external order feed"""
    id: str
    name: str
    ticket_type: str
    quantity: int = 1

    @classmethod
    def from_dict(cls, data: Dict) -> 'OrderLine':
        """
        Create OrderLine from a header-keyed sheet record

        Quantity falls back to 1 when it is missing, not a number or
        smaller than 1.
        """
        try:
            quantity = int(str(data.get("Quantity", "")).strip())
        except ValueError:
            quantity = 1
        if quantity < 1:
            quantity = 1

        return cls(
            id=str(data.get("ID", "")).strip(),
            name=str(data.get("Name", "")).strip(),
            ticket_type=str(data.get("TicketType", "")).strip(),
            quantity=quantity,
        )


@dataclass
class MemberDirectoryEntry:
    """One member of the external member directory"""
    id: str
    name: str
    email: str

    @classmethod
    def from_dict(cls, data: Dict) -> 'MemberDirectoryEntry':
        return cls(
            id=str(data.get("ID", "")).strip(),
            name=str(data.get("Name", "")).strip(),
            email=str(data.get("Email", "")).strip(),
        )


@dataclass
class _AttendeeOutcome:
    """Outcome carrying the attendee that was checked in"""
    message: str
    id: str
    name: str
    ticket_type: str
    start_time: str
    check_in_time: str

    status: CheckInStatus = field(init=False, repr=False)

    def to_dict(self) -> Dict:
        """
        Convert outcome to the JSON shape read by the scanning page

        Returns:
            Dictionary representation of the outcome
        """
        return {
            "success": True,
            "status": self.status.value,
            "message": self.message,
            "id": self.id,
            "name": self.name,
            "ticketType": self.ticket_type,
            "startTime": self.start_time,
            "checkInTime": self.check_in_time,
        }


@dataclass
class CheckInSuccess(_AttendeeOutcome):
    """First successful check-in of a ticket"""

    def __post_init__(self):
        self.status = CheckInStatus.SUCCESS


@dataclass
class CheckInWarning(_AttendeeOutcome):
    """
    Re-entry of an already checked-in ticket

    ``check_in_time`` is the original check-in time, not the time of
    this attempt.
    """

    def __post_init__(self):
        self.status = CheckInStatus.WARNING


@dataclass
class CheckInError:
    """Check-in that could not be recorded"""
    message: str

    status: CheckInStatus = field(default=CheckInStatus.ERROR, init=False, repr=False)

    def to_dict(self) -> Dict:
        return {
            "success": False,
            "status": self.status.value,
            "message": self.message,
        }


@dataclass
class TicketTypeStats:
    total: int = 0
    checked_in: int = 0

    def to_dict(self) -> Dict:
        return {"total": self.total, "checkedIn": self.checked_in}


@dataclass
class DashboardSummary:
    """Attendance counts for the live dashboard"""
    total: int = 0
    checked_in: int = 0
    not_checked_in: int = 0
    breakdown: Dict[str, TicketTypeStats] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "success": True,
            "total": self.total,
            "checkedIn": self.checked_in,
            "notCheckedIn": self.not_checked_in,
            "breakdown": {
                ticket_type: stats.to_dict()
                for ticket_type, stats in self.breakdown.items()
            },
        }


@dataclass
class ReconciliationResult:
    """Rows synthesized by one reconciliation run"""
    new_rows: List[AttendeeRecord] = field(default_factory=list)
    matched_email_count: int = 0
    missing_email_count: int = 0

    def to_dict(self) -> Dict:
        return {
            "created": len(self.new_rows),
            "matchedEmailCount": self.matched_email_count,
            "missingEmailCount": self.missing_email_count,
        }


@dataclass
class SendSummary:
    """Result of a ticket sending batch"""
    sent: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict:
        return asdict(self)
