from datetime import datetime, timedelta

import pytest

from ticketless_entry.repositories import InMemoryRecordStore
from ticketless_entry.services import CheckInService
from ticketless_entry.taxonomy import TicketTaxonomy


class FakeClock:
    """Advances one minute on every call"""

    def __init__(self, start=datetime(2025, 11, 20, 18, 30, 0)):
        self.current = start

    def __call__(self):
        now = self.current
        self.current += timedelta(minutes=1)
        return now


def make_row(member_id, name, ticket_type="StandardPass", token="", check_in_time="",
             email="", email_sent=False, start_time="", history=""):
    return [member_id, name, email, token, check_in_time, email_sent,
            ticket_type, start_time, history, "", ""]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def taxonomy():
    return TicketTaxonomy()


@pytest.fixture
def store():
    return InMemoryRecordStore([
        make_row("A1", "Alice", "VIP Pass", token="tok-alice", start_time="18:30-19:00"),
        make_row("B2", "Bob", "StandardPass", token="tok-bob-1", start_time="19:00-19:30"),
        make_row("B2", "Bob (Guest)", "GuestPass", token="tok-bob-2", start_time="19:00-19:30"),
        make_row("C3", "Carol", "PriorityPass", token="tok-carol",
                 check_in_time="2025/11/20 18:00:00", start_time="18:30-19:00"),
    ])


@pytest.fixture
def check_in_service(store, clock):
    return CheckInService(store, clock=clock)
