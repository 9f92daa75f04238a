"""
Ticketless Entry Package

An event check-in backend built with Flask over a Google Sheets
attendee table. Attendees receive a QR-coded ticket by mail, staff scan
it (or type the member id) to record entry, and a dashboard polls the
attendance counts.

Main Components:
- models: Attendee rows, order/member inputs and check-in outcomes
- taxonomy: Ticket type normalization and reception windows
- repositories: Record store, auxiliary tables and store locks
- services: Check-in, reconciliation, dashboard and ticket batches
- exceptions: Custom exception classes for error handling
- app: Flask application class and factories

Usage:
    from ticketless_entry import create_app

    app = create_app()
    app.run()
"""

__version__ = "1.0.0"

# Import main components for easy access
from .app import create_app, create_wsgi_app
from .models import (
    AttendeeRecord,
    CheckInError,
    CheckInStatus,
    CheckInSuccess,
    CheckInWarning,
    DashboardSummary,
    MemberDirectoryEntry,
    OrderLine,
    ReconciliationResult,
)
from .services import CheckInService, DashboardService, ReconciliationService, TicketService, aggregate, reconcile
from .taxonomy import TaxonomyConfig, TicketTaxonomy
from .tokens import TokenGenerator
from .repositories import RepositoryFactory
from .exceptions import (
    TicketlessEntryException,
    MissingParameterException,
    TicketNotFoundException,
    MemberNotFoundException,
    DataValidationException,
    DataAccessException,
    StoreLockException,
    ReconciliationException,
)

__all__ = [
    # App factory functions
    'create_app',
    'create_wsgi_app',

    # Data models
    'AttendeeRecord',
    'CheckInError',
    'CheckInStatus',
    'CheckInSuccess',
    'CheckInWarning',
    'DashboardSummary',
    'MemberDirectoryEntry',
    'OrderLine',
    'ReconciliationResult',

    # Core logic
    'CheckInService',
    'DashboardService',
    'ReconciliationService',
    'TicketService',
    'aggregate',
    'reconcile',
    'TaxonomyConfig',
    'TicketTaxonomy',
    'TokenGenerator',

    # Repository factory
    'RepositoryFactory',

    # Exceptions
    'TicketlessEntryException',
    'MissingParameterException',
    'TicketNotFoundException',
    'MemberNotFoundException',
    'DataValidationException',
    'DataAccessException',
    'StoreLockException',
    'ReconciliationException',
]
