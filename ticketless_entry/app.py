"""
Main Application Module for Ticketless Entry

This module contains the Flask application class that wires the record
store, the services and the HTTP API used by the scanning page. The API
is a single endpoint dispatching on the ``action`` parameter; GET and
POST are handled identically.
"""

import logging
from typing import Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import load_config
from .exceptions import TicketlessEntryException
from .logging_setup import setup_logging
from .mailer import RecordingTicketMailer, SmtpTicketMailer
from .repositories import InMemoryTableRepository, JSONRepository, RepositoryFactory, SheetTableRepository
from .services import CheckInService, DashboardService, ReconciliationService, TicketService, event_clock
from .taxonomy import TaxonomyConfig, TicketTaxonomy

logger = logging.getLogger(__name__)


class TicketlessEntryApp:
    """
    Main Flask application class for Ticketless Entry

    This class orchestrates all services and handles the HTTP API for
    the check-in scanner and the live dashboard.
    """

    def __init__(self, config: Optional[dict] = None):
        """
        Initialize the Ticketless Entry application

        Args:
            config: Optional configuration dictionary
        """
        # Initialize Flask app
        self.app = Flask(__name__)
        self.config = load_config(config)
        self._configure_app()

        # Initialize repositories
        self._init_repositories()

        # Initialize services
        self.taxonomy = TicketTaxonomy(self._load_taxonomy_config())
        clock = self.config.get('CLOCK') or event_clock(self.config['EVENT_TIMEZONE'])
        self.check_in_service = CheckInService(self.store, self.lock, clock)
        self.dashboard_service = DashboardService(self.store)
        self.reconciliation_service = ReconciliationService(
            self.store, self.orders, self.members, self.taxonomy, self.lock
        )
        self.ticket_service = TicketService(
            self.store,
            self.mailer,
            lock=self.lock,
            send_interval=self.config['SEND_INTERVAL_SECONDS'],
        )

        # Register routes
        self._register_routes()

        # Register error handlers
        self._register_error_handlers()

        self.app.extensions['ticketless_entry'] = self

    def _configure_app(self) -> None:
        """Apply Flask settings from the configuration"""
        self.app.secret_key = self.config['SECRET_KEY']
        self.app.config['DEBUG'] = self.config['DEBUG']
        self.app.json.ensure_ascii = False

    def _init_repositories(self) -> None:
        """
        Create the record store, the auxiliary tables and the store lock

        Raises:
            ValueError: If the store backend is not supported
        """
        backend = self.config['STORE_BACKEND'].lower()
        self.lock = RepositoryFactory.create_store_lock(
            self.config['REDIS_URL'], self.config['LOCK_TIMEOUT_SECONDS']
        )

        if backend == 'sheets':
            spreadsheet = RepositoryFactory.open_spreadsheet(
                self.config['GOOGLE_SERVICE_ACCOUNT_JSON'], self.config['SPREADSHEET_KEY']
            )
            self.store = RepositoryFactory.create_repository(
                'sheets', spreadsheet=spreadsheet, title=self.config['ATTENDEES_WORKSHEET']
            )
            self.orders = SheetTableRepository(spreadsheet, self.config['ORDERS_WORKSHEET'])
            self.members = SheetTableRepository(spreadsheet, self.config['MEMBERS_WORKSHEET'])
            self.mailer = SmtpTicketMailer(self.config)

        elif backend == 'memory':
            self.store = RepositoryFactory.create_repository('memory', rows=self.config.get('INITIAL_ROWS'))
            self.orders = InMemoryTableRepository(self.config['ORDERS_WORKSHEET'], self.config.get('ORDERS'))
            self.members = InMemoryTableRepository(self.config['MEMBERS_WORKSHEET'], self.config.get('MEMBERS'))
            self.mailer = self.config.get('MAILER') or RecordingTicketMailer()

        else:
            raise ValueError(f"Unsupported store backend: {backend}")

        logger.info("Using '%s' record store", backend)

    def _load_taxonomy_config(self) -> TaxonomyConfig:
        """Load the ticket taxonomy, from TAXONOMY_FILE when configured"""
        if not self.config['TAXONOMY_FILE']:
            return TaxonomyConfig()

        data = JSONRepository(self.config['TAXONOMY_FILE']).load_data()
        logger.info("Loaded ticket taxonomy from %s", self.config['TAXONOMY_FILE'])
        return TaxonomyConfig.from_dict(data)

    def _register_routes(self) -> None:
        """Register all Flask routes"""
        self.app.add_url_rule("/", "index", self.api, methods=["GET", "POST"])
        self.app.add_url_rule("/api", "api", self.api, methods=["GET", "POST"])
        self.app.add_url_rule("/health", "health", self.health)

    def _register_error_handlers(self) -> None:
        """Register error handlers for custom exceptions"""

        @self.app.errorhandler(TicketlessEntryException)
        def handle_ticketless_entry_exception(e):
            logger.error("Request failed: %s", str(e))
            return jsonify({"success": False, "message": str(e)})

        @self.app.errorhandler(Exception)
        def handle_unexpected_exception(e):
            if isinstance(e, HTTPException):
                return e
            logger.exception("Unexpected error")
            return jsonify({"success": False, "message": str(e)})

    def api(self):
        """
        Single API endpoint

        Parameters are read from the query string, a form body or a JSON
        body.

        Returns:
            JSON check-in outcome or dashboard summary
        """
        params = request.values.to_dict()
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            params.update(body)

        action = params.get("action")

        if action == "checkIn":
            outcome = self.check_in_service.check_in_by_token(params.get("token"))
            return jsonify(outcome.to_dict())

        if action == "manualCheckIn":
            outcome = self.check_in_service.check_in_by_id(params.get("memberId"))
            return jsonify(outcome.to_dict())

        if action == "dashboard":
            return jsonify(self.dashboard_service.get_summary().to_dict())

        return jsonify({"success": False, "message": "Invalid action"})

    def health(self):
        return {"status": "ok"}

    def run(self, host: str = '127.0.0.1', port: int = 5000, debug: bool = None) -> None:
        """
        Run the Flask application

        Args:
            host: Host address to bind to
            port: Port number to listen on
            debug: Debug mode (overrides config if provided)
        """
        if debug is not None:
            self.app.config['DEBUG'] = debug

        self.app.run(host=host, port=port, debug=self.app.config['DEBUG'])


def create_app(config: Optional[dict] = None) -> TicketlessEntryApp:
    """
    Factory function to create and configure the application

    Args:
        config: Optional configuration dictionary

    Returns:
        Configured TicketlessEntryApp instance
    """
    return TicketlessEntryApp(config)


def create_wsgi_app() -> Flask:
    """
    Create the Flask app for a WSGI server or the flask CLI

    Logging is configured here, not in create_app, so tests keep their
    own handlers.

    Returns:
        Flask application with the operator commands registered
    """
    from .cli import register_commands

    config = load_config()
    setup_logging(config['LOG_LEVEL'])
    flask_app = create_app(config).app
    register_commands(flask_app)
    return flask_app


if __name__ == "__main__":
    create_app({'DEBUG': True}).run()
