# cli.py
"""
Flask CLI commands for Ticketless Entry.

Operator commands for the batches that run before the event:

    flask --app ticketless_entry.app:create_wsgi_app reconcile
    flask --app ticketless_entry.app:create_wsgi_app issue-tokens
    flask --app ticketless_entry.app:create_wsgi_app send-tickets --interval 2
"""

import time

import click
from flask import Flask, current_app
from flask.cli import with_appcontext

from .exceptions import TicketlessEntryException


def _entry_app():
    return current_app.extensions['ticketless_entry']


@click.command("reconcile")
@with_appcontext
def reconcile_command():
    """Create the attendee rows still missing for the order feed."""
    try:
        result = _entry_app().reconciliation_service.run()
    except TicketlessEntryException as e:
        raise click.ClickException(str(e))

    summary = result.to_dict()
    click.echo(
        f"Created {summary['created']} rows "
        f"({summary['matchedEmailCount']} with email, {summary['missingEmailCount']} without)."
    )


@click.command("issue-tokens")
@with_appcontext
def issue_tokens_command():
    """Give a ticket token to every attendee row without one."""
    try:
        issued = _entry_app().ticket_service.issue_tokens()
    except TicketlessEntryException as e:
        raise click.ClickException(str(e))

    click.echo(f"Issued {issued} tokens.")


@click.command("send-tickets")
@click.option("--interval", type=float, default=None,
              help="Seconds to wait after each ticket (default: SEND_INTERVAL_SECONDS)")
@with_appcontext
def send_tickets_command(interval):
    """
    Send every unsent ticket by mail.

    Example usage:
        flask send-tickets                 # pace with SEND_INTERVAL_SECONDS
        flask send-tickets --interval 0.5  # faster pacing
    """
    service = _entry_app().ticket_service
    pace = (lambda: time.sleep(interval)) if interval is not None else None

    try:
        summary = service.send_tickets(pace)
    except TicketlessEntryException as e:
        raise click.ClickException(str(e))

    click.echo(f"Sent {summary.sent}, failed {summary.failed}, skipped {summary.skipped} (no email).")


def register_commands(app: Flask) -> None:
    """Register the operator commands on a Flask app"""
    app.cli.add_command(reconcile_command)
    app.cli.add_command(issue_tokens_command)
    app.cli.add_command(send_tickets_command)
