"""
Ticket delivery

Renders the QR code of a ticket token and hands the ticket to a mail
transport. Delivery reports success or failure; it never raises for a
single failed message so one bad address cannot stop a batch.
"""

import io
import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Dict, List, Tuple

import qrcode

from .models import AttendeeRecord

logger = logging.getLogger(__name__)


def render_qr_png(data: str) -> bytes:
    """
    Render a QR code as PNG bytes

    Args:
        data: Text to encode (the ticket token)

    Returns:
        PNG image bytes
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer)
    return buffer.getvalue()


class TicketMailer(ABC):
    """Sink that delivers one ticket to its attendee"""

    @abstractmethod
    def send_ticket(self, record: AttendeeRecord) -> bool:
        """
        Deliver the ticket of a record

        Args:
            record: Attendee row with an email address and a token

        Returns:
            True if delivery succeeded
        """
        pass


def build_ticket_message(record: AttendeeRecord, sender: str, event_name: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = f"【{event_name}】入場チケット / Your Ticket"
    msg["From"] = sender
    msg["To"] = record.email
    msg.set_content(
        f"{record.name} 様\n\n"
        f"{event_name} の入場チケットをお送りします。\n"
        f"受付時に添付のQRコードをご提示ください。\n\n"
        f"Ticket type: {record.ticket_type}\n"
        f"Reception: {record.start_time}\n"
        f"Member ID: {record.id}\n"
    )
    msg.add_attachment(
        render_qr_png(record.token),
        maintype="image",
        subtype="png",
        filename="ticket.png",
    )
    return msg


class SmtpTicketMailer(TicketMailer):
    """Delivers tickets through an SMTP server"""

    def __init__(self, config: Dict):
        """
        Initialize SMTP mailer

        Args:
            config: Application configuration (MAIL_* and EVENT_NAME keys)
        """
        self.server = config['MAIL_SERVER']
        self.port = config['MAIL_PORT']
        self.username = config.get('MAIL_USERNAME')
        self.password = config.get('MAIL_PASSWORD')
        self.use_tls = config.get('MAIL_USE_TLS', True)
        self.sender = config.get('MAIL_DEFAULT_SENDER') or self.username
        self.event_name = config.get('EVENT_NAME', 'Ticketless Entry')

    def send_ticket(self, record: AttendeeRecord) -> bool:
        msg = build_ticket_message(record, self.sender, self.event_name)
        try:
            with smtplib.SMTP(self.server, self.port, timeout=30) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send ticket to %s (row %s): %s", record.email, record.row_number, str(e))
            return False

        logger.info("Sent ticket to %s (row %s)", record.email, record.row_number)
        return True


class RecordingTicketMailer(TicketMailer):
    """
    Mailer that only records what it was asked to send

    Used when STORE_BACKEND is 'memory' and in tests. Addresses listed
    in ``failing`` report a failed delivery.
    """

    def __init__(self, failing: Tuple[str, ...] = ()):
        self.failing = set(failing)
        self.sent: List[AttendeeRecord] = []

    def send_ticket(self, record: AttendeeRecord) -> bool:
        if record.email in self.failing:
            return False
        self.sent.append(record)
        return True
