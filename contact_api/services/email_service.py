"""
SMTP mail transport for the contact API.

Talks to any SMTP relay (Gmail / Google Workspace by default) with STARTTLS
or implicit TLS. Every call is blocking and bounded by MAIL_TIMEOUT; failures
are raised as TransportError with a short code so callers can map them to
user-facing messages.

Usage:
    transport = SmtpTransport.from_config(app.config)
    transport.verify()
    message_id = transport.send(EmailMessage(...))
"""

import logging
import smtplib
import socket
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid

from contact_api.errors import TransportError

logger = logging.getLogger(__name__)


def _header(value):
    """Strip CR/LF so user input cannot inject extra headers."""
    return (value or "").replace("\r", " ").replace("\n", " ").strip()


@dataclass(frozen=True)
class EmailMessage:
    from_name: str
    from_address: str
    to: str
    subject: str
    text: str
    html: str = None
    reply_to: str = None

    @property
    def sender(self):
        return formataddr((_header(self.from_name), _header(self.from_address)))


def build_mime(message, domain=None):
    """Build a multipart/alternative MIME message (text first, then HTML).

    Returns:
        (mime, message_id)
    """
    message_id = make_msgid(domain=domain)

    if message.html:
        mime = MIMEMultipart("alternative")
        mime.attach(MIMEText(message.text, "plain", "utf-8"))
        mime.attach(MIMEText(message.html, "html", "utf-8"))
    else:
        mime = MIMEText(message.text, "plain", "utf-8")

    mime["Subject"] = _header(message.subject)
    mime["From"] = message.sender
    mime["To"] = _header(message.to)
    mime["Date"] = formatdate(localtime=True)
    mime["Message-ID"] = message_id
    if message.reply_to:
        mime["Reply-To"] = _header(message.reply_to)

    return mime, message_id


class SmtpTransport:
    """Blocking SMTP transport. Opens a fresh authenticated connection per call."""

    def __init__(self, host, port, username, password, use_ssl=False, timeout=30):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            host=config.get("MAIL_SMTP_HOST", "smtp.gmail.com"),
            port=config.get("MAIL_SMTP_PORT", 587),
            username=config.get("MAIL_USERNAME"),
            password=config.get("MAIL_PASSWORD"),
            use_ssl=config.get("MAIL_USE_SSL", False),
            timeout=config.get("MAIL_TIMEOUT", 30),
        )

    def verify(self):
        """Connect and authenticate without sending anything."""
        with self._connect():
            pass
        logger.info(f"SMTP connection verified for {self.username} at {self.host}:{self.port}")

    def send(self, message):
        """Send one EmailMessage and return its Message-ID."""
        domain = self.username.split("@")[-1] if self.username and "@" in self.username else None
        mime, message_id = build_mime(message, domain=domain)
        with self._connect() as server:
            try:
                server.send_message(mime)
            except smtplib.SMTPRecipientsRefused as e:
                raise TransportError(TransportError.MESSAGE, f"Recipient refused: {message.to}") from e
            except smtplib.SMTPResponseException as e:
                raise TransportError(TransportError.MESSAGE, f"{e.smtp_code} {e.smtp_error!r}") from e
            except (socket.timeout, TimeoutError) as e:
                raise TransportError(TransportError.TIMEOUT, str(e)) from e
            except (smtplib.SMTPException, OSError) as e:
                raise TransportError(TransportError.CONNECTION, str(e)) from e
        logger.info(f"Email sent to {message.to}: {message.subject} ({message_id})")
        return message_id

    def _connect(self):
        """Return a logged-in SMTP connection (usable as a context manager)."""
        context = ssl.create_default_context()
        server = None
        try:
            if self.use_ssl:
                server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
                server.ehlo()
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
            server.login(self.username, self.password)
            return server
        except smtplib.SMTPAuthenticationError as e:
            self._close(server)
            raise TransportError(TransportError.AUTH, f"{e.smtp_code} {e.smtp_error!r}") from e
        except (socket.timeout, TimeoutError) as e:
            self._close(server)
            raise TransportError(TransportError.TIMEOUT, str(e)) from e
        except (smtplib.SMTPException, OSError) as e:
            self._close(server)
            raise TransportError(TransportError.CONNECTION, str(e)) from e

    @staticmethod
    def _close(server):
        if server is None:
            return
        try:
            server.close()
        except OSError:
            pass
