"""Email rendering for contact submissions.

Builds the two messages sent for every accepted submission from fixed
layouts under templates/emails/:

  - notification: to MAIL_CONTACT_TO, every field plus request metadata
  - auto-reply:   to the submitter, subject and a short message preview

Record fields arrive already entity-escaped by the validator, so they are
wrapped in Markup for the HTML layouts instead of being escaped twice. The
plain-text layouts and the message headers get the unescaped text. Must be
called inside an app context.
"""

import html
from dataclasses import dataclass, field
from datetime import datetime, timezone

from flask import current_app, render_template
from markupsafe import Markup, escape

from contact_api.services.email_service import EmailMessage

PREVIEW_LENGTH = 200
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


@dataclass(frozen=True)
class RequestMetadata:
    client_address: str = "Unknown"
    user_agent: str = "Unknown"
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def preview(text, limit=PREVIEW_LENGTH):
    """Truncate unescaped `text` to `limit` characters, marking the cut with '...'."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def _sender_address():
    config = current_app.config
    return config.get("MAIL_FROM_ADDRESS") or config.get("MAIL_USERNAME") or ""


def _recipient_address():
    config = current_app.config
    return config.get("MAIL_CONTACT_TO") or config.get("MAIL_USERNAME") or ""


def _line_breaks(text):
    return Markup(text.replace("\r\n", "\n").replace("\n", "<br>\n"))


def render(record, metadata):
    """Render the notification and auto-reply for one SanitizedRecord.

    Returns:
        (notification_email, auto_reply_email)
    """
    config = current_app.config
    sent_at = metadata.submitted_at.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)
    from_address = _sender_address()

    # Plain-text bodies and headers carry the text as typed.
    plain = {name: html.unescape(value) for name, value in record.as_dict().items()}
    plain_preview = preview(plain["message"])

    text_context = {
        **plain,
        "preview": plain_preview,
        "sent_at": sent_at,
        "client_address": metadata.client_address or "Unknown",
        "user_agent": metadata.user_agent or "Unknown",
        "signer": config.get("MAIL_REPLY_NAME"),
    }
    html_context = {
        **text_context,
        "name": Markup(record.name),
        "email": Markup(record.email),
        "subject": Markup(record.subject),
        "message": _line_breaks(record.message),
        "preview": _line_breaks(str(escape(plain_preview))),
    }

    notification = EmailMessage(
        from_name=config.get("MAIL_FROM_NAME", "Contact Form"),
        from_address=from_address,
        to=_recipient_address(),
        subject=f"New Contact Form Submission: {plain['subject']}",
        text=render_template("emails/contact_notification.txt", **text_context),
        html=render_template("emails/contact_notification.html", **html_context),
        reply_to=plain["email"],
    )

    auto_reply = EmailMessage(
        from_name=config.get("MAIL_REPLY_NAME", "Contact Form"),
        from_address=from_address,
        to=plain["email"],
        subject=f"Thank you for contacting me - {plain['subject']}",
        text=render_template("emails/contact_auto_reply.txt", **text_context),
        html=render_template("emails/contact_auto_reply.html", **html_context),
        reply_to=_recipient_address() or None,
    )

    return notification, auto_reply


def render_test_email(to=None):
    """Build the diagnostic message sent by /api/test-email and `flask send-test-email`."""
    sent_at = datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)
    from_address = _sender_address()
    return EmailMessage(
        from_name="Test",
        from_address=from_address,
        to=to or from_address,
        subject="Test Email - Contact Form API",
        text=render_template("emails/test_email.txt", sent_at=sent_at),
        html=render_template("emails/test_email.html", sent_at=sent_at),
    )
