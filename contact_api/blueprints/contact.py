"""
Contact form blueprint.

Handles the contact form submission: sends a notification to the site owner
and an auto-reply to the visitor. Also exposes a diagnostic endpoint that
sends a single test email.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from contact_api.errors import ContactError, RateLimited
from contact_api.extensions import limiter
from contact_api.services.dispatch import ClientContext
from contact_api.services.rendering import render_test_email

contact_bp = Blueprint("contact", __name__, url_prefix="/api")

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Your message has been sent successfully! I'll get back to you soon."


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


def _dispatcher():
    return current_app.extensions["contact_dispatcher"]


def error_response(error):
    """Turn a ContactError into its JSON response.

    Server-side failures get a timestamp; transport codes and detail are
    only attached in debug mode.
    """
    body = error.to_dict()
    if error.status_code >= 500:
        body["timestamp"] = _now_iso()
        if current_app.debug and (error.code or error.detail):
            body["debug"] = {"code": error.code, "message": error.detail}

    response = jsonify(body)
    response.status_code = error.status_code
    if isinstance(error, RateLimited) and error.retry_after is not None:
        response.headers["Retry-After"] = str(error.retry_after)
    return response


@contact_bp.route("/contact", methods=["POST"])
def send_contact():
    """
    Accept a JSON contact form submission.

    Expects: { name, email, subject, message }
    Returns: { success: true, message, timestamp, messageIds } or an error body.
    """
    data = request.get_json(silent=True)
    client = ClientContext(
        identity=request.remote_addr or "unknown",
        user_agent=request.headers.get("User-Agent", "Unknown"),
    )

    outcome = _dispatcher().submit(data, client)
    if not outcome.ok:
        return error_response(outcome.error)

    return jsonify(
        success=True,
        message=SUCCESS_MESSAGE,
        timestamp=_now_iso(),
        messageIds=outcome.message_ids,
    ), 200


@contact_bp.route("/test-email", methods=["POST"])
@limiter.limit(lambda: current_app.config.get("TEST_EMAIL_RATE_LIMIT", "3 per hour"))
def test_email():
    """Verify the transport and send one test email to the sender address."""
    dispatcher = _dispatcher()
    data = request.get_json(silent=True) or {}

    try:
        message = render_test_email(to=data.get("to") if current_app.debug else None)
        message_id = dispatcher.send_single(message)
    except ContactError as e:
        logger.error(f"Test email failed: {e.code} {e.detail}")
        body = {
            "success": False,
            "error": e.user_message,
            "code": e.code,
            "timestamp": _now_iso(),
        }
        if current_app.debug:
            body["detail"] = e.detail
        return jsonify(body), 500

    logger.info(f"Test email sent successfully: {message_id}")
    return jsonify(
        success=True,
        message="Test email sent successfully",
        messageId=message_id,
        timestamp=_now_iso(),
    ), 200
