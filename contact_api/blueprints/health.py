"""Health and configuration-report endpoints. Read-only, no side effects."""

import os
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

health_bp = Blueprint("health", __name__, url_prefix="/api")

SERVICE_NAME = "Contact Form API"


def _set(value, label="Set"):
    return label if value else "Not set"


@health_bp.route("/health", methods=["GET"])
def health():
    dispatcher = current_app.extensions["contact_dispatcher"]
    return jsonify(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
        service=SERVICE_NAME,
        emailConfigured=dispatcher.configured,
    )


@health_bp.route("/debug", methods=["GET"])
def debug():
    """Report which settings are present. Never returns secret values."""
    config = current_app.config
    return jsonify(
        environment={
            "FLASK_ENV": os.environ.get("FLASK_ENV", "development"),
            "PORT": config.get("PORT"),
            "MAIL_SMTP_HOST": config.get("MAIL_SMTP_HOST"),
            "MAIL_USERNAME": _set(config.get("MAIL_USERNAME")),
            "MAIL_PASSWORD": _set(config.get("MAIL_PASSWORD"), "Set (App Password?)"),
            "MAIL_CONTACT_TO": (
                "Set" if config.get("MAIL_CONTACT_TO") else "Using MAIL_USERNAME as recipient"
            ),
            "CONTACT_RATE_LIMIT": config.get("CONTACT_RATE_LIMIT"),
        },
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
