import os
import logging
from datetime import datetime, timezone

import click
from flask import Flask, jsonify, request

from contact_api.config import Config, config_by_name
from contact_api.errors import ConfigurationMissing, ContactError, TransportError
from contact_api.extensions import limiter
from contact_api.services.dispatch import ContactDispatcher
from contact_api.services.email_service import SmtpTransport
from contact_api.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

AUTH_GUIDANCE = [
    "Authentication failed. Please check:",
    "1. MAIL_USERNAME is the correct Gmail address",
    "2. MAIL_PASSWORD is an App Password (not the regular password)",
    "3. 2-Step Verification is enabled on the account",
    "4. The App Password was generated correctly",
]
CONNECTION_GUIDANCE = [
    "Connection failed. Please check MAIL_SMTP_HOST / MAIL_SMTP_PORT and your network.",
]


def create_app(config_name=None, transport=None):
    """Application factory.

    Args:
        config_name: Key of config_by_name; defaults to $FLASK_ENV.
        transport:   Mail transport to use instead of SMTP (tests pass a fake).
    """

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    # --- Mail transport (absent credentials disable mail, not the app) ---
    missing = []
    if transport is None:
        missing = Config.missing_mail_settings(app.config)
        try:
            Config.validate(app.config)
        except ConfigurationMissing as e:
            app.logger.warning(f"Config validation: {e.detail}")
        else:
            transport = SmtpTransport.from_config(app.config)

    # --- Contact pipeline ---
    rate_limiter = RateLimiter(
        max_requests=app.config["CONTACT_RATE_LIMIT"],
        window_seconds=app.config["CONTACT_RATE_WINDOW_SECONDS"],
    )
    app.extensions["contact_rate_limiter"] = rate_limiter
    app.extensions["contact_dispatcher"] = ContactDispatcher(
        rate_limiter, transport=transport, missing_settings=missing,
    )

    # --- Init extensions ---
    limiter.init_app(app)

    # --- Request log + CORS ---
    @app.before_request
    def log_request():
        logger.info(f"{datetime.now(timezone.utc).isoformat()} - {request.method} {request.path}")

    from contact_api.middleware.cors import init_cors_middleware
    init_cors_middleware(app)

    # --- Register blueprints ---
    from contact_api.blueprints.contact import contact_bp
    from contact_api.blueprints.health import health_bp

    app.register_blueprint(contact_bp)
    app.register_blueprint(health_bp)

    register_error_handlers(app)
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-XSS-Protection"] = "0"
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
        )
        if not app.debug and not app.testing:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Startup self-test ---
    if app.config.get("MAIL_VERIFY_ON_STARTUP") and transport is not None:
        if verify_mail_config(app.extensions["contact_dispatcher"]):
            logger.info("Server ready to handle contact form submissions!")
        else:
            logger.warning("Server started but email configuration has issues!")

    return app


def verify_mail_config(dispatcher, echo=None):
    """Run the transport pre-flight check and report guidance on failure.

    Returns:
        True if the transport verified, False otherwise.
    """
    echo = echo or logger.error
    try:
        dispatcher.verify_transport()
    except ConfigurationMissing as e:
        echo(f"Email configuration missing: {', '.join(e.missing)}")
        return False
    except ContactError as e:
        echo(f"Email configuration test failed: {e.code} {e.detail}")
        guidance = AUTH_GUIDANCE if e.code == TransportError.AUTH else CONNECTION_GUIDANCE
        for line in guidance:
            echo(line)
        return False
    return True


def register_error_handlers(app):
    """JSON bodies for every error the framework raises."""

    @app.errorhandler(404)
    def not_found(e):
        logger.info(f"Route not found: {request.method} {request.path}")
        return jsonify(success=False, error="Route not found"), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify(success=False, error="Method not allowed"), 405

    @app.errorhandler(413)
    def payload_too_large(e):
        return jsonify(success=False, error="Request body too large"), 413

    @app.errorhandler(429)
    def too_many_requests(e):
        # flask-limiter rejections on the diagnostic route
        return jsonify(
            success=False,
            error="Too many requests, please try again later.",
            status="rate_limit_exceeded",
        ), 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f"Unhandled error on {request.method} {request.path}: {e}")
        return jsonify(
            success=False,
            error="Internal server error",
            timestamp=datetime.now(timezone.utc).isoformat(),
        ), 500


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("verify-mail")
    def verify_mail():
        """Check that the SMTP credentials work.

        Usage:
            flask verify-mail
        """
        dispatcher = app.extensions["contact_dispatcher"]
        if verify_mail_config(dispatcher, echo=click.echo):
            click.echo("Email configuration is valid!")
        else:
            raise SystemExit(1)

    @app.cli.command("send-test-email")
    @click.option("--to", default=None, help="Recipient (defaults to the sender address).")
    def send_test_email(to):
        """Send the diagnostic test email.

        Usage:
            flask send-test-email
            flask send-test-email --to someone@example.com
        """
        from contact_api.services.rendering import render_test_email

        dispatcher = app.extensions["contact_dispatcher"]
        try:
            message_id = dispatcher.send_single(render_test_email(to=to))
        except ContactError as e:
            click.echo(f"Test email failed: {e.user_message} ({e.code}: {e.detail})")
            raise SystemExit(1)
        click.echo(f"Test email sent: {message_id}")
