"""Shared test fixtures for the contact API test suite.

Provides:
- transport: recording fake mail transport (sent log, injectable failures)
- app: Flask app configured for testing, wired to the fake transport
- client: Flask test client
- valid_submission: a payload that passes validation
"""

import pytest

from contact_api import create_app
from contact_api.errors import TransportError


class RecordingTransport:
    """Stands in for SmtpTransport. Records every message it accepts.

    verify_error: TransportError raised by verify(), if set.
    fail_on_call: 1-based send() call numbers that raise send_error.
    """

    def __init__(self):
        self.sent = []
        self.verify_calls = 0
        self.send_calls = 0
        self.verify_error = None
        self.send_error = TransportError(TransportError.MESSAGE, "550 mailbox unavailable")
        self.fail_on_call = set()

    def verify(self):
        self.verify_calls += 1
        if self.verify_error is not None:
            raise self.verify_error

    def send(self, message):
        self.send_calls += 1
        if self.send_calls in self.fail_on_call:
            raise self.send_error
        self.sent.append(message)
        return f"<msg-{self.send_calls}@test.local>"


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def app(transport):
    """Create the Flask application configured for testing.

    Function-scoped so every test starts with empty rate limit windows.
    """
    app = create_app("testing", transport=transport)
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def valid_submission():
    return {
        "name": "Al",
        "email": "al@x.com",
        "subject": "Hello there",
        "message": "This is a test message.",
    }
