"""Tests for the dispatch coordinator state machine.

Covers:
- Happy path reaches DONE with both message ids
- Each failure stage ends in ERROR with the right category
- No sends after a failed verify; notification kept after a failed auto-reply
- Rate limiting runs before validation
- Missing transport reports ConfigurationMissing
"""

from contact_api.errors import (
    ConfigurationMissing,
    RateLimited,
    SendFailed,
    TransportError,
    TransportUnavailable,
    ValidationFailed,
)
from contact_api.services.dispatch import ClientContext, ContactDispatcher, DispatchState
from contact_api.services.rate_limiter import RateLimiter


def _dispatcher(transport, max_requests=5):
    return ContactDispatcher(RateLimiter(max_requests=max_requests), transport=transport)


def _client(now=1000.0):
    return ClientContext(identity="198.51.100.1", user_agent="pytest", now=now)


class TestHappyPath:

    def test_reaches_done(self, app, transport, valid_submission):
        with app.app_context():
            outcome = _dispatcher(transport).submit(valid_submission, _client())

        assert outcome.ok
        assert outcome.state is DispatchState.DONE
        assert outcome.error is None
        assert outcome.message_ids == {
            "notification": "<msg-1@test.local>",
            "autoReply": "<msg-2@test.local>",
        }
        assert transport.verify_calls == 1
        assert [m.to for m in transport.sent] == ["inbox@example.com", "al@x.com"]

    def test_both_emails_from_same_record(self, app, transport, valid_submission):
        with app.app_context():
            _dispatcher(transport).submit(valid_submission, _client())
        notification, auto_reply = transport.sent
        assert "Hello there" in notification.subject
        assert "Hello there" in auto_reply.subject


class TestFailureStages:

    def test_rate_limited_before_validation(self, app, transport):
        dispatcher = _dispatcher(transport, max_requests=1)
        with app.app_context():
            first = dispatcher.submit({}, _client(now=0))
            second = dispatcher.submit({}, _client(now=1))

        assert isinstance(first.error, ValidationFailed)
        assert second.state is DispatchState.ERROR
        assert second.reached is DispatchState.RECEIVED
        assert isinstance(second.error, RateLimited)
        assert second.error.retry_after == 15 * 60 - 1

    def test_validation_failure(self, app, transport):
        with app.app_context():
            outcome = _dispatcher(transport).submit(
                {"name": "", "email": "bad", "subject": "Hi", "message": "short"}, _client(),
            )
        assert outcome.reached is DispatchState.RATE_CHECKED
        assert isinstance(outcome.error, ValidationFailed)
        assert set(outcome.error.errors) == {"name", "email", "subject", "message"}
        assert transport.verify_calls == 0
        assert transport.sent == []

    def test_verify_failure_sends_nothing(self, app, transport, valid_submission):
        transport.verify_error = TransportError(TransportError.AUTH, "535 bad credentials")
        with app.app_context():
            outcome = _dispatcher(transport).submit(valid_submission, _client())

        assert outcome.reached is DispatchState.VALIDATED
        assert isinstance(outcome.error, TransportUnavailable)
        assert outcome.error.code == "EAUTH"
        assert outcome.error.user_message == (
            "Email authentication failed. Please contact the administrator."
        )
        assert transport.send_calls == 0

    def test_verify_timeout_is_transport_unavailable(self, app, transport, valid_submission):
        transport.verify_error = TransportError(TransportError.TIMEOUT, "timed out")
        with app.app_context():
            outcome = _dispatcher(transport).submit(valid_submission, _client())
        assert isinstance(outcome.error, TransportUnavailable)
        assert outcome.error.user_message.startswith("Connection error.")

    def test_notification_failure(self, app, transport, valid_submission):
        transport.fail_on_call = {1}
        with app.app_context():
            outcome = _dispatcher(transport).submit(valid_submission, _client())

        assert outcome.reached is DispatchState.TRANSPORT_VERIFIED
        assert isinstance(outcome.error, SendFailed)
        assert outcome.error.stage == "notification"
        assert transport.send_calls == 1
        assert transport.sent == []

    def test_auto_reply_failure_keeps_notification(self, app, transport, valid_submission):
        transport.fail_on_call = {2}
        with app.app_context():
            outcome = _dispatcher(transport).submit(valid_submission, _client())

        assert not outcome.ok
        assert outcome.reached is DispatchState.NOTIFIED
        assert isinstance(outcome.error, SendFailed)
        assert outcome.error.stage == "auto-reply"
        assert outcome.message_ids == {"notification": "<msg-1@test.local>"}
        assert [m.to for m in transport.sent] == ["inbox@example.com"]

    def test_no_transport_is_configuration_missing(self, app, valid_submission):
        dispatcher = ContactDispatcher(
            RateLimiter(), transport=None, missing_settings=["MAIL_PASSWORD"],
        )
        with app.app_context():
            outcome = dispatcher.submit(valid_submission, _client())

        assert not dispatcher.configured
        assert isinstance(outcome.error, ConfigurationMissing)
        assert outcome.error.missing == ["MAIL_PASSWORD"]

    def test_failures_are_not_retried(self, app, transport, valid_submission):
        transport.fail_on_call = {1}
        with app.app_context():
            _dispatcher(transport).submit(valid_submission, _client())
        assert transport.verify_calls == 1
        assert transport.send_calls == 1
