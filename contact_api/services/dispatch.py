"""Dispatch coordinator: runs one contact submission through the pipeline.

    RECEIVED -> RATE_CHECKED -> VALIDATED -> TRANSPORT_VERIFIED
             -> NOTIFIED -> REPLIED -> DONE

Any failing stage ends in ERROR with the ContactError that stopped it. Nothing
is retried, and a notification that went out before the auto-reply failed is
not recalled.
"""

import enum
import logging
import time
from dataclasses import dataclass, field

from contact_api.errors import (
    ConfigurationMissing,
    ContactError,
    RateLimited,
    SendFailed,
    TransportError,
    TransportUnavailable,
    ValidationFailed,
)
from contact_api.services.rendering import RequestMetadata, render
from contact_api.services.validation import validate

logger = logging.getLogger(__name__)


class DispatchState(enum.Enum):
    RECEIVED = "received"
    RATE_CHECKED = "rate_checked"
    VALIDATED = "validated"
    TRANSPORT_VERIFIED = "transport_verified"
    NOTIFIED = "notified"
    REPLIED = "replied"
    DONE = "done"
    ERROR = "error"


@dataclass
class ClientContext:
    """Who sent the request. `identity` keys the rate limiter."""

    identity: str
    user_agent: str = "Unknown"
    now: float = None


@dataclass
class Outcome:
    state: DispatchState = DispatchState.RECEIVED
    reached: DispatchState = DispatchState.RECEIVED
    error: ContactError = None
    message_ids: dict = field(default_factory=dict)

    @property
    def ok(self):
        return self.state is DispatchState.DONE

    def advance(self, state):
        self.state = state
        self.reached = state

    def fail(self, error):
        self.state = DispatchState.ERROR
        self.error = error
        return self


class ContactDispatcher:
    """Sequences rate check, validation, rendering and the two sends.

    Args:
        rate_limiter: RateLimiter shared by every request of this app.
        transport:    Object with verify() and send(message) -> message id,
                      or None when mail is not configured.
        renderer:     render(record, metadata) -> (notification, auto_reply).
                      Needs an app context with the contact templates.
    """

    def __init__(self, rate_limiter, transport=None, renderer=render, missing_settings=None):
        self.rate_limiter = rate_limiter
        self.transport = transport
        self.renderer = renderer
        self.missing_settings = list(missing_settings or [])

    @property
    def configured(self):
        return self.transport is not None

    def submit(self, raw, client):
        outcome = Outcome()
        try:
            self._check_rate(client)
            outcome.advance(DispatchState.RATE_CHECKED)

            record = self._validate(raw)
            outcome.advance(DispatchState.VALIDATED)

            metadata = RequestMetadata(
                client_address=client.identity or "Unknown",
                user_agent=client.user_agent or "Unknown",
            )
            notification, auto_reply = self.renderer(record, metadata)

            self.verify_transport()
            outcome.advance(DispatchState.TRANSPORT_VERIFIED)

            outcome.message_ids["notification"] = self._send(notification, "notification")
            outcome.advance(DispatchState.NOTIFIED)

            outcome.message_ids["autoReply"] = self._send(auto_reply, "auto-reply")
            outcome.advance(DispatchState.REPLIED)
        except ContactError as e:
            logger.warning(
                f"Contact submission stopped after {outcome.reached.value}: "
                f"{e.category} ({e.code or '-'}) {e.detail or ''}".rstrip()
            )
            return outcome.fail(e)

        outcome.advance(DispatchState.DONE)
        logger.info(
            f"Contact form submission completed from {record.name} ({record.email}): "
            f"notification {outcome.message_ids['notification']}, "
            f"auto-reply {outcome.message_ids['autoReply']}"
        )
        return outcome

    def verify_transport(self):
        """Pre-flight check. Raises ConfigurationMissing or TransportUnavailable."""
        if self.transport is None:
            raise ConfigurationMissing(self.missing_settings)
        try:
            self.transport.verify()
        except TransportError as e:
            raise TransportUnavailable.from_transport_error(e) from e

    def send_single(self, message, stage="test"):
        """Verify, then send one message. Used by the diagnostic endpoint."""
        self.verify_transport()
        return self._send(message, stage)

    def _check_rate(self, client):
        now = client.now if client.now is not None else time.time()
        decision = self.rate_limiter.admit(client.identity, now)
        if not decision.allowed:
            raise RateLimited(retry_after=decision.retry_after(now))

    def _validate(self, raw):
        result = validate(raw)
        if not result.ok:
            logger.info(f"Validation failed: {result.errors}")
            raise ValidationFailed(result.errors)
        return result.record

    def _send(self, message, stage):
        logger.info(f"Sending {stage} email to {message.to}")
        try:
            return self.transport.send(message)
        except TransportError as e:
            raise SendFailed(stage, code=e.code, detail=e.detail) from e
