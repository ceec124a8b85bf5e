"""
Error taxonomy for the contact pipeline.

Every error carries a stable, user-safe message and an HTTP status. Internal
detail (transport error codes, server replies) lives on separate attributes
and is only exposed in debug mode.
"""


class ContactError(Exception):
    """Base class for every failure the contact pipeline reports."""

    status_code = 500
    category = "internal_error"
    user_message = "Internal server error"

    def __init__(self, user_message=None, code=None, detail=None):
        super().__init__(user_message or self.user_message)
        if user_message:
            self.user_message = user_message
        self.code = code
        self.detail = detail

    def to_dict(self):
        return {"success": False, "error": self.user_message}


class ValidationFailed(ContactError):
    status_code = 400
    category = "validation_failed"
    user_message = "Validation failed"

    def __init__(self, errors):
        super().__init__()
        self.errors = dict(errors)

    def to_dict(self):
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class RateLimited(ContactError):
    status_code = 429
    category = "rate_limit_exceeded"
    user_message = "Too many contact form submissions, please try again later."

    def __init__(self, retry_after=None, user_message=None):
        super().__init__(user_message)
        self.retry_after = retry_after

    def to_dict(self):
        data = super().to_dict()
        data["status"] = self.category
        if self.retry_after is not None:
            data["retryAfter"] = self.retry_after
        return data


class TransportUnavailable(ContactError):
    category = "transport_unavailable"
    user_message = "Email authentication failed. Please contact the administrator."
    connection_message = "Connection error. Please check your internet connection and try again."

    @classmethod
    def from_transport_error(cls, exc):
        message = None if exc.code == TransportError.AUTH else cls.connection_message
        return cls(message, code=exc.code, detail=exc.detail)


class SendFailed(ContactError):
    category = "send_failed"
    user_message = "There was an error sending your message. Please try again later."

    def __init__(self, stage, code=None, detail=None):
        super().__init__(code=code, detail=detail)
        self.stage = stage


class ConfigurationMissing(ContactError):
    category = "configuration_missing"
    user_message = "Server configuration error. Please contact the administrator."

    def __init__(self, missing=None):
        self.missing = list(missing or [])
        super().__init__(
            code="ECONFIG",
            detail=f"Missing mail settings: {', '.join(self.missing)}" if self.missing else None,
        )


class TransportError(Exception):
    """Raised by a mail transport. `code` is one of the TransportError.* codes."""

    AUTH = "EAUTH"
    CONNECTION = "ECONNECTION"
    TIMEOUT = "ETIMEDOUT"
    MESSAGE = "EMESSAGE"

    def __init__(self, code, detail=""):
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code = code
        self.detail = detail
