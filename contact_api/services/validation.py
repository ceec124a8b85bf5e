"""Contact form sanitizer and validator.

Every field is coerced to a string, trimmed and stripped of HTML with
bleach.clean(); the remaining markup-significant characters are entity-escaped
so the values can be embedded in the HTML emails as-is. Length limits and
the email syntax check apply to the text as typed (trimmed, tags stripped,
entities not yet added).

All fields are checked on every call; the error map holds one message per
failing field.
"""

import html
import re
from dataclasses import dataclass, field

import bleach

FIELDS = ("name", "email", "subject", "message")

# (field, label, min length, max length)
LENGTH_RULES = (
    ("name", "Name", 2, 100),
    ("subject", "Subject", 5, 200),
    ("message", "Message", 10, 1000),
)

EMAIL_MAX_LENGTH = 254

# Dot-atom local part, dotted hostname with an alphabetic TLD.
EMAIL_RE = re.compile(
    r"^(?=.{1,64}@)"
    r"[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@"
    r"(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+"
    r"[A-Za-z]{2,63}$"
)


def sanitize(value):
    """Coerce to str, trim, strip tags and escape `<`, `>`, `&` and quotes."""
    if value is None:
        return ""
    text = bleach.clean(str(value).strip(), tags=[], strip=True)
    return text.replace('"', "&quot;").replace("'", "&#x27;").strip()


def is_valid_email(address):
    return len(address) <= EMAIL_MAX_LENGTH and EMAIL_RE.match(address) is not None


def _field_errors(values):
    errors = {}

    for name, label, min_len, max_len in LENGTH_RULES:
        value = html.unescape(values.get(name, ""))
        if not value:
            errors[name] = f"{label} is required"
        elif len(value) < min_len:
            errors[name] = f"{label} must be at least {min_len} characters long"
        elif len(value) > max_len:
            errors[name] = f"{label} must be less than {max_len} characters"

    email = html.unescape(values.get("email", ""))
    if not email:
        errors["email"] = "Email is required"
    elif not is_valid_email(email):
        errors["email"] = "Please enter a valid email address"

    return {name: errors[name] for name in FIELDS if name in errors}


@dataclass(frozen=True)
class SanitizedRecord:
    """A submission that passed sanitization and every field constraint."""

    name: str
    email: str
    subject: str
    message: str

    def __post_init__(self):
        errors = _field_errors(self.as_dict())
        if errors:
            raise ValueError(f"Invalid contact record: {errors}")

    def as_dict(self):
        return {
            "name": self.name,
            "email": self.email,
            "subject": self.subject,
            "message": self.message,
        }


@dataclass(frozen=True)
class ValidationResult:
    record: SanitizedRecord = None
    errors: dict = field(default_factory=dict)

    @property
    def ok(self):
        return self.record is not None


def validate(raw):
    """Sanitize and validate a raw submission mapping.

    Args:
        raw: Mapping with optional name, email, subject and message values
             of any type. Anything that is not a mapping counts as empty.

    Returns:
        ValidationResult holding either a SanitizedRecord or the error map.
    """
    if not isinstance(raw, dict):
        raw = {}

    values = {name: sanitize(raw.get(name)) for name in FIELDS}
    errors = _field_errors(values)
    if errors:
        return ValidationResult(errors=errors)

    return ValidationResult(record=SanitizedRecord(**values))
