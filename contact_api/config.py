import os


def _env_flag(name, default=""):
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def _origin_list():
    raw = os.environ.get("CORS_ALLOWED_ORIGINS")
    if raw:
        origins = [o.strip() for o in raw.split(",")]
    else:
        origins = [
            "http://localhost:3000",
            "http://localhost:3001",
            "http://127.0.0.1:3000",
        ]
    frontend_url = os.environ.get("FRONTEND_URL")
    if frontend_url:
        origins.append(frontend_url.strip())
    return [o for o in origins if o]


class Config:
    """Base configuration. Shared across all environments."""

    PORT = int(os.environ.get("PORT", 3001))
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    # --- Email (SMTP) ---
    MAIL_SMTP_HOST = os.environ.get("MAIL_SMTP_HOST", "smtp.gmail.com")
    MAIL_SMTP_PORT = int(os.environ.get("MAIL_SMTP_PORT", 587))
    MAIL_USE_SSL = _env_flag("MAIL_USE_SSL")                 # implicit TLS, e.g. port 465
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")          # e.g. you@gmail.com
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")          # Google App Password
    MAIL_FROM_NAME = os.environ.get("MAIL_FROM_NAME", "Contact Form")
    MAIL_REPLY_NAME = os.environ.get("MAIL_REPLY_NAME", "Yassine Chadani")
    MAIL_FROM_ADDRESS = os.environ.get("MAIL_FROM_ADDRESS")  # defaults to MAIL_USERNAME
    MAIL_CONTACT_TO = os.environ.get("MAIL_CONTACT_TO")      # defaults to MAIL_USERNAME
    MAIL_TIMEOUT = float(os.environ.get("MAIL_TIMEOUT", 30))
    MAIL_VERIFY_ON_STARTUP = _env_flag("MAIL_VERIFY_ON_STARTUP", "true")

    # --- Rate limiting ---
    CONTACT_RATE_LIMIT = int(os.environ.get("CONTACT_RATE_LIMIT", 5))
    CONTACT_RATE_WINDOW_SECONDS = int(os.environ.get("CONTACT_RATE_WINDOW_SECONDS", 15 * 60))
    TEST_EMAIL_RATE_LIMIT = os.environ.get("TEST_EMAIL_RATE_LIMIT", "3 per hour")

    # --- CORS ---
    CORS_ALLOWED_ORIGINS = _origin_list()

    @staticmethod
    def missing_mail_settings(config):
        """Return the names of required mail settings absent from `config`."""
        required = ["MAIL_USERNAME", "MAIL_PASSWORD"]
        return [name for name in required if not config.get(name)]

    @staticmethod
    def validate(config):
        """Fail fast if the mail credentials are missing."""
        missing = Config.missing_mail_settings(config)
        if missing:
            from contact_api.errors import ConfigurationMissing

            raise ConfigurationMissing(missing)


class DevConfig(Config):
    """Local development."""

    DEBUG = True


class TestConfig(Config):
    """Testing: fake credentials, no network on startup."""

    TESTING = True
    DEBUG = False
    MAIL_SMTP_HOST = "smtp.test.local"
    MAIL_SMTP_PORT = 587
    MAIL_USE_SSL = False
    MAIL_USERNAME = "owner@example.com"
    MAIL_PASSWORD = "app-password"
    MAIL_FROM_NAME = "Contact Form"
    MAIL_REPLY_NAME = "Site Owner"
    MAIL_FROM_ADDRESS = None
    MAIL_CONTACT_TO = "inbox@example.com"
    MAIL_TIMEOUT = 5
    MAIL_VERIFY_ON_STARTUP = False
    CONTACT_RATE_LIMIT = 5
    CONTACT_RATE_WINDOW_SECONDS = 15 * 60
    RATELIMIT_ENABLED = False  # flask-limiter (diagnostic route) off in tests
    CORS_ALLOWED_ORIGINS = ["http://localhost:3000"]


class ProdConfig(Config):
    """Production."""

    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
