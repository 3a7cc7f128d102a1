"""
Application configuration.
This module defines the configuration settings for the Flask application: database connection, secret key,
generative-text API access, photo pipeline limits and logging. It uses environment variables for sensitive
information and defaults for development. In production, set the appropriate environment variables and secure
the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'quoteflow.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for forms
    WTF_CSRF_ENABLED = True

    # Fallback brand name (the branding row in the database wins once it exists)
    APP_NAME = "QuoteFlow"

    # Demo mode: no login screen, every visitor acts as ADMIN
    DEMO_MODE = _bool_env("DEMO_MODE", False)

    # Role for logged-in users whose e-mail is not listed in the system users
    DEFAULT_USER_ROLE = os.environ.get("DEFAULT_USER_ROLE", "ADMIN")

    # Generative-text API (quote message formatting). Without a key the local template is used.
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-3-flash-preview")
    GEMINI_API_URL = os.environ.get(
        "GEMINI_API_URL",
        "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
    )
    GEMINI_TIMEOUT_SECONDS = _int_env("GEMINI_TIMEOUT_SECONDS", 20)

    # Photo pipeline
    PHOTO_MAX_EDGE = _int_env("PHOTO_MAX_EDGE", 1280)
    PHOTO_JPEG_QUALITY = _int_env("PHOTO_JPEG_QUALITY", 80)
    MAX_ATTACHMENT_BYTES = _int_env("MAX_ATTACHMENT_BYTES", 5 * 1024 * 1024)
    MAX_CONTENT_LENGTH = _int_env("MAX_CONTENT_LENGTH", 32 * 1024 * 1024)

    # Logging
    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    """Configuration used by the test-suite."""

    TESTING = True
    SECRET_KEY = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    DEMO_MODE = False
    DEFAULT_USER_ROLE = "ADMIN"
    GEMINI_API_KEY = None
    LOG_JSON = False
