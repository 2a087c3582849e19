"""
Django settings for the meal subscription backend.

This is the single settings file for all environments. Configuration is driven
by environment variables using django-environ, following the 12-factor app
methodology.

Environment files:
    - .env.development: Development settings (DEBUG=True, local SQLite)
    - .env.production: Production settings (DEBUG=False, managed database)

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/topics/settings/
"""

import os
from pathlib import Path

import environ

# =============================================================================
# Path Configuration
# =============================================================================
# Build paths inside the project: BASE_DIR / 'subdir'
BASE_DIR = Path(__file__).resolve().parent.parent

# =============================================================================
# Environment Configuration
# =============================================================================
env = environ.Env(
    # Set default values and casting for common settings
    DEBUG=(bool, False),  # Default to False for safety
    ALLOWED_HOSTS=(list, []),
    LOG_LEVEL=(str, "INFO"),
)

# Note: In containers, env vars are passed directly; .env files are for local dev
env_file = os.environ.get("ENV_FILE", BASE_DIR.parent / ".env.development")
if Path(env_file).exists():
    environ.Env.read_env(env_file)

# =============================================================================
# Core Settings
# =============================================================================
# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env("SECRET_KEY", default="django-insecure-local-development-key")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env("DEBUG")

ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# =============================================================================
# Application Definition
# =============================================================================
INSTALLED_APPS = [
    # Django core apps
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # Local apps
    "core",
    "wallets",
    "subscriptions",
]

# =============================================================================
# Database Configuration
# =============================================================================
# https://docs.djangoproject.com/en/5.2/ref/settings/#databases
DATABASES = {
    "default": env.db(
        "DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
    ),
}

# =============================================================================
# Cache Configuration
# =============================================================================
# https://docs.djangoproject.com/en/5.2/topics/cache/
# e.g. CACHE_URL=rediscache://redis:6379/0 in production
CACHES = {
    "default": env.cache("CACHE_URL", default="locmemcache://"),
}

# =============================================================================
# Authentication Configuration
# =============================================================================
# Customers are plain django.contrib.auth users; roles are auth groups.
AUTH_USER_MODEL = "auth.User"

# =============================================================================
# Subscription Configuration
# =============================================================================
# Currency recorded on every refund (1 coin = 1 unit of this currency)
SUBSCRIPTION_CURRENCY = env("SUBSCRIPTION_CURRENCY", default="INR")

# Role granted to a customer when one of their subscriptions is approved.
# DEFAULT_SUBSCRIBER_ROLE_ID wins; otherwise the group named
# SUBSCRIBER_ROLE_NAME is used if it exists.
DEFAULT_SUBSCRIBER_ROLE_ID = env.int("DEFAULT_SUBSCRIBER_ROLE_ID", default=None)
SUBSCRIBER_ROLE_NAME = env("SUBSCRIBER_ROLE_NAME", default="Subscriber")

# How long the active refund policy list is cached (seconds).
# Policy saves and deletes invalidate the cache immediately.
REFUND_POLICY_CACHE_TIMEOUT = env.int("REFUND_POLICY_CACHE_TIMEOUT", default=300)

# =============================================================================
# Internationalization
# =============================================================================
# https://docs.djangoproject.com/en/5.2/topics/i18n/
LANGUAGE_CODE = "en-us"
# Calendar-day boundaries for refund proration are taken in this zone
TIME_ZONE = env("TIME_ZONE", default="Asia/Kolkata")
USE_I18N = True
USE_TZ = True

# =============================================================================
# Default Primary Key Field Type
# =============================================================================
# https://docs.djangoproject.com/en/5.2/ref/settings/#default-auto-field
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Logging Configuration
# =============================================================================
LOG_LEVEL = env("LOG_LEVEL")

LOG_FILE_NAME = env("LOG_FILE_NAME", default="django.log")
LOG_DIR = BASE_DIR / "logs"

# Ensure log directory exists (handles local development without containers)
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
        "file": {
            "format": "[{asctime}] {levelname} {name} {module}:{lineno} - {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
        "file": {
            # Max 10MB per file, keeps 5 backups
            "level": "DEBUG",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": LOG_DIR / LOG_FILE_NAME,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "formatter": "file",
            "encoding": "utf-8",
        },
    },
    "root": {
        "handlers": ["console", "file"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
