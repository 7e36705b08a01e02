import os

from .settings import *  # noqa: F403
from .settings import LOGGING as BASE_LOGGING

DEBUG = True

# Disable secure cookies for local development
CSRF_COOKIE_SECURE = False

# Allow local hosts for development
ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

LOGGING = {
    **BASE_LOGGING,
    "loggers": {
        **BASE_LOGGING["loggers"],
        "django.db.backends": {
            "handlers": ["console"],
            "level": "DEBUG" if os.getenv("SQL_DEBUG") == "True" else "INFO",
            "propagate": False,
        },
        "rowkeeper": {
            "handlers": ["console"],
            "level": os.getenv("ROWKEEPER_LOG_LEVEL", "DEBUG").upper(),
            "propagate": True,
        },
    },
}
