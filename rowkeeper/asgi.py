"""
ASGI config for rowkeeper project.

It exposes the ASGI callable as a module-level variable named ``application``.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "rowkeeper.settings_prod")

# Configure tracing before the first request is handled
import rowkeeper.tracing  # noqa: F401, E402

application = get_asgi_application()
