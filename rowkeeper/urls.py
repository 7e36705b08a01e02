"""
URL configuration for rowkeeper project.

The JSON API for projects, counters, history and counter links is mounted
under ``api/``; the Django admin is mounted under ``admin/``.
"""

from django.contrib import admin
from django.urls import include, path

admin.site.site_header = "Rowkeeper Admin"

urlpatterns = [
    path("api/", include("rowkeeper.core.urls")),
    path("admin/", admin.site.urls),
]
