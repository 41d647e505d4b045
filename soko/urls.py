"""
Root URL configuration for the soko project.

Everything client-facing lives under `/api/`; `/healthz` is for probes and
`/admin/` is the Django admin used for moderation.
"""

from django.contrib import admin
from django.urls import include, path

from apps.observability.views.health import healthz

handler404 = "soko.error_views.handle_404"
handler500 = "soko.error_views.handle_500"

urlpatterns = [
    path("healthz", healthz, name="healthz"),
    path("admin/", admin.site.urls),
    path("api/", include("soko.api_urls")),
]
