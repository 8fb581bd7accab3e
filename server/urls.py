"""Root URL configuration.

Only the admin site is mounted here; the public API layer maps the
engine operations in ``server.apps.*.logic`` onto its own routes.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]
