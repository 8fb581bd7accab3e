"""Django admin configuration for sharing app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.html import format_html

from server.apps.sharing.logic.share_operations import (
    ShareStatus,
    share_link_status,
)
from server.apps.sharing.models import ShareLink


@admin.register(ShareLink)
class ShareLinkAdmin(admin.ModelAdmin):
    """Admin interface for ShareLink model."""

    list_display = [
        'token_display',
        'folder',
        'owner_display',
        'expires_at',
        'status_display',
        'created_at',
    ]

    list_filter = [
        'expires_at',
        'created_at',
    ]

    search_fields = [
        'folder__name',
        'folder__owner__username',
    ]

    raw_id_fields = ['folder']

    readonly_fields = ['token', 'created_at']

    def token_display(self, obj: ShareLink) -> str:
        """Display a shortened token.

        Args:
            obj: ShareLink instance.

        Returns:
            First characters of the token.
        """
        return f'{obj.token[:8]}...'
    token_display.short_description = 'Token'  # type: ignore[attr-defined]

    def owner_display(self, obj: ShareLink) -> str:
        """Display the owner of the shared folder.

        Args:
            obj: ShareLink instance.

        Returns:
            Username of the folder owner.
        """
        return obj.folder.owner.get_username()
    owner_display.short_description = 'Owner'  # type: ignore[attr-defined]

    def status_display(self, obj: ShareLink) -> str:
        """Display derived status.

        Args:
            obj: ShareLink instance.

        Returns:
            HTML formatted status indicator.
        """
        status = share_link_status(obj)
        color = '#28a745' if status == ShareStatus.ACTIVE else '#6c757d'
        return format_html(
            '<span style="color: {color}; font-weight: bold;">'
            '{status}</span>',
            color=color,
            status=status.value.title(),
        )
    status_display.short_description = 'Status'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[ShareLink]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('folder__owner')
