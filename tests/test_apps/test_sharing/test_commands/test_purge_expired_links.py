"""Tests for purge_expired_links management command."""

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from server.apps.sharing.models import ShareLink


@pytest.fixture
def links(user, make_folder):
    """Three links: long expired, recently expired and active.

    Returns:
        Dict of ShareLink instances by label.
    """
    folder = make_folder(user, 'Projects')
    now = timezone.now()

    def create(token, expires_at):
        return ShareLink.objects.create(
            token=token,
            folder=folder,
            expires_at=expires_at,
        )

    return {
        'old': create('old-token', now - timedelta(days=10)),
        'recent': create('recent-token', now - timedelta(hours=1)),
        'active': create('active-token', now + timedelta(days=1)),
    }


@pytest.mark.django_db
class TestPurgeExpiredLinksCommand:
    """Tests for purge_expired_links management command."""

    def test_purge_all_expired(self, links):
        """Test every expired link is purged by default."""
        out = StringIO()
        call_command('purge_expired_links', stdout=out)

        assert list(ShareLink.objects.all()) == [links['active']]
        assert 'Purged 2 share links' in out.getvalue()

    def test_grace_days(self, links):
        """Test links expired within the grace period are kept."""
        out = StringIO()
        call_command('purge_expired_links', '--grace-days=7', stdout=out)

        assert not ShareLink.objects.filter(pk=links['old'].pk).exists()
        assert ShareLink.objects.filter(pk=links['recent'].pk).exists()
        assert 'Purged 1 share links' in out.getvalue()

    def test_dry_run(self, links):
        """Test dry run lists links without deleting them."""
        out = StringIO()
        call_command('purge_expired_links', '--dry-run', stdout=out)

        output = out.getvalue()
        assert ShareLink.objects.count() == 3
        assert 'Would delete: old-toke...' in output
        assert 'Would purge 2 share links' in output

    def test_nothing_to_purge(self, db):
        """Test the command succeeds with no links."""
        out = StringIO()
        call_command('purge_expired_links', stdout=out)

        assert 'Purged 0 share links' in out.getvalue()
