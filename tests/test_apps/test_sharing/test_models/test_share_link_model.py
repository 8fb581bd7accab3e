"""Tests for ShareLink model."""

from datetime import UTC, datetime, timedelta

import pytest
from django.db import IntegrityError, transaction

from server.apps.sharing.models import ShareLink

_EXPIRES_AT = datetime(2025, 1, 1, tzinfo=UTC)


@pytest.mark.django_db
def test_is_expired(user, make_folder):
    """Test expiry is inclusive of the expiry instant."""
    link = ShareLink.objects.create(
        token='token',
        folder=make_folder(user, 'Folder'),
        expires_at=_EXPIRES_AT,
    )

    assert not link.is_expired(_EXPIRES_AT - timedelta(seconds=1))
    assert link.is_expired(_EXPIRES_AT)
    assert link.is_expired(_EXPIRES_AT + timedelta(seconds=1))


@pytest.mark.django_db
def test_share_link_str(user, make_folder):
    """Test ShareLink __str__ masks the token."""
    folder = make_folder(user, 'Folder')
    link = ShareLink.objects.create(
        token='abcdefghijklmnop',
        folder=folder,
        expires_at=_EXPIRES_AT,
    )

    assert str(link) == f'{folder.pk}:abcdefgh'


@pytest.mark.django_db
def test_token_unique(user, make_folder):
    """Test tokens are unique across links."""
    folder = make_folder(user, 'Folder')
    ShareLink.objects.create(token='same', folder=folder, expires_at=_EXPIRES_AT)

    with pytest.raises(IntegrityError):
        with transaction.atomic():
            ShareLink.objects.create(
                token='same',
                folder=folder,
                expires_at=_EXPIRES_AT,
            )
