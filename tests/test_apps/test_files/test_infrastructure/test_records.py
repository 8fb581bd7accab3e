"""Tests for the record store adapter."""

import pytest
from django.db import OperationalError

from server.apps.files.exceptions import ErrorKind, UnavailableError
from server.apps.files.infrastructure.records import atomic, run_after_commit
from server.apps.files.models import Folder


@pytest.mark.django_db
def test_atomic_translates_store_outage(user):
    """Test store failures surface as retryable UnavailableError."""
    with pytest.raises(UnavailableError) as exc_info:
        with atomic():
            raise OperationalError('database is locked')

    assert exc_info.value.kind == ErrorKind.UNAVAILABLE
    assert exc_info.value.retryable


@pytest.mark.django_db
def test_atomic_rolls_back(user):
    """Test an error inside the block discards its writes."""
    with pytest.raises(ValueError, match='boom'):
        with atomic():
            Folder.objects.create(owner=user, name='Temporary')
            raise ValueError('boom')

    assert not Folder.objects.exists()


@pytest.mark.django_db
def test_run_after_commit(django_capture_on_commit_callbacks):
    """Test callbacks wait for the commit."""
    calls = []

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with atomic():
            run_after_commit(lambda: calls.append('done'), description='test')
            assert not calls

    assert len(callbacks) == 1
    assert calls == ['done']
