"""Shared fixtures for app tests."""

import boto3
import pytest
from django.contrib.auth import get_user_model
from moto import mock_aws

from server.apps.files.models import File, Folder

User = get_user_model()


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
        first_name='Test',
        last_name='User',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with folder-share bucket.

    Yields:
        boto3 S3 resource with folder-share bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket='folder-share')

        yield conn


@pytest.fixture
def make_folder(db):
    """Factory for folders created directly in the database.

    Returns:
        Callable ``(owner, name, parent=None) -> Folder``.
    """
    def factory(owner, name, parent=None):
        return Folder.objects.create(owner=owner, name=name, parent=parent)

    return factory


@pytest.fixture
def make_file(db):
    """Factory for file records with a fake blob reference.

    Returns:
        Callable ``(owner, name, folder=None, size_bytes=100) -> File``.
    """
    def factory(owner, name, folder=None, size_bytes=100):
        return File.objects.create(
            owner=owner,
            name=name,
            folder=folder,
            blob=f'{owner.pk}/{name}',
            size_bytes=size_bytes,
            mime_type='text/plain',
        )

    return factory
