"""Shared fixtures for files app tests."""

import pytest

from server.apps.files.logic.file_operations import Upload
from server.apps.files.logic.upload_policy import UploadPolicy


@pytest.fixture
def sample_upload():
    """Small text upload.

    Returns:
        Upload with test data.
    """
    return Upload(name='test.txt', content=b'test file content')


@pytest.fixture
def policy():
    """Small upload policy for limit tests.

    Returns:
        UploadPolicy allowing three files of up to 1 KB, text and PNG only.
    """
    return UploadPolicy(
        max_file_size=1024,
        max_file_count=3,
        allowed_mime_types=frozenset({'text/plain', 'image/png'}),
    )
