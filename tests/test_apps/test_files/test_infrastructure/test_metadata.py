"""Tests for metadata utilities."""

import pytest

from server.apps.files.exceptions import ValidationError
from server.apps.files.infrastructure.metadata import (
    clean_name,
    detect_mime_type,
    format_file_size,
)


def test_detect_mime_type():
    """Test MIME type detection from filename."""
    assert detect_mime_type('test.pdf') == 'application/pdf'
    assert detect_mime_type('test.txt') == 'text/plain'
    assert detect_mime_type('test.jpg') == 'image/jpeg'
    assert detect_mime_type('test.png') == 'image/png'


def test_detect_mime_type_unknown():
    """Test MIME type detection for unknown extension."""
    assert detect_mime_type('test.unknown') == 'application/octet-stream'


def test_detect_mime_type_declared():
    """Test a declared type overrides the extension."""
    assert detect_mime_type('test.txt', ' Image/PNG') == 'image/png'


def test_clean_name():
    """Test names are trimmed but otherwise preserved."""
    assert clean_name('  Q3 Reports ') == 'Q3 Reports'
    assert clean_name('Ünïcode') == 'Ünïcode'


@pytest.mark.parametrize(('raw_name', 'code'), [
    ('', 'required'),
    (' \t ', 'required'),
    (None, 'required'),
    ('x' * 256, 'too_long'),
])
def test_clean_name_invalid(raw_name, code):
    """Test invalid names."""
    with pytest.raises(ValidationError) as exc_info:
        clean_name(raw_name, entity='File')

    assert exc_info.value.code == code
    assert 'File name' in str(exc_info.value)


@pytest.mark.parametrize(('size_bytes', 'expected'), [
    (0, '0 Bytes'),
    (512, '512 Bytes'),
    (1024, '1 KB'),
    (1536, '1.5 KB'),
    (10 * 1024 * 1024, '10 MB'),
    (3 * 1024 ** 3, '3 GB'),
])
def test_format_file_size(size_bytes, expected):
    """Test human readable sizes."""
    assert format_file_size(size_bytes) == expected
