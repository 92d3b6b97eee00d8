"""Tests for building uploads from local files and URLs"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import write_image
from managers.intake import UploadTooLargeError, guess_mime_type, upload_from_path, upload_from_url


def mock_response(chunks, headers):
    response = MagicMock()
    response.headers = headers
    response.iter_content.return_value = chunks
    response.raise_for_status.return_value = None
    return response


class TestUploadFromPath:
    """Tests for upload_from_path"""

    def test_copies_source(self, tmp_path):
        """The source is copied into staging and left in place"""
        source = write_image(tmp_path / "Holiday Photo.png", size=(40, 30), format="PNG")
        staging = tmp_path / "incoming"

        upload = upload_from_path(source, staging)

        assert source.exists()
        assert upload.temp_path.parent == staging
        assert upload.temp_path.read_bytes() == source.read_bytes()
        assert upload.declared_mime_type == "image/png"
        assert upload.declared_size == source.stat().st_size
        assert upload.original_filename == "Holiday Photo.png"

    def test_explicit_mime_and_filename(self, tmp_path):
        """Caller-supplied MIME and filename win over guesses"""
        source = write_image(tmp_path / "blob", size=(10, 10))
        upload = upload_from_path(source, tmp_path / "incoming", mime_type="image/jpeg", original_filename="cover.jpg")
        assert upload.declared_mime_type == "image/jpeg"
        assert upload.original_filename == "cover.jpg"

    def test_missing_source(self, tmp_path):
        """Nonexistent files raise"""
        with pytest.raises(FileNotFoundError):
            upload_from_path(tmp_path / "missing.jpg", tmp_path / "incoming")

    def test_guess_mime_type(self):
        """Unknown extensions fall back to octet-stream"""
        assert guess_mime_type("a.png") == "image/png"
        assert guess_mime_type("a.unknownext") == "application/octet-stream"


class TestUploadFromUrl:
    """Tests for upload_from_url"""

    def test_download(self, tmp_path):
        """Streamed bodies land in staging with the served MIME type"""
        response = mock_response([b"abc", b"def"], {"Content-Type": "image/png; charset=binary", "Content-Length": "6"})
        with patch("managers.intake.requests.get") as mock_get:
            mock_get.return_value.__enter__.return_value = response
            upload = upload_from_url("https://example.com/img/cat%20pic.png?x=1", tmp_path / "incoming", max_bytes=100)

        assert upload.temp_path.read_bytes() == b"abcdef"
        assert upload.declared_mime_type == "image/png"
        assert upload.declared_size == 6
        assert upload.original_filename == "cat pic.png"
        mock_get.assert_called_once()

    def test_content_length_too_large(self, tmp_path):
        """Oversized Content-Length aborts before reading the body"""
        staging = tmp_path / "incoming"
        response = mock_response([b"x" * 10], {"Content-Length": "1000"})
        with patch("managers.intake.requests.get") as mock_get:
            mock_get.return_value.__enter__.return_value = response
            with pytest.raises(UploadTooLargeError):
                upload_from_url("https://example.com/a.jpg", staging, max_bytes=100)
        assert list(staging.iterdir()) == []

    def test_streamed_body_too_large(self, tmp_path):
        """Bodies without Content-Length are capped while streaming"""
        staging = tmp_path / "incoming"
        response = mock_response([b"x" * 60, b"x" * 60], {"Content-Type": "image/jpeg"})
        with patch("managers.intake.requests.get") as mock_get:
            mock_get.return_value.__enter__.return_value = response
            with pytest.raises(UploadTooLargeError):
                upload_from_url("https://example.com/a.jpg", staging, max_bytes=100)
        assert list(staging.iterdir()) == []

    def test_http_error(self, tmp_path):
        """HTTP failures propagate and leave no staged file"""
        staging = tmp_path / "incoming"
        response = mock_response([], {})
        response.raise_for_status.side_effect = requests.HTTPError("404 Not Found")
        with patch("managers.intake.requests.get") as mock_get:
            mock_get.return_value.__enter__.return_value = response
            with pytest.raises(requests.HTTPError):
                upload_from_url("https://example.com/missing.jpg", staging, max_bytes=100)
        assert list(staging.iterdir()) == []
