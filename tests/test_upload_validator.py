"""Tests for upload validation"""

from pathlib import Path

from PIL import Image

from managers.upload_validator import normalize_mime_type, validate_upload
from models.asset import RejectionReason
from models.config import MIB, UPLOAD_PROFILES, UploadPolicy
from models.upload import RawUpload


class TestMimeNormalization:
    """Tests for MIME type normalization"""

    def test_parameters_and_case_dropped(self):
        """Parameters and case do not matter"""
        assert normalize_mime_type("Image/PNG; charset=binary") == "image/png"

    def test_empty(self):
        """Missing MIME types normalize to empty string"""
        assert normalize_mime_type(None) == ""
        assert normalize_mime_type("") == ""


class TestValidateUpload:
    """Tests for validate_upload"""

    def test_valid_jpeg(self, make_upload):
        """A decodable JPEG within limits is accepted"""
        assert validate_upload(make_upload(), UploadPolicy()) is None

    def test_valid_with_mime_parameters(self, make_upload):
        """Declared MIME type with parameters is accepted"""
        upload = make_upload(filename="a.png", mime_type="IMAGE/PNG; q=1", format="PNG")
        assert validate_upload(upload, UploadPolicy()) is None

    def test_unsupported_mime(self, make_upload):
        """Non-image MIME types are rejected before reading the file"""
        upload = make_upload(mime_type="application/pdf")
        assert validate_upload(upload, UploadPolicy()) == RejectionReason.UNSUPPORTED_FORMAT

    def test_svg_not_allowed(self, make_upload):
        """Vector formats are outside the raster allowlist"""
        upload = make_upload(mime_type="image/svg+xml")
        assert validate_upload(upload, UploadPolicy()) == RejectionReason.UNSUPPORTED_FORMAT

    def test_declared_size_too_large(self, make_upload):
        """Declared size above the limit is rejected"""
        upload = make_upload()
        oversized = RawUpload(
            temp_path=upload.temp_path,
            declared_mime_type=upload.declared_mime_type,
            declared_size=11 * MIB,
            original_filename=upload.original_filename,
        )
        assert validate_upload(oversized, UploadPolicy()) == RejectionReason.TOO_LARGE

    def test_actual_size_too_large(self, make_upload):
        """An understated declared size does not bypass the limit"""
        upload = make_upload()
        understated = RawUpload(
            temp_path=upload.temp_path,
            declared_mime_type=upload.declared_mime_type,
            declared_size=10,
            original_filename=upload.original_filename,
        )
        policy = UploadPolicy(max_bytes=100)
        assert validate_upload(understated, policy) == RejectionReason.TOO_LARGE

    def test_cover_profile_is_stricter(self):
        """Cover uploads are capped at 5 MiB"""
        assert UPLOAD_PROFILES["cover"].max_bytes == 5 * MIB
        assert UPLOAD_PROFILES["general"].max_bytes == 10 * MIB

    def test_garbage_png_undecodable(self, make_upload):
        """A PNG signature followed by junk is undecodable"""
        upload = make_upload(filename="broken.png", mime_type="image/png", data=b"\x89PNG\r\n\x1a\n" + b"junk" * 100)
        assert validate_upload(upload, UploadPolicy()) == RejectionReason.UNDECODABLE

    def test_text_file_undecodable(self, make_upload):
        """Arbitrary bytes with an image MIME type are undecodable"""
        upload = make_upload(data=b"definitely not an image")
        assert validate_upload(upload, UploadPolicy()) == RejectionReason.UNDECODABLE

    def test_missing_temp_file(self, tmp_path):
        """A vanished temp file is undecodable"""
        upload = RawUpload(
            temp_path=Path(tmp_path / "gone.upload"),
            declared_mime_type="image/jpeg",
            declared_size=10,
            original_filename="gone.jpg",
        )
        assert validate_upload(upload, UploadPolicy()) == RejectionReason.UNDECODABLE

    def test_decompression_bomb_too_large(self, make_upload, monkeypatch):
        """Pixel counts past Pillow's bomb guard count as too large"""
        upload = make_upload(size=(200, 200))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        assert validate_upload(upload, UploadPolicy()) == RejectionReason.TOO_LARGE

    def test_validation_leaves_file_untouched(self, make_upload):
        """Validation only reads the temp file"""
        upload = make_upload()
        before = upload.temp_path.read_bytes()
        validate_upload(upload, UploadPolicy())
        assert upload.temp_path.read_bytes() == before
