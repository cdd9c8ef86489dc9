"""Tests for photoforge.models — credential, image and session models."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest
from pydantic import ValidationError

from photoforge.models import (
    DEFAULT_IMAGE_MODEL,
    Credential,
    CredentialOrigin,
    CredentialStatus,
    GeneratedImage,
    ImageArtifact,
    Scenario,
    SessionMode,
    SessionOptions,
    mask_secret,
)

# ---------------------------------------------------------------------------
# Credential
# ---------------------------------------------------------------------------


class TestMaskSecret:
    def test_first_and_last_four(self) -> None:
        assert mask_secret("AIzaSyABCDEFGHIJ1234") == "AIza...1234"


class TestCredential:
    """Tests for the Credential model."""

    def test_masked_is_derived(self) -> None:
        cred = Credential(id="k1", secret="AIzaSyABCDEFGHIJ1234")
        assert cred.masked == "AIza...1234"

    def test_explicit_masked_kept(self) -> None:
        cred = Credential(id="k1", secret="AIzaSyABCDEFGHIJ1234", masked="custom")
        assert cred.masked == "custom"

    def test_defaults(self) -> None:
        cred = Credential(id="k1", secret="secret-value")
        assert cred.status is CredentialStatus.UNVALIDATED
        assert cred.origin is CredentialOrigin.USER
        assert not cred.is_system

    def test_secret_not_in_repr(self) -> None:
        cred = Credential(id="k1", secret="AIzaSyTOPSECRET0000")
        assert "TOPSECRET" not in repr(cred)

    @pytest.mark.parametrize(
        ("status", "usable"),
        [
            (CredentialStatus.UNVALIDATED, True),
            (CredentialStatus.ACTIVE, True),
            (CredentialStatus.INVALID, False),
            (CredentialStatus.EXHAUSTED, False),
        ],
    )
    def test_is_usable(self, status: CredentialStatus, usable: bool) -> None:
        assert Credential(id="k", secret="s" * 10, status=status).is_usable is usable

    def test_system_origin(self) -> None:
        cred = Credential(id="system", secret="s" * 10, origin=CredentialOrigin.SYSTEM)
        assert cred.is_system

    def test_status_is_str_enum(self) -> None:
        assert CredentialStatus.EXHAUSTED == "exhausted"


# ---------------------------------------------------------------------------
# ImageArtifact
# ---------------------------------------------------------------------------


class TestImageArtifact:
    """Tests for image payload helpers."""

    def test_from_bytes_detects_png(self, png_bytes: bytes) -> None:
        artifact = ImageArtifact.from_bytes(png_bytes)
        assert artifact.mime_type == "image/png"
        assert artifact.extension == "png"

    def test_from_bytes_rejects_non_image(self) -> None:
        with pytest.raises(ValueError, match="not a recognizable image"):
            ImageArtifact.from_bytes(b"definitely not an image")

    def test_from_data_url(self, png_bytes: bytes) -> None:
        url = "data:image/png;base64," + base64.b64encode(png_bytes).decode()
        artifact = ImageArtifact.from_data_url(url)
        assert artifact.data == png_bytes
        assert artifact.mime_type == "image/png"

    def test_from_data_url_rejects_plain_text(self) -> None:
        with pytest.raises(ValueError):
            ImageArtifact.from_data_url("https://example.com/photo.jpg")

    def test_from_data_url_rejects_bad_base64(self) -> None:
        with pytest.raises(ValueError, match="Invalid base64"):
            ImageArtifact.from_data_url("data:image/png;base64,@@@")

    def test_to_data_url(self) -> None:
        artifact = ImageArtifact(data=b"abc", mime_type="image/webp")
        assert artifact.to_data_url() == "data:image/webp;base64,YWJj"

    def test_unknown_mime_extension_defaults_to_jpeg(self) -> None:
        assert ImageArtifact(data=b"x", mime_type="image/unknown").extension == "jpeg"

    def test_from_file_and_save(self, tmp_path: Path, png_bytes: bytes) -> None:
        source = tmp_path / "in.png"
        source.write_bytes(png_bytes)
        artifact = ImageArtifact.from_file(source)
        target = artifact.save(tmp_path / "nested" / "out.png")
        assert target.read_bytes() == png_bytes

    def test_generated_image_url(self) -> None:
        image = GeneratedImage(id="photo_1", artifact=ImageArtifact(data=b"abc"))
        assert image.url == "data:image/jpeg;base64,YWJj"


# ---------------------------------------------------------------------------
# Session options
# ---------------------------------------------------------------------------


class TestScenario:
    def test_empty_scene_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Scenario(scene="", emotion="joy")


class TestSessionOptions:
    """Tests for SessionOptions validation."""

    def test_defaults(self) -> None:
        options = SessionOptions(prompt="A couple")
        assert options.mode is SessionMode.TEXT
        assert options.image_count == 6
        assert options.delay_seconds == 5.0
        assert options.settle_seconds == 2.0
        assert options.image_model == DEFAULT_IMAGE_MODEL
        assert options.theme == "Everyday Life"

    def test_text_mode_requires_prompt(self) -> None:
        with pytest.raises(ValidationError, match="non-empty prompt"):
            SessionOptions(mode=SessionMode.TEXT, prompt="   ")

    def test_reference_mode_requires_image(self) -> None:
        with pytest.raises(ValidationError, match="reference_image"):
            SessionOptions(mode=SessionMode.REFERENCE)

    def test_reference_mode_allows_empty_prompt(
        self, reference_image: ImageArtifact
    ) -> None:
        options = SessionOptions(mode="reference", reference_image=reference_image)
        assert options.mode is SessionMode.REFERENCE
        assert options.prompt == ""

    def test_image_count_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SessionOptions(prompt="A couple", image_count=0)

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SessionOptions(prompt="A couple", delay_seconds=-1)
