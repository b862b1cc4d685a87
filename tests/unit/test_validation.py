"""
Unit tests for request validation helpers.
"""

from __future__ import annotations

import io

import pytest
from werkzeug.datastructures import FileStorage

from tests.helpers import JPEG_BYTES, PNG_BYTES
from tracker_app.errors import ValidationError
from tracker_app.validation import (
    TASK_UPDATE_FIELDS,
    USER_UPDATE_FIELDS,
    clean_email,
    get_json_object,
    read_avatar,
    reject_unknown_fields,
    sniff_image_type,
    validate_task_fields,
    validate_user_fields,
)

pytestmark = pytest.mark.unit


class TestUserFields:
    """Tests for name / email / password rules."""

    def test_valid_signup_fields_are_cleaned(self):
        # Arrange
        data = {"name": "  Ozan  ", "email": " Andrew3@TaskTracker.IO ", "password": "Red1234!"}

        # Act
        fields = validate_user_fields(data)

        # Assert
        assert fields == {"name": "Ozan", "email": "andrew3@tasktracker.io", "password": "Red1234!"}

    @pytest.mark.parametrize(
        "data",
        [
            {"email": "a@tasktracker.io", "password": "Red1234!"},
            {"name": "", "email": "a@tasktracker.io", "password": "Red1234!"},
            {"name": "   ", "email": "a@tasktracker.io", "password": "Red1234!"},
            {"name": "A", "email": "andrew3", "password": "Red1234!"},
            {"name": "A", "email": "@tasktracker.io", "password": "Red1234!"},
            {"name": "A", "email": 42, "password": "Red1234!"},
            {"name": "A", "email": "a@tasktracker.io", "password": "red"},
            {"name": "A", "email": "a@tasktracker.io", "password": "worstpassword"},
            {"name": "A", "email": "a@tasktracker.io", "password": "myPassWord1"},
            {"name": "A", "email": "a@tasktracker.io"},
        ],
    )
    def test_invalid_signup_fields_raise(self, data):
        with pytest.raises(ValidationError):
            validate_user_fields(data)

    def test_password_of_exactly_minimum_length_is_accepted(self):
        assert validate_user_fields({"password": "abc123"}, partial=True) == {"password": "abc123"}

    def test_partial_validation_only_checks_present_fields(self):
        assert validate_user_fields({"name": "Jess"}, partial=True) == {"name": "Jess"}

    def test_partial_validation_still_rejects_bad_values(self):
        with pytest.raises(ValidationError):
            validate_user_fields({"name": ""}, partial=True)

    def test_clean_email_lowercases_local_part(self):
        assert clean_email("Mixed.Case@TaskTracker.io") == "mixed.case@tasktracker.io"

    def test_clean_email_normalizes_fullwidth_domain(self):
        assert clean_email("user@ＥＸＡＭＰＬＥ.org") == "user@example.org"

    def test_clean_email_accepts_test_domain(self):
        assert clean_email("dev@mailbox.test") == "dev@mailbox.test"

    @pytest.mark.parametrize("email", ["dev@printer.local", "dev@localhost"])
    def test_clean_email_rejects_other_special_use_domains(self, email):
        with pytest.raises(ValidationError):
            clean_email(email)


class TestTaskFields:
    """Tests for description / completed rules."""

    def test_completed_defaults_to_absent(self):
        assert validate_task_fields({"description": " Walk dog "}) == {"description": "Walk dog"}

    @pytest.mark.parametrize("completed", ["", "true", 0, 1, 1234, None])
    def test_non_boolean_completed_raises(self, completed):
        with pytest.raises(ValidationError):
            validate_task_fields({"description": "x", "completed": completed})

    @pytest.mark.parametrize("description", ["", "   ", None, 5])
    def test_bad_description_raises(self, description):
        with pytest.raises(ValidationError):
            validate_task_fields({"description": description})

    def test_partial_task_update_allows_completed_only(self):
        assert validate_task_fields({"completed": True}, partial=True) == {"completed": True}


class TestAllowList:
    """Tests for update allow-lists."""

    def test_allowed_keys_pass(self):
        reject_unknown_fields({"name": "A", "password": "Secret1"}, USER_UPDATE_FIELDS)
        reject_unknown_fields({"completed": True}, TASK_UPDATE_FIELDS)

    def test_unknown_key_names_the_offender(self):
        with pytest.raises(ValidationError) as exc_info:
            reject_unknown_fields({"name": "A", "location": "Bursa"}, USER_UPDATE_FIELDS)

        assert "location" in exc_info.value.message

    def test_owner_is_not_an_updatable_task_field(self):
        with pytest.raises(ValidationError):
            reject_unknown_fields({"owner": 2}, TASK_UPDATE_FIELDS)


class TestJsonBody:
    """Tests for request body parsing."""

    def test_json_object_is_returned(self, app):
        with app.test_request_context(json={"a": 1}):
            assert get_json_object() == {"a": 1}

    @pytest.mark.parametrize("body", [[1, 2], "text", 3])
    def test_non_object_json_raises(self, app, body):
        with app.test_request_context(json=body):
            with pytest.raises(ValidationError):
                get_json_object()

    def test_malformed_json_raises(self, app):
        with app.test_request_context(data="{not json", content_type="application/json"):
            with pytest.raises(ValidationError):
                get_json_object()


class TestAvatar:
    """Tests for avatar upload checks."""

    @staticmethod
    def _upload(content: bytes, filename: str) -> FileStorage:
        return FileStorage(stream=io.BytesIO(content), filename=filename)

    def test_sniff_image_type(self):
        assert sniff_image_type(PNG_BYTES) == "image/png"
        assert sniff_image_type(JPEG_BYTES) == "image/jpeg"
        assert sniff_image_type(b"%PDF-1.7") is None

    @pytest.mark.parametrize(
        ("content", "filename", "mimetype"),
        [
            (PNG_BYTES, "me.png", "image/png"),
            (JPEG_BYTES, "me.jpg", "image/jpeg"),
            (JPEG_BYTES, "ME.JPEG", "image/jpeg"),
        ],
    )
    def test_valid_images_are_accepted(self, content, filename, mimetype):
        assert read_avatar(self._upload(content, filename), 1024) == (content, mimetype)

    @pytest.mark.parametrize(
        ("content", "filename"),
        [
            (b"%PDF-1.7 not an image", "resume.pdf"),
            (b"plain text", "notes.png"),
            (PNG_BYTES, "picture.jpg"),
            (PNG_BYTES, "noextension"),
            (b"", "empty.png"),
        ],
    )
    def test_invalid_uploads_raise(self, content, filename):
        with pytest.raises(ValidationError):
            read_avatar(self._upload(content, filename), 1024)

    def test_missing_upload_raises(self):
        with pytest.raises(ValidationError):
            read_avatar(None, 1024)

    def test_oversized_image_raises(self):
        content = PNG_BYTES + b"\x00" * 2048

        with pytest.raises(ValidationError, match="too large"):
            read_avatar(self._upload(content, "big.png"), 1024)
