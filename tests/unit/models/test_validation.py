"""Unit tests for models._validation helpers."""

import pytest

from signerlink.models._validation import (
    is_hex,
    validate_hex,
    validate_instance,
    validate_key_bytes,
    validate_str_no_null,
    validate_str_not_empty,
    validate_timestamp,
)


class TestValidateInstance:
    def test_ok(self) -> None:
        validate_instance("x", str, "field")

    def test_article_in_message(self) -> None:
        with pytest.raises(TypeError, match="must be an int"):
            validate_instance("x", int, "field")


class TestValidateTimestamp:
    def test_ok(self) -> None:
        validate_timestamp(0, "ts")

    def test_bool_rejected(self) -> None:
        with pytest.raises(TypeError):
            validate_timestamp(True, "ts")

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            validate_timestamp(-1, "ts")


class TestStrings:
    def test_null_byte(self) -> None:
        with pytest.raises(ValueError, match="null"):
            validate_str_no_null("a\x00", "s")

    def test_not_str(self) -> None:
        with pytest.raises(TypeError):
            validate_str_no_null(1, "s")

    def test_empty(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            validate_str_not_empty("", "s")


class TestHex:
    @pytest.mark.parametrize(
        ("value", "length", "expected"),
        [
            ("ab" * 32, 64, True),
            ("AB" * 32, 64, True),
            ("ab" * 31, 64, False),
            ("zz" * 32, 64, False),
            ("", None, False),
            (None, None, False),
            ("0f", None, True),
        ],
    )
    def test_is_hex(self, value: object, length: int | None, expected: bool) -> None:
        assert is_hex(value, length) is expected

    def test_validate_hex(self) -> None:
        with pytest.raises(ValueError, match="64 hex"):
            validate_hex("abc", "pubkey")

    def test_key_bytes(self) -> None:
        validate_key_bytes(b"\x01" * 32, "key")
        with pytest.raises(ValueError):
            validate_key_bytes(b"\x01" * 33, "key")
