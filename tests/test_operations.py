"""Tests for operations that inspect secrets without revealing them."""

import hashlib
from datetime import datetime

import pytest

from secret_wrapper import operations
from secret_wrapper.exceptions import OperationError, RevealOnNonSecret
from secret_wrapper.secret import wrap, wrap_with


class TestLength:
    """Tests for length and is_empty."""

    def test_sized_kinds(self):
        """Text counts characters, binary bytes, containers items."""
        assert operations.length(wrap("héllo")) == 5
        assert operations.length(wrap(b"\x00" * 7)) == 7
        assert operations.length(wrap([1, 2, 3])) == 3
        assert operations.length(wrap({"a": 1, "b": 2})) == 2

    def test_unsized_kind(self):
        """Scalars have no length."""
        with pytest.raises(OperationError, match="secret_int has no length"):
            operations.length(wrap(42))

    def test_is_empty(self):
        """is_empty follows length."""
        assert operations.is_empty(wrap(""))
        assert operations.is_empty(wrap([]))
        assert operations.is_empty(wrap({}))
        assert not operations.is_empty(wrap(b"x"))

    def test_non_secret(self):
        """Plain values are rejected."""
        with pytest.raises(RevealOnNonSecret):
            operations.length("plain")


class TestContains:
    """Tests for contains."""

    def test_string_substring(self):
        """Text secrets search for substrings."""
        secret = wrap("api-key-12345")

        assert operations.contains(secret, "key")
        assert not operations.contains(secret, "xyz")

    def test_binary_subsequence(self):
        """Binary secrets search for byte sequences."""
        assert operations.contains(wrap(b"\x01\x02\x03"), b"\x02\x03")
        assert not operations.contains(wrap(b"\x01\x02\x03"), b"\x03\x01")

    def test_list_membership_and_record_keys(self):
        """Lists check membership and records check keys."""
        assert operations.contains(wrap(["a", 1]), 1)
        assert not operations.contains(wrap(["a", 1]), "b")
        assert operations.contains(wrap({"user": "admin"}), "user")
        assert not operations.contains(wrap({"user": "admin"}), "admin")

    def test_scalar_equality(self):
        """Scalar secrets compare with a value of the same kind."""
        assert operations.contains(wrap(42), 42)
        assert not operations.contains(wrap(42), 41)
        assert operations.contains(wrap(True), True)
        assert operations.contains(wrap(datetime(2024, 1, 1)), datetime(2024, 1, 1))

    def test_type_mismatch(self):
        """Searching with the wrong kind of value is an error."""
        with pytest.raises(OperationError):
            operations.contains(wrap("abc"), 1)
        with pytest.raises(OperationError):
            operations.contains(wrap(42), "42")
        with pytest.raises(OperationError):
            operations.contains(wrap(42), True)
        with pytest.raises(OperationError):
            operations.contains(wrap({"a": 1}), 1)


class TestHash:
    """Tests for hash."""

    def test_default_sha256(self):
        """sha256 over the text bytes is the default."""
        assert operations.hash(wrap("abc")) == hashlib.sha256(b"abc").hexdigest()

    @pytest.mark.parametrize("algorithm", ["sha512", "blake2b", "SHA256"])
    def test_algorithms(self, algorithm):
        """Each supported algorithm produces its digest."""
        expected = hashlib.new(algorithm.lower(), b"abc").hexdigest()

        assert operations.hash(wrap("abc"), algorithm) == expected

    def test_deterministic_for_containers(self):
        """Equal records hash equally regardless of key order."""
        assert operations.hash(wrap({"a": 1, "b": 2})) == operations.hash(wrap({"b": 2, "a": 1}))

    def test_unknown_algorithm(self):
        """Unsupported algorithms are rejected."""
        with pytest.raises(OperationError, match="Unsupported hash algorithm: md5"):
            operations.hash(wrap("abc"), "md5")


class TestValidateFormat:
    """Tests for validate_format."""

    @pytest.mark.parametrize(
        "value,format_name",
        [
            ("user@example.com", "email"),
            ("550e8400-e29b-41d4-a716-446655440000", "uuid"),
            ("deadBEEF", "hex"),
            ("SGVsbG8gV29ybGQ=", "base64"),
            ("eyJhbGciOiJIUzI1NiJ9.eyJzdWIiOiIxMjM0NTY3ODkwIn0.abc123", "jwt"),
            ("192.168.1.1", "ipv4"),
            ("::1", "ipv6"),
            ("078-05-1120", "ssn"),
            ("4539578763621486", "credit-card"),
            ("4539 5787 6362 1486", "credit-card"),
        ],
    )
    def test_valid(self, value, format_name):
        """Well-formed values match their format."""
        assert operations.validate_format(wrap(value), format_name)

    @pytest.mark.parametrize(
        "value,format_name",
        [
            ("not-an-email", "email"),
            ("550e8400-e29b-41d4-a716", "uuid"),
            ("", "hex"),
            ("xyz", "hex"),
            ("", "base64"),
            ("a.b", "jwt"),
            ("256.1.1.1", "ipv4"),
            ("::1", "ipv4"),
            ("192.168.1.1", "ipv6"),
            ("000-12-3456", "ssn"),
            ("666-12-3456", "ssn"),
            ("900-12-3456", "ssn"),
            ("4539578763621487", "credit-card"),
            ("4539-5787-6362-148a", "credit-card"),
            ("4242", "credit-card"),
        ],
    )
    def test_invalid(self, value, format_name):
        """Malformed values do not match."""
        assert not operations.validate_format(wrap(value), format_name)

    def test_regex(self):
        """Custom patterns are supported."""
        assert operations.validate_format(wrap("ABC-123"), "regex", r"^[A-Z]{3}-\d{3}$")
        assert not operations.validate_format(wrap("abc-123"), "regex", r"^[A-Z]{3}-\d{3}$")

    def test_regex_errors(self):
        """The regex format needs a valid pattern."""
        with pytest.raises(OperationError, match="requires a pattern"):
            operations.validate_format(wrap("a"), "regex")
        with pytest.raises(OperationError, match="Invalid regex pattern"):
            operations.validate_format(wrap("a"), "regex", "(")

    def test_unknown_format(self):
        """Unknown format names are rejected."""
        with pytest.raises(OperationError, match="Unknown format 'zip'"):
            operations.validate_format(wrap("12345"), "zip")

    def test_text_only(self):
        """Only text secrets can be format-checked."""
        with pytest.raises(OperationError, match="secret_string"):
            operations.validate_format(wrap(12345), "hex")


def test_info():
    """info reports metadata only."""
    details = operations.info(wrap_with("hunter2", "[X]"))

    assert details == {
        "type": "secret_string",
        "kind": "string",
        "has_custom_template": True,
        "wiped": False,
        "length": 7,
    }
    assert "hunter2" not in str(details)


def test_info_unsized():
    """Unsized kinds omit the length."""
    details = operations.info(wrap(3.5))

    assert details["type"] == "secret_float"
    assert "length" not in details
