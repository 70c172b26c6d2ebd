"""
Unit tests for key validation.
"""

import hashlib

import pytest

from casserve.errors import InvalidKey
from casserve.keys import (
    content_key_for,
    digest_of_key,
    require_content_key,
    require_ref_key,
    validate_content_key,
    validate_ref_key,
)

ZERO_KEY = "sha256-" + "0" * 64


class TestValidateRefKey:
    """Tests for validate_ref_key()"""

    @pytest.mark.p0
    @pytest.mark.parametrize("name", ["head", "main", "v1.2.3", "my-ref", "A-b.C-9", "x"])
    def test_accepts_valid_names(self, name):
        assert validate_ref_key(name) is True

    @pytest.mark.p0
    @pytest.mark.parametrize("name", [
        "a/b",
        "../etc",
        "..",
        ".",
        "",
        "has space",
        "under_score",
        "tab\t",
        "semi;colon",
        "ünïcode",
        "head\n",
    ])
    def test_rejects_invalid_names(self, name):
        assert validate_ref_key(name) is False

    @pytest.mark.p1
    def test_dotted_names_are_allowed(self):
        """Dots are allowed anywhere except as the whole name."""
        assert validate_ref_key("...") is True
        assert validate_ref_key(".hidden") is True

    @pytest.mark.p1
    @pytest.mark.parametrize("value", [None, 123, b"head", ["head"]])
    def test_non_strings_are_rejected(self, value):
        assert validate_ref_key(value) is False


class TestValidateContentKey:
    """Tests for validate_content_key()"""

    @pytest.mark.p0
    def test_accepts_real_digest(self):
        key = "sha256-" + hashlib.sha256(b"abc").hexdigest()
        assert validate_content_key(key) is True

    @pytest.mark.p0
    @pytest.mark.parametrize("key", [
        "sha256-" + "A" * 64,            # uppercase hex
        "sha256-" + "0" * 63,            # too short
        "sha256-" + "0" * 65,            # too long
        "sha512-" + "0" * 64,            # wrong algorithm
        "0" * 64,                        # missing tag
        "sha256-" + "g" * 64,            # not hex
        "sha256-" + "0" * 63 + "/",
        ZERO_KEY + "\n",
        "",
    ])
    def test_rejects_malformed_keys(self, key):
        assert validate_content_key(key) is False

    @pytest.mark.p1
    def test_ref_names_are_not_content_keys(self):
        assert validate_content_key("head") is False


class TestKeyHelpers:
    """Tests for key helper functions."""

    @pytest.mark.p0
    def test_content_key_for(self):
        data = b"some bytes"
        assert content_key_for(data) == "sha256-" + hashlib.sha256(data).hexdigest()

    @pytest.mark.p1
    def test_digest_of_key(self):
        assert digest_of_key(ZERO_KEY) == "0" * 64

    @pytest.mark.p1
    def test_require_raises_invalid_key(self):
        with pytest.raises(InvalidKey):
            require_ref_key("a/b")
        with pytest.raises(InvalidKey):
            require_content_key("sha256-xyz")

    @pytest.mark.p1
    def test_require_returns_key(self):
        assert require_ref_key("head") == "head"
        assert require_content_key(ZERO_KEY) == ZERO_KEY
