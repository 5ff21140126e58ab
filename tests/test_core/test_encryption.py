"""Tests for the AES-256-GCM encryption helpers."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from insighter_server.core.encryption import (
    EncryptionError,
    decrypt_object,
    decrypt_text,
    encrypt_object,
    encrypt_text,
    generate_encryption_key,
    hash_for_index,
    validate_encryption_key,
)

KEY = "ab" * 32
OTHER_KEY = "cd" * 32

json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(),
    lambda children: st.lists(children) | st.dictionaries(st.text(), children),
    max_leaves=10,
)


class TestRoundTrip:

    @settings(max_examples=100)
    @given(plaintext=st.text())
    def test_text_round_trip(self, plaintext):
        assert decrypt_text(encrypt_text(plaintext, KEY), KEY) == plaintext

    @settings(max_examples=50)
    @given(obj=st.dictionaries(st.text(), json_values, max_size=5))
    def test_object_round_trip(self, obj):
        assert decrypt_object(encrypt_object(obj, KEY), KEY) == obj

    def test_uses_configured_key_by_default(self):
        assert decrypt_object(encrypt_object({"token": "abc"})) == {"token": "abc"}


class TestFormat:

    def test_layout_is_iv_tag_ciphertext_hex(self):
        encrypted = encrypt_text("hello", KEY)
        # 16-byte IV + 16-byte tag, then one byte of ciphertext per plaintext byte
        assert len(encrypted) == 32 + 32 + 2 * len("hello")
        int(encrypted, 16)

    def test_random_iv(self):
        assert encrypt_text("same", KEY) != encrypt_text("same", KEY)


class TestFailures:

    def test_wrong_key_fails(self):
        with pytest.raises(EncryptionError):
            decrypt_text(encrypt_text("secret", KEY), OTHER_KEY)

    def test_tampered_ciphertext_fails(self):
        encrypted = encrypt_text("secret", KEY)
        last = "0" if encrypted[-1] != "0" else "1"
        with pytest.raises(EncryptionError):
            decrypt_text(encrypted[:-1] + last, KEY)

    def test_tampered_tag_fails(self):
        encrypted = encrypt_text("secret", KEY)
        flipped = "0" if encrypted[40] != "0" else "1"
        with pytest.raises(EncryptionError):
            decrypt_text(encrypted[:40] + flipped + encrypted[41:], KEY)

    def test_truncated_payload_fails(self):
        with pytest.raises(EncryptionError):
            decrypt_text("abcd", KEY)

    def test_non_hex_payload_fails(self):
        with pytest.raises(EncryptionError):
            decrypt_text("zz" * 40, KEY)

    @pytest.mark.parametrize("key", ["", "abc", "g" * 64, "ab" * 31])
    def test_invalid_key_rejected(self, key):
        with pytest.raises(EncryptionError):
            encrypt_text("x", key)

    def test_missing_configured_key(self, monkeypatch):
        from insighter_server.config import get_settings

        monkeypatch.setenv("INSIGHTER_ENCRYPTION_KEY", "")
        get_settings.cache_clear()
        try:
            with pytest.raises(EncryptionError):
                encrypt_text("x")
        finally:
            monkeypatch.undo()
            get_settings.cache_clear()


class TestKeys:

    def test_generated_key_is_valid(self):
        key = generate_encryption_key()
        assert len(key) == 64
        assert validate_encryption_key(key)

    def test_validate(self):
        assert validate_encryption_key("AB" * 32)
        assert not validate_encryption_key("ab" * 33)

    def test_hash_for_index_is_stable(self):
        assert hash_for_index("a@example.com") == hash_for_index("a@example.com")
        assert hash_for_index("a@example.com") != hash_for_index("b@example.com")
        assert len(hash_for_index("x")) == 64
