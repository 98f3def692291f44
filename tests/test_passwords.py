"""Unit tests for auth/passwords.py -- Argon2id hashing and random passwords.

Covers:
- hash_password() produces an Argon2id PHC string with the fixed parameters
- Two hashes of the same password differ (fresh salt per call)
- verify_password() accepts the right password and rejects the wrong one
- verify_password() returns False for empty and malformed encodings
- hash_password() returns "" when the hasher fails
- generate_random_password() length and alphabet
"""

from __future__ import annotations

from argon2.exceptions import HashingError

import auth.passwords as passwords
from auth.passwords import PASSWORD_ALPHABET, generate_random_password, hash_password, verify_password


def test_hash_uses_argon2id_parameters():
    encoded = hash_password("correct horse")
    assert encoded.startswith("$argon2id$v=19$m=65536,t=3,p=4$")


def test_same_password_hashes_differently():
    assert hash_password("pw") != hash_password("pw")


def test_verify_roundtrip():
    encoded = hash_password("s3cret!")
    assert verify_password("s3cret!", encoded) is True
    assert verify_password("s3cret?", encoded) is False


def test_verify_empty_encoding_is_false():
    assert verify_password("anything", "") is False


def test_verify_malformed_encoding_is_false():
    """Garbage and non-Argon2 strings are rejected without raising."""
    assert verify_password("pw", "not-a-hash") is False
    assert verify_password("pw", "$2b$12$abcdefghijklmnopqrstuv") is False


def test_hash_failure_returns_empty_string(monkeypatch):
    class BrokenHasher:
        def hash(self, plain):
            raise HashingError("out of memory")

    monkeypatch.setattr(passwords, "_hasher", BrokenHasher())
    assert hash_password("pw") == ""


def test_random_password_default_length():
    assert len(generate_random_password()) == 12


def test_random_password_alphabet():
    assert len(PASSWORD_ALPHABET) == 62
    pw = generate_random_password(200)
    assert len(pw) == 200
    assert set(pw) <= set(PASSWORD_ALPHABET)


def test_random_password_zero_length():
    assert generate_random_password(0) == ""


def test_random_passwords_differ():
    assert generate_random_password(24) != generate_random_password(24)
