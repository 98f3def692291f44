"""Tests for main.py -- the operator command line.

Covers:
- hash-password / verify-password round trip and exit codes
- random-password length handling
- totp-secret, totp-uri and totp-check
- issue-token / verify-token round trip with the configured secret
"""

from __future__ import annotations

import json

import pytest

from auth import totp
from main import main


def test_hash_then_verify(capsys):
    assert main(["hash-password", "s3cret"]) == 0
    encoded = capsys.readouterr().out.strip()
    assert encoded.startswith("$argon2id$")

    assert main(["verify-password", "s3cret", encoded]) == 0
    assert capsys.readouterr().out.strip() == "match"

    assert main(["verify-password", "wrong", encoded]) == 1
    assert capsys.readouterr().out.strip() == "no match"


def test_random_password(capsys):
    assert main(["random-password", "--length", "20"]) == 0
    assert len(capsys.readouterr().out.strip()) == 20


def test_random_password_rejects_zero_length(capsys):
    assert main(["random-password", "--length", "0"]) == 1
    assert "--length" in capsys.readouterr().err


def test_totp_commands(capsys):
    assert main(["totp-secret"]) == 0
    secret = capsys.readouterr().out.strip()
    assert len(secret) == 32

    assert main(["totp-uri", "ada@example.com", secret, "--issuer", "Bakery"]) == 0
    assert capsys.readouterr().out.strip().startswith(f"otpauth://totp/Bakery:ada@example.com?secret={secret}")

    code = totp.code_for_step(totp.base32_decode(secret), totp.current_step())
    assert main(["totp-check", secret, code]) == 0
    assert capsys.readouterr().out.strip() == "valid"

    assert main(["totp-check", secret, "abcdef"]) == 1


def test_token_round_trip(capsys):
    assert main(["issue-token", "u1", "ada@example.com", "--admin"]) == 0
    raw = capsys.readouterr().out.strip()

    assert main(["verify-token", raw]) == 0
    claims = json.loads(capsys.readouterr().out)
    assert claims["uid"] == "u1"
    assert claims["sub"] == "ada@example.com"
    assert claims["adm"] is True


def test_verify_token_rejects_garbage(capsys):
    assert main(["verify-token", "not-a-token"]) == 1
    assert "Invalid or expired token" in capsys.readouterr().err


def test_command_is_required():
    with pytest.raises(SystemExit):
        main([])
