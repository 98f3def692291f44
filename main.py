#!/usr/bin/env python3
"""
AppServer -- operator utilities for the identity core.

Usage:
  python main.py hash-password 's3cret'
  python main.py verify-password 's3cret' '$argon2id$v=19$m=65536,t=3,p=4$...'
  python main.py random-password --length 16
  python main.py totp-secret
  python main.py totp-uri ada@example.com JBSWY3DPEHPK3PXP --issuer "Cake Planner"
  python main.py totp-check JBSWY3DPEHPK3PXP 123456
  python main.py issue-token u1 ada@example.com --admin
  python main.py verify-token eyJhbGciOi...

Environment variables:
  JWT_SECRET    Token signing secret used by issue-token / verify-token.
                Falls back to an unsafe default with a warning when unset.
  TOTP_ISSUER   Default issuer for totp-uri.
"""

import argparse
import json
import logging
import sys

from auth import totp
from auth.passwords import generate_random_password, hash_password, verify_password
from auth.tokens import TokenService
from core.config import get_settings


def _cmd_hash_password(args: argparse.Namespace) -> int:
    encoded = hash_password(args.password)
    if not encoded:
        print("  [!] Hashing failed.", file=sys.stderr)
        return 1
    print(encoded)
    return 0


def _cmd_verify_password(args: argparse.Namespace) -> int:
    ok = verify_password(args.password, args.encoded)
    print("match" if ok else "no match")
    return 0 if ok else 1


def _cmd_random_password(args: argparse.Namespace) -> int:
    if args.length < 1:
        print("  [!] --length must be at least 1.", file=sys.stderr)
        return 1
    print(generate_random_password(args.length))
    return 0


def _cmd_totp_secret(args: argparse.Namespace) -> int:
    print(totp.generate_secret())
    return 0


def _cmd_totp_uri(args: argparse.Namespace) -> int:
    issuer = args.issuer or get_settings().totp_issuer
    print(totp.provisioning_uri(args.email, args.secret, issuer))
    return 0


def _cmd_totp_check(args: argparse.Namespace) -> int:
    ok = totp.validate_code(args.secret, args.code)
    print("valid" if ok else "invalid")
    return 0 if ok else 1


def _cmd_issue_token(args: argparse.Namespace) -> int:
    tokens = TokenService.from_settings(get_settings())
    print(tokens.issue(args.user_id, args.email, args.admin))
    return 0


def _cmd_verify_token(args: argparse.Namespace) -> int:
    tokens = TokenService.from_settings(get_settings())
    payload = tokens.verify(args.token)
    if payload is None:
        print("  [!] Invalid or expired token.", file=sys.stderr)
        return 1
    print(
        json.dumps(
            {
                "uid": payload.user_id,
                "sub": payload.email,
                "adm": payload.is_admin,
                "iat": payload.issued_at.isoformat() if payload.issued_at else None,
                "exp": payload.expires_at.isoformat() if payload.expires_at else None,
            },
            indent=2,
        )
    )
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AppServer -- password, TOTP and token utilities.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("hash-password", help="Hash a password with Argon2id.")
    p.add_argument("password")
    p.set_defaults(func=_cmd_hash_password)

    p = sub.add_parser("verify-password", help="Check a password against an encoded hash.")
    p.add_argument("password")
    p.add_argument("encoded")
    p.set_defaults(func=_cmd_verify_password)

    p = sub.add_parser("random-password", help="Generate a random alphanumeric password.")
    p.add_argument("--length", type=int, default=12)
    p.set_defaults(func=_cmd_random_password)

    p = sub.add_parser("totp-secret", help="Generate a new Base32 TOTP secret.")
    p.set_defaults(func=_cmd_totp_secret)

    p = sub.add_parser("totp-uri", help="Print the otpauth:// provisioning URI.")
    p.add_argument("email")
    p.add_argument("secret")
    p.add_argument("--issuer", default="")
    p.set_defaults(func=_cmd_totp_uri)

    p = sub.add_parser("totp-check", help="Validate a 6-digit code against a secret.")
    p.add_argument("secret")
    p.add_argument("code")
    p.set_defaults(func=_cmd_totp_check)

    p = sub.add_parser("issue-token", help="Issue a signed bearer token.")
    p.add_argument("user_id")
    p.add_argument("email")
    p.add_argument("--admin", action="store_true")
    p.set_defaults(func=_cmd_issue_token)

    p = sub.add_parser("verify-token", help="Verify a bearer token and print its claims.")
    p.add_argument("token")
    p.set_defaults(func=_cmd_verify_token)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)-5s %(name)s %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
