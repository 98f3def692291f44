"""auth/ -- Identity package: credential store, passwords, TOTP, tokens, request gate.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or notify/.
api/ and notify/ import from auth/, not the other way around.
"""
