"""
api/limiter.py -- Rate limits for the public endpoints that have side effects.

GET /api/system/test_email is exempt from the request gate, yet it writes to
the credential store and sends real mail. It is the only limited route.

Counters are kept in process memory by a single shared Limiter, so every route
module must import this instance rather than build its own. With several
uvicorn workers each one counts separately.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

TEST_EMAIL_LIMIT = "5/minute"

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
