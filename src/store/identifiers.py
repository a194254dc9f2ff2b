"""
Identifier and timestamp helpers.

Identifiers look like `<prefix>_<unixTimeMillis>_<entropy>`, e.g.
`tx_1709280000000_k3j9x0a2b`. Identifiers synthesized while healing old
records also carry the record's position: `tx_1709280000000_4_k3j9x0a2b`.
"""

import secrets
import string
import time
from datetime import date, datetime, timezone
from typing import Container, Optional

ENTROPY_ALPHABET = string.ascii_lowercase + string.digits
ENTROPY_LENGTH = 9

TRANSACTION_PREFIX = "tx"
LOAN_PREFIX = "ln"
LOCAL_INSTITUTION_PREFIX = "li"
INSTITUTIONAL_BANK_PREFIX = "ib"
PAYMENT_PREFIX = "pay"
BANK_TRANSACTION_PREFIX = "bt"


def _entropy() -> str:
    return "".join(secrets.choice(ENTROPY_ALPHABET) for _ in range(ENTROPY_LENGTH))


def generate_id(
    prefix: str,
    index: Optional[int] = None,
    taken: Container[str] = (),
) -> str:
    """
    Synthesize a fresh identifier.

    Args:
        prefix: Per-kind prefix without the trailing underscore
        index: Positional index, included when healing a stored record
        taken: Identifiers already in use; a colliding candidate is redrawn
    """
    while True:
        parts = [prefix, str(int(time.time() * 1000))]
        if index is not None:
            parts.append(str(index))
        parts.append(_entropy())
        candidate = "_".join(parts)
        if candidate not in taken:
            return candidate


def today_iso() -> str:
    """Business date format: YYYY-MM-DD."""
    return date.today().isoformat()


def now_iso() -> str:
    """Audit timestamp format (UTC, ISO-8601)."""
    return datetime.now(timezone.utc).isoformat()
