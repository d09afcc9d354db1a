from __future__ import annotations

import re
import secrets
import string
from datetime import datetime
from typing import Callable

from orderflow.core.config import DEFAULT_ORDER_CODE_PREFIX, STORE_TIMEZONE

ORDER_CODE_PATTERN = re.compile(r"^[A-Z0-9]{2,4}-\d{6}-[A-Z0-9]{6}$")
_ALPHABET = string.ascii_uppercase + string.digits
_MAX_ATTEMPTS = 10


def store_now() -> datetime:
    return datetime.now(STORE_TIMEZONE)


def normalize_prefix(raw: str | None, fallback: str = DEFAULT_ORDER_CODE_PREFIX) -> str:
    """2-4 uppercase alphanumerics; anything else falls back to the default brand prefix."""
    cleaned = re.sub(r"[^A-Z0-9]", "", (raw or "").upper())[:4]
    if len(cleaned) >= 2:
        return cleaned
    fallback_clean = re.sub(r"[^A-Z0-9]", "", (fallback or "").upper())[:4]
    return fallback_clean if len(fallback_clean) >= 2 else "KP"


def prefix_for_tenant(tenant) -> str:
    explicit = getattr(tenant, "order_code_prefix", None)
    if explicit:
        return normalize_prefix(explicit)
    return normalize_prefix(None)


def random_suffix(length: int = 6, choice: Callable[[str], str] = secrets.choice) -> str:
    return "".join(choice(_ALPHABET) for _ in range(length))


def is_valid_order_code(code: str | None) -> bool:
    return bool(code) and ORDER_CODE_PATTERN.match(code) is not None


def generate_order_code(
    prefix: str | None = None,
    now: datetime | None = None,
    choice: Callable[[str], str] = secrets.choice,
) -> str:
    current = now or store_now()
    if current.tzinfo is not None:
        current = current.astimezone(STORE_TIMEZONE)
    brand = normalize_prefix(prefix)
    for _ in range(_MAX_ATTEMPTS):
        code = f"{brand}-{current.strftime('%y%m%d')}-{random_suffix(choice=choice)}"
        if is_valid_order_code(code):
            return code
    raise RuntimeError("Could not generate a well-formed order code")
