"""
Per-tenant supplier slugs.

    "ACME & Co. Ltd!"  ->  acme-co-ltd
    second "ACME Ltd"  ->  acme-ltd-1

Allocation reads the tenant's existing slugs and picks the next suffix.
Two writers can still pick the same slug; the unique index rejects the
loser and ``with_slug_retry`` runs the whole create again with a fresh slug.
"""
import logging
import random
import re
import time
import unicodedata
from typing import Callable, Optional, TypeVar

from resolution.constants import SLUG_FALLBACK, SLUG_MAX_LENGTH
from resolution.errors import SlugCollisionError, UniqueViolation

logger = logging.getLogger(__name__)

T = TypeVar("T")


def base_slug(name: str) -> str:
    text = unicodedata.normalize("NFKD", name or "")
    text = "".join(c for c in text if not unicodedata.combining(c)).lower()
    text = re.sub(r"[^\w\s-]", "", text, flags=re.ASCII)
    text = text.replace("_", "-")
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-{2,}", "-", text).strip("-")
    text = text[:SLUG_MAX_LENGTH].strip("-")
    return text or SLUG_FALLBACK


def next_slug(base: str, existing: set[str]) -> str:
    """
    ``base`` if unused, otherwise ``base-(N+1)`` where N is the highest
    numeric suffix already taken (0 when only ``base`` itself exists).
    """
    suffix_re = re.compile(rf"^{re.escape(base)}-(\d+)$")
    suffixes = [int(m.group(1)) for m in map(suffix_re.match, existing) if m]
    if base not in existing and not suffixes:
        return base
    return f"{base}-{max(suffixes, default=0) + 1}"


def generate_slug(store, tenant_id: str, name: str) -> str:
    """Next free slug for ``name`` within ``tenant_id``, read through an open store."""
    base = base_slug(name)
    return next_slug(base, store.slugs_with_prefix(tenant_id, base))


def with_slug_retry(
    name: str,
    attempt: Callable[[], T],
    max_attempts: int = 3,
    backoff_ms: tuple[int, int] = (50, 100),
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """
    Run ``attempt`` (one complete create transaction) until it stops hitting
    the (tenant_id, slug) unique index. Other unique violations propagate.
    """
    sleep = sleep or time.sleep
    for number in range(1, max_attempts + 1):
        try:
            return attempt()
        except UniqueViolation as exc:
            if not exc.involves("slug"):
                raise
            if number == max_attempts:
                break
            delay = random.uniform(*backoff_ms) / 1000.0
            logger.warning(
                "Slug collision for '%s' (attempt %d/%d), retrying in %.0fms",
                name, number, max_attempts, delay * 1000,
            )
            sleep(delay)
    raise SlugCollisionError(name, max_attempts)
