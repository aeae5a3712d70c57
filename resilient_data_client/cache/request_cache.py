"""
Time-boxed memoization of successful read responses.

Entries are keyed by the fully resolved request identity (method, URL,
query parameters and, for authenticated reads, a token fingerprint). Expiry
is lazy: a stale entry stays in the map and is simply treated as a miss on
lookup, then overwritten by the next successful fetch. The cache is
advisory; any fault while reading it is treated as a miss.
"""

import copy
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional
from urllib.parse import urlencode

from resilient_data_client.models.envelope import Envelope

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 30.0


def credential_fingerprint(credential: Optional[str]) -> str:
    """Short, non-reversible tag for a bearer credential; "anonymous" when absent."""
    if not credential:
        return "anonymous"
    return hashlib.sha256(credential.encode("utf-8")).hexdigest()[:16]


def build_cache_key(
    method: str,
    url: str,
    params: Optional[Mapping[str, str]] = None,
    credential: Optional[str] = None,
    scoped: bool = False,
) -> str:
    """
    Derive a cache key from the request identity.

    Query parameters are sorted so that equivalent requests share a key.
    Scoped keys also carry a fingerprint of the credential the request is
    sent with, so a response fetched for one token is never served to a
    caller holding another token or none.

    Args:
        method: HTTP method
        url: Absolute request URL without query string
        params: Query parameters
        credential: Bearer token attached to the request, if any
        scoped: Whether the response depends on the credential

    Returns:
        The cache key
    """
    key = f"{method.upper()} {url}"
    if params:
        key += "?" + urlencode(sorted((k, str(v)) for k, v in params.items()))
    if scoped:
        key += f" #auth={credential_fingerprint(credential)}"
    return key


@dataclass
class CacheEntry:
    """A stored envelope and the clock reading at which it was stored."""
    key: str
    value: Envelope
    stored_at: float


class RequestCache:
    """
    In-memory TTL cache for successful read envelopes.

    Attributes:
        ttl_seconds: Maximum age at which an entry is still served
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Maximum entry age in seconds
            clock: Monotonic clock returning seconds; injectable for tests
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def lookup(self, key: str) -> Optional[Envelope]:
        """
        Return a copy of the cached envelope for key, or None.

        None is returned when the key is absent, when the entry is older
        than the TTL, or when the entry cannot be read.
        """
        try:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.stored_at >= self.ttl_seconds:
                return None
            # Each caller owns its envelope
            return copy.deepcopy(entry.value)
        except Exception as e:
            logger.warning(
                "Request cache lookup failed, treating as miss",
                extra={"extra_data": {"cache_key": key, "error": str(e)}}
            )
            return None

    def store(self, key: str, envelope: Envelope) -> None:
        """
        Store a successful envelope, superseding any previous entry.

        Failed envelopes are ignored.
        """
        if not envelope.success:
            return
        self._entries[key] = CacheEntry(
            key=key,
            value=copy.deepcopy(envelope),
            stored_at=self._clock(),
        )

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
