"""
Request cache for successful read responses.
"""

from resilient_data_client.cache.request_cache import CacheEntry, RequestCache, build_cache_key, credential_fingerprint

__all__ = ["CacheEntry", "RequestCache", "build_cache_key", "credential_fingerprint"]
