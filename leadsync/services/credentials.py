"""
LightFusion session credentials — the bearer token the gateway sends.

The holder is created once and passed by reference to the client, so tests
can hand in a pre-filled (or empty) holder instead of logging in. When a
refresher is configured, require() logs in again on a missing or expired
token; concurrent callers share one refresh.
"""
import logging
import threading
import time

from leadsync.errors import ProviderError, Unauthenticated

logger = logging.getLogger('services.credentials')


class SessionCredentials:
    """
    Holds one bearer token with an optional expiry.

    Args:
        token:     pre-issued token (e.g. LIGHTFUSION_API_KEY), may be None
        ttl:       seconds a token stays valid after set(); 0/None = no expiry
        refresher: zero-arg callable that obtains and set()s a fresh token
        clock:     time source, injectable for tests
    """

    def __init__(self, token=None, ttl=None, refresher=None, clock=time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self.default_ttl = ttl or None
        self.refresher = refresher
        self._token = None
        self._expires_at = None
        if token:
            self.set(token)

    def set(self, token, ttl=None):
        """Store a token; ttl overrides the holder's default lifetime."""
        lifetime = ttl if ttl is not None else self.default_ttl
        self._token = token or None
        self._expires_at = self._clock() + lifetime if (token and lifetime) else None

    def invalidate(self):
        """Drop the token (e.g. after the provider answered 401)."""
        if self._token:
            logger.info("LightFusion session invalidated")
        self._token = None
        self._expires_at = None

    @property
    def expires_at(self):
        return self._expires_at

    def is_valid(self):
        if not self._token:
            return False
        return self._expires_at is None or self._clock() < self._expires_at

    def peek(self):
        """Current token without refreshing — None when missing or expired."""
        return self._token if self.is_valid() else None

    def require(self):
        """Return a usable token, refreshing once if possible; else raise Unauthenticated."""
        token = self.peek()
        if token:
            return token
        if self.refresher is None:
            raise Unauthenticated()

        with self._lock:
            # Another thread may have refreshed while we waited
            token = self.peek()
            if token:
                return token
            logger.info("Refreshing LightFusion session")
            try:
                self.refresher()
            except ProviderError as e:
                logger.warning("LightFusion session refresh failed: %s", e)
                raise Unauthenticated(f'session refresh failed: {e}') from e
            token = self.peek()

        if not token:
            raise Unauthenticated('session refresh returned no token')
        return token
