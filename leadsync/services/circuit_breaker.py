"""
Circuit breaker for the LightFusion gateway, state kept in one Redis hash.

  closed    → calls pass through; consecutive server-side failures are counted
  open      → calls fail fast with ProviderUnavailable (no network)
  half_open → after reset_timeout one probe call is let through; success closes,
              failure re-opens

Only server-side failures count: 5xx, timeouts, transport errors. A 404 or 422
is the provider answering correctly and leaves the circuit alone. If Redis is
unreachable the breaker fails open (calls pass, nothing is recorded).
"""
import logging
import time

from leadsync.errors import RemoteError, ProviderUnavailable

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


def counts_as_failure(error):
    if isinstance(error, ProviderUnavailable):
        return False
    if isinstance(error, RemoteError):
        return error.is_server_side
    return False


class ProviderBreaker:
    """
    Usage:
        breaker = ProviderBreaker('lightfusion', redis_client)
        response = breaker.call(send_request, method, url)
    """

    PREFIX = 'leadsync:cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=120, clock=time.time):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock

    @property
    def key(self):
        return f'{self.PREFIX}:{self.name}'

    def _read(self):
        try:
            return self.redis.hgetall(self.key) or {}
        except Exception:
            logger.debug("Redis unavailable for breaker '%s'", self.name, exc_info=True)
            return None

    def _write(self, **values):
        try:
            self.redis.hset(self.key, mapping={k: str(v) for k, v in values.items()})
        except Exception:
            logger.debug("Redis unavailable for breaker '%s'", self.name, exc_info=True)

    def _bump(self, field):
        try:
            return int(self.redis.hincrby(self.key, field, 1))
        except Exception:
            return 0

    # ── State ─────────────────────────────────────────────────────────────

    @property
    def state(self):
        data = self._read()
        if not data:
            return CLOSED
        state = data.get('state', CLOSED)
        if state == OPEN:
            opened_at = float(data.get('opened_at') or 0)
            if self._clock() - opened_at >= self.reset_timeout:
                return HALF_OPEN
        return state

    def retry_after(self):
        data = self._read() or {}
        opened_at = float(data.get('opened_at') or 0)
        return max(0.0, self.reset_timeout - (self._clock() - opened_at))

    # ── Core call logic ───────────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        """Execute func through the breaker."""
        if self.state == OPEN:
            raise ProviderUnavailable(self.name, retry_after=self.retry_after())

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            if counts_as_failure(e):
                self._on_failure(e)
            raise
        self._on_success()
        return result

    def _on_success(self):
        self._write(state=CLOSED, failures=0)
        self._bump('success')

    def _on_failure(self, error):
        failures = self._bump('failures')
        self._bump('failure')
        now = self._clock()
        self._write(last_failure=now, last_error=str(error)[:200])
        if failures >= self.failure_threshold:
            self._write(state=OPEN, opened_at=now)
            logger.warning(
                "Circuit '%s' OPENED after %d failures (threshold=%d): %s",
                self.name, failures, self.failure_threshold, error,
            )
        else:
            logger.info("Circuit '%s' failure %d/%d: %s", self.name, failures, self.failure_threshold, error)

    def reset(self):
        """Manually close the circuit."""
        self._write(state=CLOSED, failures=0, opened_at=0)
        logger.info("Circuit '%s' manually reset to CLOSED", self.name)

    def get_health(self):
        data = self._read()
        if data is None:
            return {'name': self.name, 'state': 'unknown'}
        return {
            'name': self.name,
            'state': self.state,
            'failure_count': int(data.get('failures') or 0),
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(data.get('success') or 0),
            'total_failure': int(data.get('failure') or 0),
            'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
            'last_error': data.get('last_error', ''),
        }


# ── Registry ─────────────────────────────────────────────────────────────────

_registry = {}


def get_breaker(name):
    return _registry.get(name)


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client, failure_threshold=3, reset_timeout=120):
    """Register the breakers guarding LightFusion: API calls and object storage."""
    breakers = {
        'lightfusion': ProviderBreaker('lightfusion', redis_client, failure_threshold, reset_timeout),
        'lightfusion_storage': ProviderBreaker('lightfusion_storage', redis_client, failure_threshold, reset_timeout),
    }
    _registry.update(breakers)
    return breakers
