"""
Error taxonomy shared by the store, the provider gateway and the sync engines.

Local errors (validation, not found, invalid state, asset writes) abort an
operation.
ProviderError and its subclasses describe failures on the LightFusion side;
the reconciliation engine degrades on those instead of propagating them.
"""


class LeadSyncError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(LeadSyncError):
    """Bad input — never reaches the network."""


class NotFound(LeadSyncError):
    """A local record is absent."""


class LeadNotFound(NotFound):
    def __init__(self, lead_id=None, external_lead_id=None):
        self.lead_id = lead_id
        self.external_lead_id = external_lead_id
        if external_lead_id is not None:
            msg = f"lead with external id {external_lead_id} not found"
        else:
            msg = f"lead {lead_id} not found"
        super().__init__(msg)


class InvalidState(LeadSyncError):
    """The operation needs a precondition the record does not meet."""


# ── Provider side ─────────────────────────────────────────────────────────────

class ProviderError(LeadSyncError):
    """Any failure talking to the external provider."""


class Unauthenticated(ProviderError):
    """No usable session token is available."""

    def __init__(self, message='not authenticated with LightFusion API'):
        super().__init__(message)


class AuthError(ProviderError):
    """Login was rejected or returned no token."""


class RemoteError(ProviderError):
    """Non-2xx response (or transport failure, status None)."""

    def __init__(self, status, body='', message=None):
        self.status = status
        self.body = body or ''
        if message is None:
            if status is None:
                message = f"LightFusion request failed: {self.body[:200]}"
            else:
                message = f"LightFusion returned status {status}: {self.body[:200]}"
        super().__init__(message)

    @property
    def is_server_side(self):
        return self.status is None or self.status >= 500


class ProviderTimeout(RemoteError):
    def __init__(self, body='request timed out'):
        super().__init__(None, body, message=f"LightFusion request timed out: {body}")


class ProviderUnavailable(RemoteError):
    """Raised without touching the network when the circuit is open."""

    def __init__(self, name, retry_after=None):
        self.retry_after = retry_after
        super().__init__(503, f"circuit '{name}' is open",
                         message=f"Circuit breaker '{name}' is OPEN — LightFusion unavailable")


class DecodeError(ProviderError):
    """The provider sent a body we could not interpret."""

    def __init__(self, message, body=''):
        self.body = body or ''
        super().__init__(message)


# ── Mesh assets ───────────────────────────────────────────────────────────────

class AssetWriteError(LeadSyncError):
    """Local filesystem failure while materializing a mesh asset."""


class AssetRetrievalError(LeadSyncError):
    """Not a single mesh file could be materialized.

    Carries the partially-populated bundle so callers can still report
    which downloads failed and why.
    """

    def __init__(self, bundle, message='failed to download any mesh files'):
        self.bundle = bundle
        super().__init__(message)
