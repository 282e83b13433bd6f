"""
LightFusion API client — session login, lead CRUD, 3D projects, mesh downloads.

Stateless apart from the injected SessionCredentials. Every failure is raised
as a ProviderError subclass carrying what the provider said, so callers decide
whether to degrade (reconciliation) or surface it (project creation).
"""
import logging
import os
import tempfile
from urllib.parse import urlsplit

import requests

from leadsync.errors import (
    AuthError, DecodeError, RemoteError, ProviderError, ProviderTimeout, AssetWriteError,
)
from leadsync.models.external import (
    ExternalLead, ProjectCreated, ProjectStatus, PriceBreakdown,
)

logger = logging.getLogger('services.lightfusion')

_CHUNK_SIZE = 64 * 1024


class LightFusionClient:
    """
    Typed client over the LightFusion HTTP API.

    Args:
        base_url:        API root, e.g. https://api.lightfusion.io
        credentials:     SessionCredentials shared with the rest of the app
        storage_url:     object-storage root holding generated meshes
        timeout:         per-request deadline in seconds
        http:            requests.Session (or test double)
        breaker:         ProviderBreaker for API calls, optional
        storage_breaker: ProviderBreaker for object-storage downloads, optional
    """

    def __init__(self, base_url, credentials, storage_url='', timeout=30,
                 http=None, breaker=None, storage_breaker=None):
        self.base_url = base_url.rstrip('/')
        self.credentials = credentials
        self.storage_url = storage_url.rstrip('/')
        self.timeout = timeout
        self.http = http or requests.Session()
        self.breaker = breaker
        self.storage_breaker = storage_breaker

    # ── Transport ─────────────────────────────────────────────────────────

    def _send(self, method, url, auth=True, expected=(200,), breaker=None, headers=None, **kwargs):
        """Issue one request; raise the matching ProviderError on anything but `expected`."""
        request_headers = {'Accept': 'application/json'}
        if auth:
            # Raises Unauthenticated before any network traffic
            request_headers['Authorization'] = f'Bearer {self.credentials.require()}'
        if headers:
            request_headers.update(headers)

        def _do():
            try:
                response = self.http.request(
                    method, url, headers=request_headers, timeout=self.timeout, **kwargs,
                )
            except requests.exceptions.Timeout as e:
                raise ProviderTimeout(str(e)) from e
            except requests.exceptions.RequestException as e:
                raise RemoteError(None, str(e)) from e

            if response.status_code not in expected:
                body = response.text
                if response.status_code == 401 and auth:
                    self.credentials.invalidate()
                logger.debug("%s %s → %d: %s", method, url, response.status_code, body[:500])
                raise RemoteError(response.status_code, body)
            return response

        breaker = breaker if breaker is not None else self.breaker
        if breaker is None:
            return _do()
        return breaker.call(_do)

    @staticmethod
    def _json(response):
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"failed to decode LightFusion response: {e}", body=response.text[:500]) from e

    def _url(self, path):
        return f'{self.base_url}{path}'

    # ── Session ───────────────────────────────────────────────────────────

    def login(self, email, password):
        """Exchange email/password for a bearer token and cache it in the credentials."""
        logger.info("Logging in to LightFusion as %s", email)
        try:
            response = self._send(
                'POST', self._url('/v1/users/sessions'), auth=False, expected=(200, 201),
                json={'contact': email, 'password': password},
            )
            data = self._json(response)
        except RemoteError as e:
            raise AuthError(f"login failed with status {e.status}: {e.body[:200]}") from e
        except DecodeError as e:
            raise AuthError(f"login response unreadable: {e}") from e

        token = data.get('token') if isinstance(data, dict) else None
        if not token:
            raise AuthError("no token in login response")
        self.credentials.set(token)
        logger.info("LightFusion session established")
        return token

    # ── Leads ─────────────────────────────────────────────────────────────

    def create_lead(self, fields):
        response = self._send('POST', self._url('/v1/leads'), expected=(200, 201), json=fields)
        return ExternalLead.from_dict(self._json(response))

    def get_lead(self, external_id):
        response = self._send('GET', self._url(f'/v1/leads/{external_id}'))
        return ExternalLead.from_dict(self._json(response))

    def update_lead(self, external_id, patch):
        """Push a LeadPatch; only its set fields go over the wire."""
        response = self._send(
            'PATCH', self._url(f'/v1/leads/{external_id}'), json=patch.to_payload(),
        )
        return ExternalLead.from_dict(self._json(response))

    def list_leads(self, company_id, limit=20, offset=0):
        response = self._send(
            'GET', self._url('/v1/leads'),
            params={'company_id': company_id, 'limit': limit, 'offset': offset},
        )
        data = self._json(response)
        if isinstance(data, dict):
            data = data.get('leads', data.get('data'))
        if not isinstance(data, list):
            raise DecodeError("lead list response is not a list", body=response.text[:500])
        return [ExternalLead.from_dict(item) for item in data]

    # ── 3D projects ───────────────────────────────────────────────────────

    def create_project(self, project_request):
        """Submit a model-generation request. Not retried: the caller owns duplicate avoidance."""
        payload = project_request.to_payload()
        logger.info(
            "Creating 3D project at (%.5f, %.5f)",
            project_request.latitude, project_request.longitude,
        )
        response = self._send('POST', self._url('/v1/lead/create'), expected=(200, 201), json=payload)
        return ProjectCreated.from_dict(self._json(response))

    def get_project_status(self, project_id, house_id):
        """
        Adders/hardware listing, then price breakdown, merged into one ProjectStatus.

        Only the first call is fatal. A failed price breakdown is logged and
        leaves status.price_breakdown as None.
        """
        logger.info("Fetching project adders for project %d", project_id)
        response = self._send(
            'POST', self._url('/v3/adders.ListProjectAdders'), json={'project_id': project_id},
        )
        status = ProjectStatus.from_dict(self._json(response))

        try:
            price_response = self._send(
                'POST', self._url('/v3/adders.GetPriceBreakdown'),
                json={'project_id': project_id, 'house_id': house_id},
            )
            status.price_breakdown = PriceBreakdown.from_dict(self._json(price_response))
        except ProviderError as e:
            logger.warning(
                "Price breakdown unavailable for project %d (house %d): %s",
                project_id, house_id, e,
            )
        return status

    # ── Mesh assets ───────────────────────────────────────────────────────

    def asset_url(self, project_id, filename):
        return f'{self.storage_url}/leads/{project_id}/mesh/{filename}'

    def download_asset(self, url, dest_path):
        """
        Stream url to dest_path. Returns bytes written.

        Bytes land in a unique *.part file beside dest_path and are renamed on
        completion; on any failure the partial file is removed, so dest_path
        either holds a complete file or does not exist.
        """
        send_auth = urlsplit(url).netloc == urlsplit(self.base_url).netloc
        response = self._send(
            'GET', url, auth=send_auth, stream=True,
            headers={'Accept': 'application/octet-stream'},
            breaker=self.storage_breaker,
        )

        # Unique per call, concurrent fetches may target the same dest_path
        tmp_path = None
        written = 0
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=os.path.dirname(dest_path) or '.',
                prefix=f'{os.path.basename(dest_path)}.', suffix='.part',
            )
            with os.fdopen(fd, 'wb') as out:
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    if chunk:
                        out.write(chunk)
                        written += len(chunk)
            os.replace(tmp_path, dest_path)
        # RequestException subclasses IOError, so it must be matched first
        except requests.exceptions.RequestException as e:
            _remove_quietly(tmp_path)
            raise RemoteError(None, f"download interrupted: {e}") from e
        except OSError as e:
            _remove_quietly(tmp_path)
            raise AssetWriteError(f"failed to write {dest_path}: {e}") from e
        finally:
            response.close()

        logger.info("Downloaded %d bytes to %s", written, dest_path)
        return written


def _remove_quietly(path):
    if path is None:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Could not remove partial file %s", path, exc_info=True)
