"""
Shared client instances — Redis, plus the LightFusion service graph.

Importing this module is always safe: redis.from_url() connects lazily, and
build_services() only wires objects together, it never calls out.
"""
import logging
from dataclasses import dataclass

import redis

from leadsync.config import (
    REDIS_URL,
    LIGHTFUSION_API_URL, LIGHTFUSION_API_KEY, LIGHTFUSION_EMAIL, LIGHTFUSION_PASSWORD,
    LIGHTFUSION_STORAGE_URL, LIGHTFUSION_TIMEOUT, LIGHTFUSION_SESSION_TTL,
    USE_EXTERNAL_API, MEDIA_DIR, ASSET_WORKERS, FETCH_ASSETS_ON_COMPLETE,
)

logger = logging.getLogger('leadsync.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)


# ── Services ──────────────────────────────────────────────────────────────────

@dataclass
class Services:
    """Everything the routes need, built once per app."""
    store: object
    client: object
    reconciler: object
    projects: object
    assets: object
    media_dir: str


def build_services(breakers=None, session_factory=None, http=None):
    """Wire credentials → client → store/engines from config."""
    from leadsync.services.credentials import SessionCredentials
    from leadsync.services.lightfusion import LightFusionClient
    from leadsync.services.assets import AssetFetcher
    from leadsync.services.lead_store import LeadStore
    from leadsync.pipeline.reconcile import LeadReconciler
    from leadsync.pipeline.projects import ProjectOrchestrator

    breakers = breakers or {}
    credentials = SessionCredentials(ttl=LIGHTFUSION_SESSION_TTL)
    if LIGHTFUSION_API_KEY:
        # Pre-issued keys don't expire; the TTL applies to login sessions only
        credentials.set(LIGHTFUSION_API_KEY, ttl=0)
    client = LightFusionClient(
        LIGHTFUSION_API_URL, credentials,
        storage_url=LIGHTFUSION_STORAGE_URL,
        timeout=LIGHTFUSION_TIMEOUT,
        http=http,
        breaker=breakers.get('lightfusion'),
        storage_breaker=breakers.get('lightfusion_storage'),
    )

    email, password = LIGHTFUSION_EMAIL, LIGHTFUSION_PASSWORD
    if email and password:
        credentials.refresher = lambda: client.login(email, password)
    elif not LIGHTFUSION_API_KEY:
        logger.warning("No LightFusion credentials set — provider calls will fail as unauthenticated")

    store = LeadStore(session_factory)
    assets = AssetFetcher(client, MEDIA_DIR, max_workers=ASSET_WORKERS)
    return Services(
        store=store,
        client=client,
        reconciler=LeadReconciler(store, client, sync_enabled=USE_EXTERNAL_API),
        projects=ProjectOrchestrator(
            store, client, assets, fetch_assets_on_complete=FETCH_ASSETS_ON_COMPLETE,
        ),
        assets=assets,
        media_dir=MEDIA_DIR,
    )
