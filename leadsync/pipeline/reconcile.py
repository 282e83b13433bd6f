"""
Lead reconciliation — dual-write / dual-read between the local store and LightFusion.

Local persistence always wins: a provider outage turns into sync_status='failed'
on the row, never into a failed create/update. Reads refresh from the provider
when the lead is bound and fall back to the stored copy when it can't answer.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from leadsync.errors import LeadNotFound, ProviderError
from leadsync.models.external import LeadPatch, lead_create_payload
from leadsync.models.lead import Lead

logger = logging.getLogger('pipeline.reconcile')

# Fields LightFusion owns once a lead is synced; replaced wholesale on merge
PROVIDER_FIELDS = (
    'state', 'latitude', 'longitude', 'address',
    'kwh_usage', 'system_size', 'panel_count',
    'panel_id', 'inverter_id', 'utility_id', 'roof_material',
    'annual_production', 'installation_date',
)


def merge_external(lead, external):
    """Overwrite provider-owned fields on `lead` with the snapshot and mark it synced."""
    for name in PROVIDER_FIELDS:
        setattr(lead, name, getattr(external, name))
    lead.mark_synced(external.id)
    return lead


def lead_from_external(external, company_id=None):
    """Materialize a local Lead for a snapshot that has no local counterpart yet."""
    lead = Lead(
        company_id=external.company_id if external.company_id is not None else company_id,
        creator_id=external.creator_id or 0,
        source=external.source,
        promo_code=external.promo_code,
        is_2d=external.is_2d,
    )
    return merge_external(lead, external)


class LeadReconciler:
    """
    Args:
        store:        LeadStore
        client:       LightFusionClient, or None to run local-only
        sync_enabled: master switch (USE_EXTERNAL_API)
    """

    def __init__(self, store, client=None, sync_enabled=True):
        self.store = store
        self.client = client
        self.sync_enabled = sync_enabled

    @property
    def syncing(self):
        return self.sync_enabled and self.client is not None

    # ── Writes ────────────────────────────────────────────────────────────

    def create(self, lead):
        lead.validate()

        if self.syncing:
            try:
                external = self.client.create_lead(lead_create_payload(lead))
                lead.mark_synced(external.id)
            except ProviderError as e:
                logger.warning("LightFusion create failed, storing lead locally: %s", e)
                lead.mark_sync_failed()

        lead = self.store.create(lead)
        logger.info(
            "Created lead %s (sync=%s)", lead.id, lead.sync_status,
            extra={'lead_id': lead.id, 'external_lead_id': lead.external_lead_id},
        )
        return lead

    def update(self, lead):
        lead.validate()
        self._push(lead, LeadPatch.from_lead(lead))
        return self.store.update(lead)

    def update_state(self, lead_id, state):
        lead = self.store.get_by_id(lead_id)
        lead.state = state
        self._push(lead, LeadPatch(state=state))
        return self.store.update(lead)

    def delete(self, lead_id):
        self.store.delete(lead_id)

    def _push(self, lead, patch):
        """Send a partial update for a bound lead; unbound leads never touch the network."""
        if not self.syncing or lead.external_lead_id is None:
            return
        try:
            self.client.update_lead(lead.external_lead_id, patch)
            lead.mark_synced(lead.external_lead_id)
        except ProviderError as e:
            logger.warning(
                "LightFusion update failed for lead %s: %s", lead.id, e,
                extra={'lead_id': lead.id, 'external_lead_id': lead.external_lead_id},
            )
            lead.mark_sync_failed()

    # ── Reads ─────────────────────────────────────────────────────────────

    def get(self, lead_id):
        lead = self.store.get_by_id(lead_id)
        if not self.syncing or lead.external_lead_id is None:
            return lead

        try:
            external = self.client.get_lead(lead.external_lead_id)
        except ProviderError as e:
            logger.info(
                "Serving stored copy of lead %s, refresh failed: %s", lead_id, e,
                extra={'lead_id': lead_id, 'external_lead_id': lead.external_lead_id},
            )
            return lead

        merge_external(lead, external)
        try:
            return self.store.update(lead)
        except SQLAlchemyError:
            logger.error(
                "Failed to persist refreshed lead %s", lead_id, exc_info=True,
                extra={'lead_id': lead_id},
            )
            return lead

    def list(self, limit, offset=0):
        return self.store.list(limit, offset)

    def list_by_creator(self, creator_id, limit, offset=0):
        return self.store.list_by_creator(creator_id, limit, offset)

    def list_by_state(self, state, limit, offset=0):
        return self.store.list_by_state(state, limit, offset)

    def list_with_3d_models(self, company_id=None, limit=20, offset=0):
        return self.store.list_with_3d_models(company_id, limit, offset)

    def list_by_company(self, company_id, limit, offset=0):
        """
        Local page for the company, after absorbing the provider's page.

        Provider leads matching a local external_lead_id are merged in place;
        the rest are created locally as already-synced rows. The local page is
        re-read afterwards so the caller sees post-merge state.
        """
        leads = self.store.list_by_company(company_id, limit, offset)
        if not self.syncing:
            return leads

        try:
            externals = self.client.list_leads(company_id, limit, offset)
        except ProviderError as e:
            logger.warning("LightFusion list failed for company %s: %s", company_id, e)
            return leads

        absorbed = 0
        for external in externals:
            try:
                self._absorb(external, company_id)
                absorbed += 1
            except SQLAlchemyError:
                logger.error(
                    "Failed to absorb LightFusion lead %s", external.id, exc_info=True,
                    extra={'external_lead_id': external.id},
                )
        logger.info("Absorbed %d/%d LightFusion lead(s) for company %s", absorbed, len(externals), company_id)

        return self.store.list_by_company(company_id, limit, offset)

    def _absorb(self, external, company_id):
        try:
            lead = self.store.get_by_external_id(external.id)
        except LeadNotFound:
            lead = self.store.create(lead_from_external(external, company_id))
            logger.info(
                "Imported LightFusion lead %s as lead %s", external.id, lead.id,
                extra={'lead_id': lead.id, 'external_lead_id': external.id},
            )
            return lead
        return self.store.update(merge_external(lead, external))
