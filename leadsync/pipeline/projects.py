"""
3D project orchestration — create a LightFusion project, bind it to a lead,
and move the lead through the modeling lifecycle as status is polled.

  no_project → requested → processing → completed | failed

Transitions after `requested` only happen when a caller polls; there is no
background scheduler. Asset retrieval kicks in once a poll reports completion.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from leadsync.config import (
    MODEL_COMPLETED, MODEL_FAILED, MODEL_PROCESSING,
    LEAD_SOURCE_EARTH, LEAD_STATE_INITIALIZED, SYNC_SYNCED,
)
from leadsync.errors import InvalidState, LeadNotFound, LeadSyncError
from leadsync.models.external import ProjectStatus
from leadsync.models.lead import Lead

logger = logging.getLogger('pipeline.projects')

# LeadCompletion.state codes reported by LightFusion
COMPLETION_DONE = 1
COMPLETION_ERRORED = 2


def map_completion_state(code):
    if code == COMPLETION_DONE:
        return MODEL_COMPLETED
    if code == COMPLETION_ERRORED:
        return MODEL_FAILED
    return MODEL_PROCESSING


def apply_completion(lead, completion):
    """
    Fold a LeadCompletion into the lead. Zero means "not known yet" and never
    overwrites an existing figure.
    """
    lead.update_model_status(map_completion_state(completion.state))
    if completion.system_size > 0:
        lead.system_size = completion.system_size
    if completion.panel_count > 0:
        lead.panel_count = completion.panel_count
    if completion.annual_production > 0:
        lead.annual_production = completion.annual_production
    return lead


@dataclass
class StatusSync:
    """Result of polling a bound lead: the updated lead plus what the provider said."""
    lead: Lead
    status: ProjectStatus
    assets: Optional[dict] = None

    def to_dict(self):
        return {
            'lead': self.lead.to_dict(),
            'status': self.status.to_dict(),
            'assets': self.assets,
        }


class ProjectOrchestrator:
    """
    Args:
        store:                    LeadStore
        client:                   LightFusionClient
        assets:                   AssetFetcher
        fetch_assets_on_complete: pull mesh files when a poll reports completion
    """

    def __init__(self, store, client, assets, fetch_assets_on_complete=True):
        self.store = store
        self.client = client
        self.assets = assets
        self.fetch_assets_on_complete = fetch_assets_on_complete

    # ── Creation ──────────────────────────────────────────────────────────

    def create_project(self, request):
        """
        Submit the project and bind it locally. Returns (ProjectCreated, Lead or None).

        The provider call is the only thing that can fail this operation. Once
        the project exists remotely it is reported as created even if the
        local bookkeeping fails.
        """
        request.validate()
        project = self.client.create_project(request)
        logger.info(
            "Created 3D project %d (LightFusion lead %d)", project.id, project.lead_id,
            extra={'project_id': project.id, 'external_lead_id': project.lead_id},
        )

        try:
            if request.lead_id is not None:
                lead = self._bind_existing(request.lead_id, project)
            else:
                lead = self._bind_new(request, project)
        except (LeadNotFound, SQLAlchemyError) as e:
            logger.warning(
                "3D project %d created but could not be bound locally: %s", project.id, e,
                extra={'project_id': project.id, 'lead_id': request.lead_id},
            )
            return project, None
        return project, lead

    def _bind_existing(self, lead_id, project):
        lead = self.store.get_by_id(lead_id)
        lead.bind_3d_project(project.id, project.lead_id)
        if lead.external_lead_id is None:
            lead.external_lead_id = project.lead_id
        return self.store.update(lead)

    def _bind_new(self, request, project):
        lead = Lead(
            company_id=request.company_id,
            creator_id=request.creator_id,
            latitude=request.latitude,
            longitude=request.longitude,
            address=request.address.formatted(),
            state=LEAD_STATE_INITIALIZED,
            source=LEAD_SOURCE_EARTH,
            external_lead_id=project.lead_id,
            system_size=project.system_size,
            annual_production=project.annual_production,
            sync_status=SYNC_SYNCED,
        )
        lead.bind_3d_project(project.id, project.lead_id)
        lead = self.store.create(lead)
        logger.info(
            "Created lead %s for 3D project %d", lead.id, project.id,
            extra={'lead_id': lead.id, 'project_id': project.id},
        )
        return lead

    # ── Status polling ────────────────────────────────────────────────────

    def get_project_status(self, project_id, house_id):
        """Poll the provider and back-sync the matching local lead, if any."""
        status = self.client.get_project_status(project_id, house_id)
        completion = status.lead_completion
        if completion is None:
            return status

        try:
            lead = self.store.get_by_external_id(completion.lead_id)
        except LeadNotFound:
            logger.info(
                "No local lead for LightFusion lead %d, status not back-synced", completion.lead_id,
                extra={'project_id': project_id, 'external_lead_id': completion.lead_id},
            )
            return status

        try:
            self._apply_and_store(lead, completion)
        except SQLAlchemyError:
            logger.error(
                "Failed to back-sync status onto lead %s", lead.id, exc_info=True,
                extra={'lead_id': lead.id, 'project_id': project_id},
            )
        return status

    def sync_lead_status(self, lead_id):
        """Poll the project bound to a local lead and persist the outcome."""
        lead = self._bound_lead(lead_id)
        status = self.client.get_project_status(lead.project_3d_id, lead.house_3d_id)
        sync = StatusSync(lead=lead, status=status)
        if status.lead_completion is not None:
            sync.lead, sync.assets = self._apply_and_store(lead, status.lead_completion)
        return sync

    def _apply_and_store(self, lead, completion):
        previous = lead.model_3d_status
        apply_completion(lead, completion)
        lead = self.store.update(lead)
        logger.info(
            "Lead %s 3D model %s → %s", lead.id, previous, lead.model_3d_status,
            extra={'lead_id': lead.id, 'project_id': lead.project_3d_id},
        )

        assets = None
        if (lead.model_3d_status == MODEL_COMPLETED and previous != MODEL_COMPLETED
                and self.fetch_assets_on_complete and lead.project_3d_id is not None):
            try:
                assets = self.assets.fetch(lead.project_3d_id).to_dict()
            except LeadSyncError as e:
                logger.warning(
                    "Mesh retrieval after completion failed for lead %s: %s", lead.id, e,
                    extra={'lead_id': lead.id, 'project_id': lead.project_3d_id},
                )
                bundle = getattr(e, 'bundle', None)
                assets = bundle.to_dict() if bundle is not None else None
        return lead, assets

    # ── Files ─────────────────────────────────────────────────────────────

    def get_lead_files(self, lead_id):
        lead = self._bound_lead(lead_id)
        return self.assets.fetch(lead.project_3d_id)

    def get_project_files(self, project_id):
        return self.assets.fetch(project_id)

    def _bound_lead(self, lead_id):
        lead = self.store.get_by_id(lead_id)
        if not lead.has_3d_model():
            raise InvalidState(f'lead {lead_id} does not have a 3D model')
        return lead
