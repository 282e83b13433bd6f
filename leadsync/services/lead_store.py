"""
Lead persistence — the local, authoritative copy of every lead.

Each call opens its own session and closes it before returning, so callers get
detached, fully-loaded Lead instances they can mutate and hand back to update().
Database errors roll the session back and propagate.
"""
import logging

from sqlalchemy import select

from leadsync.database import get_session
from leadsync.errors import LeadNotFound
from leadsync.models.lead import Lead

logger = logging.getLogger('services.lead_store')


class LeadStore:

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or get_session

    def _write(self, lead, merge):
        session = self.session_factory()
        try:
            if merge:
                lead = session.merge(lead)
            else:
                session.add(lead)
            session.commit()
            session.refresh(lead)
            session.expunge(lead)
            return lead
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _select(self, stmt, limit, offset):
        stmt = stmt.order_by(Lead.created_at.desc(), Lead.id.desc()).limit(limit).offset(offset)
        session = self.session_factory()
        try:
            return list(session.scalars(stmt))
        finally:
            session.close()

    # ── Single-row operations ─────────────────────────────────────────────

    def create(self, lead):
        lead = self._write(lead, merge=False)
        logger.debug("Stored lead %s", lead.id, extra={'lead_id': lead.id})
        return lead

    def get_by_id(self, lead_id):
        session = self.session_factory()
        try:
            lead = session.get(Lead, lead_id)
        finally:
            session.close()
        if lead is None:
            raise LeadNotFound(lead_id=lead_id)
        return lead

    def get_by_external_id(self, external_lead_id):
        session = self.session_factory()
        try:
            lead = session.scalars(
                select(Lead).where(Lead.external_lead_id == external_lead_id).limit(1)
            ).first()
        finally:
            session.close()
        if lead is None:
            raise LeadNotFound(external_lead_id=external_lead_id)
        return lead

    def update(self, lead):
        if lead.id is None:
            raise LeadNotFound()
        session = self.session_factory()
        try:
            exists = session.get(Lead, lead.id) is not None
        finally:
            session.close()
        if not exists:
            raise LeadNotFound(lead_id=lead.id)
        return self._write(lead, merge=True)

    def delete(self, lead_id):
        session = self.session_factory()
        try:
            lead = session.get(Lead, lead_id)
            if lead is None:
                raise LeadNotFound(lead_id=lead_id)
            session.delete(lead)
            session.commit()
        except LeadNotFound:
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        logger.info("Deleted lead %s", lead_id, extra={'lead_id': lead_id})

    def update_state(self, lead_id, state):
        session = self.session_factory()
        try:
            lead = session.get(Lead, lead_id)
            if lead is None:
                raise LeadNotFound(lead_id=lead_id)
            lead.state = state
            session.commit()
            session.refresh(lead)
            session.expunge(lead)
            return lead
        except LeadNotFound:
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Listing ───────────────────────────────────────────────────────────

    def list(self, limit, offset=0):
        return self._select(select(Lead), limit, offset)

    def list_by_company(self, company_id, limit, offset=0):
        return self._select(select(Lead).where(Lead.company_id == company_id), limit, offset)

    def list_by_creator(self, creator_id, limit, offset=0):
        return self._select(select(Lead).where(Lead.creator_id == creator_id), limit, offset)

    def list_by_state(self, state, limit, offset=0):
        return self._select(select(Lead).where(Lead.state == state), limit, offset)

    def list_with_3d_models(self, company_id=None, limit=20, offset=0):
        stmt = select(Lead).where(
            Lead.project_3d_id.is_not(None),
            Lead.house_3d_id.is_not(None),
        )
        if company_id is not None:
            stmt = stmt.where(Lead.company_id == company_id)
        return self._select(stmt, limit, offset)
