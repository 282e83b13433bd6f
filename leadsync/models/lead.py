"""
Lead model — one row per prospective solar site, optionally mirrored at LightFusion.

The local row owns tenancy (company, creator, address). LightFusion owns the
derived figures (sizing, production) once the lead has been synced, and the
3D binding (project + house ids) once a model has been requested.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime
from sqlalchemy.sql import func

from leadsync.config import (
    SYNC_PENDING, SYNC_SYNCED, SYNC_FAILED,
    MODEL_STATUSES, MODEL_REQUESTED, PROJECT_NONE,
    LEAD_STATE_INITIALIZED,
)
from leadsync.database import Base
from leadsync.errors import ValidationError


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Classification
    company_id = Column(Integer, nullable=False, index=True)
    creator_id = Column(Integer, nullable=False, index=True)
    state = Column(Integer, nullable=False, default=LEAD_STATE_INITIALIZED, index=True)
    source = Column(Integer, nullable=False, default=0)
    promo_code = Column(Text, nullable=True)
    is_2d = Column(Boolean, nullable=False, default=False)

    # Site
    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)
    address = Column(Text, default='')

    # Energy inputs
    kwh_usage = Column(Float, default=0.0)
    system_size = Column(Float, default=0.0)
    panel_count = Column(Integer, default=0)
    panel_id = Column(Integer, nullable=True)
    inverter_id = Column(Integer, nullable=True)
    utility_id = Column(Integer, nullable=True)
    roof_material = Column(Text, nullable=True)

    # Derived outputs, provider-authoritative once synced
    annual_production = Column(Float, default=0.0)
    installation_date = Column(DateTime(timezone=True), nullable=True)

    # Weak reference to the provider's lead (relation only)
    external_lead_id = Column(Integer, nullable=True, index=True)
    sync_status = Column(Text, nullable=False, default=SYNC_PENDING)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    # 3D project binding
    project_3d_id = Column(Integer, nullable=True)
    house_3d_id = Column(Integer, nullable=True)
    model_3d_status = Column(Text, nullable=True)

    def __init__(self, **kwargs):
        # Column defaults only apply at INSERT; a transient lead should read
        # the same values before it is persisted.
        kwargs.setdefault('state', LEAD_STATE_INITIALIZED)
        kwargs.setdefault('source', 0)
        kwargs.setdefault('is_2d', False)
        kwargs.setdefault('address', '')
        kwargs.setdefault('kwh_usage', 0.0)
        kwargs.setdefault('system_size', 0.0)
        kwargs.setdefault('panel_count', 0)
        kwargs.setdefault('annual_production', 0.0)
        kwargs.setdefault('sync_status', SYNC_PENDING)
        super().__init__(**kwargs)

    def __repr__(self):
        return f'<Lead id={self.id} external={self.external_lead_id} sync={self.sync_status}>'

    # ── Invariants ────────────────────────────────────────────────────────

    def validate(self):
        """Raise ValidationError unless the coordinates are in range."""
        if self.latitude is None or not -90 <= self.latitude <= 90:
            raise ValidationError('latitude must be between -90 and 90')
        if self.longitude is None or not -180 <= self.longitude <= 180:
            raise ValidationError('longitude must be between -180 and 180')

    # ── Sync bookkeeping ──────────────────────────────────────────────────

    def mark_synced(self, external_lead_id):
        self.external_lead_id = external_lead_id
        self.sync_status = SYNC_SYNCED
        self.last_synced_at = datetime.now(timezone.utc)

    def mark_sync_failed(self):
        self.sync_status = SYNC_FAILED

    # ── 3D binding ────────────────────────────────────────────────────────

    def has_3d_model(self):
        return self.project_3d_id is not None and self.house_3d_id is not None

    def bind_3d_project(self, project_id, house_id):
        """Attach a freshly created LightFusion project; modeling starts as requested."""
        self.project_3d_id = project_id
        self.house_3d_id = house_id
        self.model_3d_status = MODEL_REQUESTED

    def update_model_status(self, status):
        if status not in MODEL_STATUSES:
            raise ValidationError(f'unknown 3D model status: {status}')
        self.model_3d_status = status

    def project_state(self):
        """Where this lead sits in the 3D lifecycle."""
        if not self.has_3d_model():
            return PROJECT_NONE
        return self.model_3d_status or MODEL_REQUESTED

    # ── Serialization ─────────────────────────────────────────────────────

    def to_dict(self):
        return {
            'id': self.id,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
            'company_id': self.company_id,
            'creator_id': self.creator_id,
            'state': self.state,
            'source': self.source,
            'promo_code': self.promo_code,
            'is_2d': self.is_2d,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'address': self.address,
            'kwh_usage': self.kwh_usage,
            'system_size': self.system_size,
            'panel_count': self.panel_count,
            'panel_id': self.panel_id,
            'inverter_id': self.inverter_id,
            'utility_id': self.utility_id,
            'roof_material': self.roof_material,
            'annual_production': self.annual_production,
            'installation_date': _iso(self.installation_date),
            'external_lead_id': self.external_lead_id,
            'sync_status': self.sync_status,
            'last_synced_at': _iso(self.last_synced_at),
            'has_3d_model': self.has_3d_model(),
            'project_3d_id': self.project_3d_id,
            'house_3d_id': self.house_3d_id,
            'model_3d_status': self.model_3d_status,
            'project_state': self.project_state(),
        }


def _iso(value):
    return value.isoformat() if value else None
