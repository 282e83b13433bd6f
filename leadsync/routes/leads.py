"""
Lead routes — CRUD over the reconciler, plus the per-lead 3D endpoints.
"""
import logging
from flask import Blueprint, request, jsonify

from leadsync import get_services
from leadsync.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT, LEAD_STATE_INITIALIZED, LEAD_SOURCE_MANUAL
from leadsync.errors import ValidationError
from leadsync.models.external import LeadPatch, parse_datetime
from leadsync.models.lead import Lead

logger = logging.getLogger('routes.leads')

bp = Blueprint('leads', __name__)

# body key → expected type for POST /api/leads
_CREATE_FIELDS = {
    'company_id': int,
    'creator_id': int,
    'latitude': float,
    'longitude': float,
    'address': str,
    'source': int,
    'promo_code': str,
    'is_2d': bool,
    'kwh_usage': float,
    'system_size': float,
    'panel_count': int,
    'panel_id': int,
    'inverter_id': int,
    'utility_id': int,
    'roof_material': str,
    'installation_date': 'datetime',
}


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('request body must be a JSON object')
    return data


def _coerce(name, value, kind):
    if kind == 'datetime':
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValidationError(f'{name} must be an ISO-8601 timestamp')
        return parsed
    if kind is bool:
        if not isinstance(value, bool):
            raise ValidationError(f'{name} must be true or false')
        return value
    if kind is str:
        if not isinstance(value, str):
            raise ValidationError(f'{name} must be a string')
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f'{name} must be a number')
    return kind(value)


def _int_arg(name, default=None):
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f'{name} must be an integer')


def _page():
    limit = _int_arg('limit', DEFAULT_PAGE_LIMIT)
    offset = _int_arg('offset', 0)
    if limit <= 0:
        limit = DEFAULT_PAGE_LIMIT
    return min(limit, MAX_PAGE_LIMIT), max(offset, 0)


# ── CRUD ─────────────────────────────────────────────────────────────────────

@bp.route('/api/leads', methods=['POST'])
def create_lead():
    """Create a lead locally and mirror it to LightFusion when sync is on."""
    data = _json_body()
    for required in ('company_id', 'creator_id'):
        if data.get(required) is None:
            raise ValidationError(f'{required} is required')

    values = {
        name: _coerce(name, data[name], kind)
        for name, kind in _CREATE_FIELDS.items()
        if data.get(name) is not None
    }
    values.setdefault('source', LEAD_SOURCE_MANUAL)
    lead = Lead(state=LEAD_STATE_INITIALIZED, **values)
    lead = get_services().reconciler.create(lead)
    return jsonify(lead.to_dict()), 201


@bp.route('/api/leads')
def list_leads():
    """
    List leads. Filters apply in order: has_3d_model, company_id, creator_id, state.
    Listing by company absorbs the provider's leads for that company first.
    """
    limit, offset = _page()
    company_id = _int_arg('company_id')
    creator_id = _int_arg('creator_id')
    state = _int_arg('state')
    has_3d = request.args.get('has_3d_model', '').lower() == 'true'

    reconciler = get_services().reconciler
    if has_3d:
        leads = reconciler.list_with_3d_models(company_id, limit, offset)
    elif company_id is not None:
        leads = reconciler.list_by_company(company_id, limit, offset)
    elif creator_id is not None:
        leads = reconciler.list_by_creator(creator_id, limit, offset)
    elif state is not None:
        leads = reconciler.list_by_state(state, limit, offset)
    else:
        leads = reconciler.list(limit, offset)

    return jsonify({
        'leads': [lead.to_dict() for lead in leads],
        'count': len(leads),
        'limit': limit,
        'offset': offset,
    })


@bp.route('/api/leads/<int:lead_id>')
def get_lead(lead_id):
    lead = get_services().reconciler.get(lead_id)
    return jsonify(lead.to_dict())


@bp.route('/api/leads/<int:lead_id>', methods=['PUT'])
def update_lead(lead_id):
    """Apply a partial update and push it to LightFusion if the lead is bound."""
    patch = LeadPatch.from_dict(_json_body())
    if patch.is_empty():
        raise ValidationError('no updatable fields in request body')

    services = get_services()
    lead = services.store.get_by_id(lead_id)
    patch.apply_to(lead)
    lead = services.reconciler.update(lead)
    return jsonify(lead.to_dict())


@bp.route('/api/leads/<int:lead_id>', methods=['DELETE'])
def delete_lead(lead_id):
    get_services().reconciler.delete(lead_id)
    return '', 204


@bp.route('/api/leads/<int:lead_id>/state', methods=['PUT'])
def update_lead_state(lead_id):
    data = _json_body()
    if data.get('state') is None:
        raise ValidationError('state is required')
    state = _coerce('state', data['state'], int)
    lead = get_services().reconciler.update_state(lead_id, state)
    return jsonify(lead.to_dict())


# ── 3D ───────────────────────────────────────────────────────────────────────

@bp.route('/api/leads/<int:lead_id>/sync-3d-status', methods=['POST'])
def sync_3d_status(lead_id):
    """Poll LightFusion for the lead's bound project and store the outcome."""
    sync = get_services().projects.sync_lead_status(lead_id)
    return jsonify(sync.to_dict())


@bp.route('/api/leads/<int:lead_id>/files')
def lead_files(lead_id):
    bundle = get_services().projects.get_lead_files(lead_id)
    return jsonify(bundle.to_dict())
