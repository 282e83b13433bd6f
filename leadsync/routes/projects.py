"""
3D project routes — create, poll, fetch mesh files, and serve them from MEDIA_DIR.
"""
import logging
import os
from flask import Blueprint, request, jsonify, send_from_directory

from leadsync import get_services
from leadsync.errors import ValidationError
from leadsync.models.external import ProjectRequest

logger = logging.getLogger('routes.projects')

bp = Blueprint('projects', __name__)


@bp.route('/api/projects/3d', methods=['POST'])
def create_project():
    """Create a LightFusion 3D project and bind it to a (new or existing) lead."""
    project_request = ProjectRequest.from_dict(request.get_json(silent=True))
    project, lead = get_services().projects.create_project(project_request)

    body = project.to_dict()
    body['local_lead_id'] = lead.id if lead is not None else None
    body['message'] = '3D project created successfully. Processing in background.'
    return jsonify(body), 201


@bp.route('/api/projects/3d/<int:project_id>')
def project_status(project_id):
    if project_id == 0:
        raise ValidationError('project id cannot be 0')
    raw = request.args.get('house_id', '')
    try:
        house_id = int(raw)
    except ValueError:
        raise ValidationError(f"invalid or missing house_id query param: '{raw}'")
    if house_id == 0:
        raise ValidationError('house_id cannot be 0')

    status = get_services().projects.get_project_status(project_id, house_id)
    return jsonify(status.to_dict())


@bp.route('/api/projects/3d/<int:project_id>/files')
def project_files(project_id):
    if project_id == 0:
        raise ValidationError('project id cannot be 0')
    bundle = get_services().projects.get_project_files(project_id)
    return jsonify(bundle.to_dict())


@bp.route('/media/<path:filename>')
def media(filename):
    """Serve downloaded mesh files."""
    return send_from_directory(os.path.abspath(get_services().media_dir), filename)
