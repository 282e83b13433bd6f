"""
App-wide error handlers — translate the LeadSyncError taxonomy into JSON responses.
"""
import logging
from flask import Blueprint, jsonify

from leadsync.errors import (
    LeadSyncError, ValidationError, NotFound, InvalidState,
    ProviderError, Unauthenticated, AuthError, RemoteError, ProviderUnavailable,
    AssetRetrievalError,
)

logger = logging.getLogger('routes.errors')

bp = Blueprint('errors', __name__)


@bp.app_errorhandler(ValidationError)
def handle_validation(e):
    return jsonify({'error': str(e)}), 400


@bp.app_errorhandler(NotFound)
def handle_not_found(e):
    return jsonify({'error': str(e)}), 404


@bp.app_errorhandler(InvalidState)
def handle_invalid_state(e):
    return jsonify({'error': str(e)}), 409


@bp.app_errorhandler(AssetRetrievalError)
def handle_asset_retrieval(e):
    return jsonify({'error': str(e), 'files': e.bundle.to_dict()}), 502


@bp.app_errorhandler(ProviderError)
def handle_provider(e):
    if isinstance(e, (Unauthenticated, AuthError)):
        return jsonify({'error': str(e)}), 401
    if isinstance(e, ProviderUnavailable):
        response = jsonify({'error': str(e)})
        response.headers['Retry-After'] = str(int(e.retry_after or 0))
        return response, 503
    if isinstance(e, RemoteError) and e.status == 404:
        return jsonify({'error': f'not found at LightFusion: {e}'}), 404
    logger.warning("LightFusion request failed: %s", e)
    return jsonify({'error': f'LightFusion request failed: {e}'}), 502


@bp.app_errorhandler(LeadSyncError)
def handle_other(e):
    logger.error("Unhandled leadsync error: %s", e, exc_info=True)
    return jsonify({'error': str(e)}), 500
