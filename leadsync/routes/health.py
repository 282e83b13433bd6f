"""
Health routes — liveness plus circuit breaker state for the LightFusion gateway.
"""
import logging
from flask import Blueprint, jsonify

from leadsync.services.circuit_breaker import get_all_breakers, get_breaker

logger = logging.getLogger('routes.health')

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def breaker_health():
    breakers = {name: b.get_health() for name, b in get_all_breakers().items()}
    degraded = any(h.get('state') == 'open' for h in breakers.values())
    return jsonify({
        'status': 'degraded' if degraded else 'healthy',
        'breakers': breakers,
    })


@bp.route('/api/health/<name>/reset', methods=['POST'])
def reset_breaker(name):
    breaker = get_breaker(name)
    if breaker is None:
        return jsonify({'error': f'Unknown breaker: {name}'}), 404
    breaker.reset()
    return jsonify(breaker.get_health())
