"""Tests for the application factory and service wiring."""
import time
from unittest.mock import patch, MagicMock

from leadsync import create_app
from leadsync.extensions import build_services
from leadsync.pipeline.reconcile import LeadReconciler
from leadsync.services.lightfusion import LightFusionClient


class TestCreateApp:

    def test_registers_routes(self, app):
        rules = {rule.rule for rule in app.url_map.iter_rules()}
        assert {'/health', '/api/leads', '/api/projects/3d', '/media/<path:filename>'} <= rules

    def test_services_attached(self, app, services):
        assert app.extensions['leadsync'] is services

    def test_builds_services_when_none_given(self, fake_redis):
        app = create_app(redis_client=fake_redis)
        services = app.extensions['leadsync']
        assert isinstance(services.client, LightFusionClient)
        assert isinstance(services.reconciler, LeadReconciler)


class TestBuildServices:

    def test_breakers_are_wired_into_client(self):
        api, storage = MagicMock(), MagicMock()
        services = build_services(breakers={'lightfusion': api, 'lightfusion_storage': storage})
        assert services.client.breaker is api
        assert services.client.storage_breaker is storage

    def test_login_refresher_when_password_configured(self):
        with patch('leadsync.extensions.LIGHTFUSION_EMAIL', 'ops@example.com'), \
             patch('leadsync.extensions.LIGHTFUSION_PASSWORD', 'pw'), \
             patch('leadsync.extensions.LIGHTFUSION_API_KEY', None):
            http = MagicMock()
            response = MagicMock(status_code=200)
            response.json.return_value = {'token': 'from-login'}
            http.request.return_value = response
            services = build_services(http=http)

        assert services.client.credentials.require() == 'from-login'
        assert http.request.call_args[0][1].endswith('/v1/users/sessions')

    def test_pre_issued_key_used_as_token(self):
        with patch('leadsync.extensions.LIGHTFUSION_API_KEY', 'static-key'):
            services = build_services()
        assert services.client.credentials.peek() == 'static-key'

    def test_pre_issued_key_outlives_session_ttl(self):
        with patch('leadsync.extensions.LIGHTFUSION_API_KEY', 'static-key'), \
             patch('leadsync.extensions.LIGHTFUSION_EMAIL', None), \
             patch('leadsync.extensions.LIGHTFUSION_PASSWORD', None), \
             patch('leadsync.extensions.LIGHTFUSION_SESSION_TTL', 3600):
            services = build_services()

        creds = services.client.credentials
        assert creds.expires_at is None
        creds._clock = lambda: time.time() + 3600 + 1
        assert creds.require() == 'static-key'

    def test_login_token_still_expires(self):
        with patch('leadsync.extensions.LIGHTFUSION_API_KEY', None), \
             patch('leadsync.extensions.LIGHTFUSION_SESSION_TTL', 3600):
            services = build_services()

        creds = services.client.credentials
        creds.set('from-login')
        assert creds.expires_at is not None
        creds._clock = lambda: time.time() + 3600 + 1
        assert creds.peek() is None
