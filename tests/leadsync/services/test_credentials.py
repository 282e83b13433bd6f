"""Tests for leadsync.services.credentials — SessionCredentials."""
from unittest.mock import MagicMock

import pytest

from leadsync.errors import AuthError, Unauthenticated
from leadsync.services.credentials import SessionCredentials


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestTokenLifetime:

    def test_empty_holder_is_invalid(self):
        assert SessionCredentials().is_valid() is False

    def test_pre_issued_token_without_ttl_never_expires(self):
        clock = Clock()
        creds = SessionCredentials(token='abc', clock=clock)
        clock.now += 10 ** 9
        assert creds.peek() == 'abc'

    def test_token_expires_after_ttl(self):
        clock = Clock()
        creds = SessionCredentials(ttl=60, clock=clock)
        creds.set('abc')
        assert creds.expires_at == 1060.0
        clock.now += 61
        assert creds.is_valid() is False
        assert creds.peek() is None

    def test_invalidate_drops_token(self):
        creds = SessionCredentials(token='abc')
        creds.invalidate()
        assert creds.peek() is None


class TestRequire:

    def test_without_refresher_raises_unauthenticated(self):
        with pytest.raises(Unauthenticated):
            SessionCredentials().require()

    def test_refreshes_missing_token(self):
        creds = SessionCredentials()
        creds.refresher = MagicMock(side_effect=lambda: creds.set('fresh'))
        assert creds.require() == 'fresh'
        assert creds.refresher.call_count == 1

    def test_valid_token_skips_refresh(self):
        creds = SessionCredentials(token='abc', refresher=MagicMock())
        assert creds.require() == 'abc'
        creds.refresher.assert_not_called()

    def test_refresh_failure_becomes_unauthenticated(self):
        creds = SessionCredentials(refresher=MagicMock(side_effect=AuthError('bad password')))
        with pytest.raises(Unauthenticated, match='bad password'):
            creds.require()

    def test_refresher_that_sets_nothing(self):
        creds = SessionCredentials(refresher=MagicMock())
        with pytest.raises(Unauthenticated):
            creds.require()
